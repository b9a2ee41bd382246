import pytest
from sqlalchemy import func, select

from bazaar.common.custom_exceptions import ConfigurationError, InvalidAmount, InvalidTransition
from bazaar.config.settings import config_settings
from bazaar.orders.services import settle_if_ready
from bazaar.revenue import services as revenue_services
from bazaar.revenue.services import distribute_revenue
from bazaar.schema.full_schema import WalletTransaction
from bazaar.wallets.repository import get_wallet
from tests.seed_data import make_order_row


async def settlement_rows(session, order_id):
    res = await session.execute(
        select(WalletTransaction).where(WalletTransaction.order_id == order_id).order_by(WalletTransaction.id)
    )
    return list(res.scalars().all())


@pytest.mark.asyncio
async def test_delivered_paid_order_is_split_between_three_wallets(db_session, market):
    order = await make_order_row(db_session, market.customer, market.shop, total=1000, shipping=50,
                                 courier=market.courier)

    result = await distribute_revenue(db_session, order)

    assert result["already_distributed"] is False
    assert result["split"] == {
        "total": 1000, "delivery_charge": 50, "base": 950, "seller": 760, "courier": 145, "platform": 95,
    }
    assert (await get_wallet(db_session, market.seller.id)).balance == 760
    assert (await get_wallet(db_session, market.courier.id)).balance == 145
    assert (await get_wallet(db_session, market.platform.id)).balance == 95

    rows = await settlement_rows(db_session, order.id)
    assert {r.revenue_type: r.amount for r in rows} == {
        "seller_share": 760, "courier_share": 145, "platform_share": 95,
    }
    refs = {r.reference for r in rows}
    assert refs == {f"REV-{order.order_number}-{s}" for s in ("SELLER", "COURIER", "PLATFORM")}
    courier_row = next(r for r in rows if r.revenue_type == "courier_share")
    assert "50 delivery charge" in courier_row.description


@pytest.mark.asyncio
async def test_second_distribution_is_a_no_op(db_session, market):
    order = await make_order_row(db_session, market.customer, market.shop, total=1000, shipping=50,
                                 courier=market.courier)

    await distribute_revenue(db_session, order)
    again = await distribute_revenue(db_session, order)

    assert again == {"already_distributed": True, "order_number": order.order_number}
    assert len(await settlement_rows(db_session, order.id)) == 3
    assert (await get_wallet(db_session, market.seller.id)).balance == 760


@pytest.mark.asyncio
async def test_order_without_courier_pays_platform_the_courier_share(db_session, market):
    order = await make_order_row(db_session, market.customer, market.shop, total=1000, shipping=50)

    result = await distribute_revenue(db_session, order)

    assert [c["revenue_type"] for c in result["credited"]] == ["seller_share", "platform_share"]
    assert (await get_wallet(db_session, market.platform.id)).balance == 240
    assert await get_wallet(db_session, market.courier.id) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status,payment_status", [
    ("shipped", "paid"),
    ("delivered", "pending"),
    ("cancelled", "refunded"),
])
async def test_only_delivered_and_paid_orders_settle(db_session, market, status, payment_status):
    order = await make_order_row(db_session, market.customer, market.shop, total=500, shipping=0,
                                 status=status, payment_status=payment_status)

    with pytest.raises(InvalidTransition):
        await distribute_revenue(db_session, order)
    assert await settlement_rows(db_session, order.id) == []


@pytest.mark.asyncio
async def test_missing_platform_account_fails_before_any_credit(db_session, market, monkeypatch):
    monkeypatch.setattr(config_settings, "PLATFORM_ACCOUNT_ID", None)
    order = await make_order_row(db_session, market.customer, market.shop, total=1000, shipping=50,
                                 courier=market.courier)

    with pytest.raises(ConfigurationError):
        await distribute_revenue(db_session, order)
    assert await settlement_rows(db_session, order.id) == []

    # the trigger path swallows it so the delivery itself survives
    assert await settle_if_ready(db_session, order) is None
    assert order.status == "delivered"


@pytest.mark.asyncio
async def test_one_failing_share_does_not_block_the_others(db_session, market, monkeypatch):
    real_credit = revenue_services.credit

    async def flaky_credit(session, user_id, amount, description, revenue_type, **kw):
        if revenue_type == "courier_share":
            raise InvalidAmount("simulated ledger failure")
        return await real_credit(session, user_id, amount, description, revenue_type, **kw)

    monkeypatch.setattr(revenue_services, "credit", flaky_credit)
    order = await make_order_row(db_session, market.customer, market.shop, total=1000, shipping=50,
                                 courier=market.courier)

    result = await distribute_revenue(db_session, order)

    assert [c["revenue_type"] for c in result["credited"]] == ["seller_share", "platform_share"]
    assert result["failed"] == [
        {"revenue_type": "courier_share", "amount": 145, "reason": "simulated ledger failure"},
    ]
    assert (await get_wallet(db_session, market.seller.id)).balance == 760
    assert (await get_wallet(db_session, market.platform.id)).balance == 95

    count = await db_session.execute(
        select(func.count()).select_from(WalletTransaction).where(WalletTransaction.order_id == order.id)
    )
    assert count.scalar_one() == 2

    # re-running after the fault is fixed pays only the missing share
    monkeypatch.setattr(revenue_services, "credit", real_credit)
    retry = await distribute_revenue(db_session, order)

    assert retry["already_distributed"] is False
    assert [c["revenue_type"] for c in retry["credited"]] == ["courier_share"]
    assert (await get_wallet(db_session, market.courier.id)).balance == 145
    assert (await get_wallet(db_session, market.seller.id)).balance == 760

    final = await distribute_revenue(db_session, order)
    assert final["already_distributed"] is True
