import uuid
import pytest

from bazaar.common.custom_exceptions import (AlreadyAssigned, Forbidden, InvalidTransition, NotFound, OutOfStock,
                                             ProductUnavailable, ValidationFailed)
from bazaar.orders.models import OrderCreateIn
from bazaar.orders.services import (accept_delivery, assign_courier, cancel_order, confirm_payment, create_order,
                                    get_order, list_available_for_delivery, list_orders, make_available_for_delivery,
                                    transition_status, update_delivery_status, update_payment_status)
from bazaar.schema.full_schema import Product
from bazaar.wallets.repository import get_wallet
from tests.seed_data import ADDRESS, actor_for, fetch


def pid(order):
    return uuid.UUID(order["public_id"])


def order_payload(market, *lines, payment_method="cash_on_delivery", shop=None):
    return OrderCreateIn(
        shop_id=(shop or market.shop).public_id,
        items=[{"product_id": p.public_id, "quantity": q} for p, q in lines],
        shipping_address=ADDRESS,
        payment_method=payment_method,
    )


async def place(db_session, market, *lines, **kw):
    return await create_order(db_session, actor_for(market.customer), order_payload(market, *lines, **kw))


async def deliver_with_courier(db_session, market, order):
    seller, courier = actor_for(market.seller), actor_for(market.courier)
    await transition_status(db_session, pid(order), seller, "confirmed")
    await accept_delivery(db_session, pid(order), courier)
    await update_delivery_status(db_session, pid(order), courier, "picked_up")
    await update_delivery_status(db_session, pid(order), courier, "out_for_delivery")
    return await update_delivery_status(db_session, pid(order), courier, "delivered")


@pytest.mark.asyncio
async def test_create_order_reserves_stock_and_prices_server_side(db_session, market):
    order = await place(db_session, market, (market.mango, 2))

    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["order_number"].startswith("ORD-")
    assert order["subtotal"] == 900
    assert order["shipping_cost"] == 0
    assert order["total_amount"] == 900
    assert order["items"][0]["unit_price"] == 450
    assert order["items"][0]["line_total"] == 900
    assert order["shop_id"] == str(market.shop.public_id)

    mango = await fetch(db_session, Product, market.mango.id)
    assert mango.stock_qty == 8
    assert mango.total_sold == 2


@pytest.mark.asyncio
async def test_small_order_pays_delivery_charge(db_session, market):
    order = await place(db_session, market, (market.honey, 1))

    assert order["subtotal"] == 40
    assert order["shipping_cost"] == 30
    assert order["total_amount"] == 70


@pytest.mark.asyncio
async def test_repeated_product_lines_are_merged(db_session, market):
    order = await place(db_session, market, (market.mango, 1), (market.mango, 2))

    assert len(order["items"]) == 1
    assert order["items"][0]["quantity"] == 3


@pytest.mark.asyncio
async def test_out_of_stock_leaves_every_product_untouched(db_session, market):
    with pytest.raises(OutOfStock):
        await place(db_session, market, (market.mango, 1), (market.honey, 3))

    mango = await fetch(db_session, Product, market.mango.id)
    honey = await fetch(db_session, Product, market.honey.id)
    assert (mango.stock_qty, mango.total_sold) == (10, 0)
    assert (honey.stock_qty, honey.total_sold) == (2, 0)


@pytest.mark.asyncio
async def test_selling_the_last_unit_marks_product_out_of_stock(db_session, market):
    order = await place(db_session, market, (market.honey, 2))

    honey = await fetch(db_session, Product, market.honey.id)
    assert honey.stock_qty == 0
    assert honey.status == "out_of_stock"

    await cancel_order(db_session, pid(order), actor_for(market.customer), "changed my mind")
    honey = await fetch(db_session, Product, market.honey.id)
    assert honey.stock_qty == 2
    assert honey.status == "available"


@pytest.mark.asyncio
async def test_order_validation_errors(db_session, market):
    with pytest.raises(ProductUnavailable):
        await place(db_session, market, (market.retired, 1))

    with pytest.raises(ValidationFailed):
        await place(db_session, market, (market.foreign, 1))

    with pytest.raises(Forbidden):
        await create_order(db_session, actor_for(market.seller), order_payload(market, (market.mango, 1)))


@pytest.mark.asyncio
async def test_cancel_restores_stock_exactly(db_session, market):
    order = await place(db_session, market, (market.mango, 3), (market.honey, 1))

    cancelled = await cancel_order(db_session, pid(order), actor_for(market.customer), "found it cheaper")

    assert cancelled["status"] == "cancelled"
    assert cancelled["cancellation_reason"] == "found it cheaper"
    assert cancelled["cancelled_at"] is not None

    mango = await fetch(db_session, Product, market.mango.id)
    honey = await fetch(db_session, Product, market.honey.id)
    assert (mango.stock_qty, mango.total_sold) == (10, 0)
    assert (honey.stock_qty, honey.total_sold) == (2, 0)

    with pytest.raises(InvalidTransition):
        await cancel_order(db_session, pid(order), actor_for(market.customer))

    # no double restore
    mango = await fetch(db_session, Product, market.mango.id)
    assert mango.stock_qty == 10


@pytest.mark.asyncio
async def test_cancel_permissions(db_session, market):
    order = await place(db_session, market, (market.mango, 1))

    with pytest.raises(Forbidden):
        await cancel_order(db_session, pid(order), actor_for(market.other_seller))
    with pytest.raises(Forbidden):
        await cancel_order(db_session, pid(order), actor_for(market.courier))

    cancelled = await cancel_order(db_session, pid(order), actor_for(market.seller))
    assert cancelled["status"] == "cancelled"


@pytest.mark.asyncio
async def test_status_graph_is_enforced(db_session, market):
    order = await place(db_session, market, (market.mango, 1))
    seller = actor_for(market.seller)

    with pytest.raises(InvalidTransition):
        await transition_status(db_session, pid(order), seller, "shipped")
    with pytest.raises(InvalidTransition):
        await transition_status(db_session, pid(order), seller, "pending")

    with pytest.raises(Forbidden):
        await transition_status(db_session, pid(order), actor_for(market.other_seller), "confirmed")

    result = await transition_status(db_session, pid(order), seller, "confirmed")
    assert result["order"]["status"] == "confirmed"
    assert result["settlement"] is None


@pytest.mark.asyncio
async def test_accept_delivery_is_first_come_first_served(db_session, market):
    order = await place(db_session, market, (market.mango, 1))

    # still pending, nothing to claim yet
    with pytest.raises(AlreadyAssigned):
        await accept_delivery(db_session, pid(order), actor_for(market.courier))

    await transition_status(db_session, pid(order), actor_for(market.seller), "confirmed")

    available = await list_available_for_delivery(db_session, actor_for(market.courier))
    assert [o["public_id"] for o in available["items"]] == [order["public_id"]]

    claimed = await accept_delivery(db_session, pid(order), actor_for(market.courier))
    assert claimed["status"] == "shipped"
    assert claimed["delivery_status"] == "assigned"
    assert claimed["courier_id"] == str(market.courier.public_id)

    with pytest.raises(AlreadyAssigned):
        await accept_delivery(db_session, pid(order), actor_for(market.other_courier))

    available = await list_available_for_delivery(db_session, actor_for(market.courier))
    assert available["items"] == []

    with pytest.raises(Forbidden):
        await accept_delivery(db_session, pid(order), actor_for(market.customer))


@pytest.mark.asyncio
async def test_only_the_assigned_courier_moves_the_delivery(db_session, market):
    order = await place(db_session, market, (market.mango, 1))
    await transition_status(db_session, pid(order), actor_for(market.seller), "confirmed")
    await accept_delivery(db_session, pid(order), actor_for(market.courier))

    with pytest.raises(Forbidden):
        await update_delivery_status(db_session, pid(order), actor_for(market.other_courier), "picked_up")

    with pytest.raises(InvalidTransition):
        await update_delivery_status(db_session, pid(order), actor_for(market.courier), "delivered")


@pytest.mark.asyncio
async def test_seller_can_assign_a_courier(db_session, market):
    order = await place(db_session, market, (market.mango, 1))
    await transition_status(db_session, pid(order), actor_for(market.seller), "confirmed")

    with pytest.raises(NotFound):
        await assign_courier(db_session, pid(order), actor_for(market.seller), market.customer.public_id)

    assigned = await assign_courier(db_session, pid(order), actor_for(market.seller),
                                    market.other_courier.public_id)
    assert assigned["courier_id"] == str(market.other_courier.public_id)
    assert assigned["delivery_status"] == "assigned"

    with pytest.raises(AlreadyAssigned):
        await assign_courier(db_session, pid(order), actor_for(market.seller), market.courier.public_id)


@pytest.mark.asyncio
async def test_cash_on_delivery_is_paid_and_settled_on_delivery(db_session, market):
    order = await place(db_session, market, (market.mango, 2))

    result = await deliver_with_courier(db_session, market, order)

    delivered = result["order"]
    assert delivered["status"] == "delivered"
    assert delivered["delivery_status"] == "delivered"
    assert delivered["payment_status"] == "paid"
    assert delivered["delivered_at"] is not None

    settlement = result["settlement"]
    assert settlement["already_distributed"] is False
    assert settlement["split"] == {
        "total": 900, "delivery_charge": 0, "base": 900, "seller": 720, "courier": 90, "platform": 90,
    }
    assert settlement["failed"] == []

    assert (await get_wallet(db_session, market.seller.id)).balance == 720
    assert (await get_wallet(db_session, market.courier.id)).balance == 90
    assert (await get_wallet(db_session, market.platform.id)).balance == 90

    # delivered is terminal
    with pytest.raises(InvalidTransition):
        await cancel_order(db_session, pid(order), actor_for(market.customer))


@pytest.mark.asyncio
async def test_prepaid_order_settles_when_payment_arrives_after_delivery(db_session, market):
    order = await place(db_session, market, (market.mango, 1), payment_method="upi")
    seller = actor_for(market.seller)

    await transition_status(db_session, pid(order), seller, "confirmed")
    result = await transition_status(db_session, pid(order), seller, "delivered")
    assert result["order"]["payment_status"] == "pending"
    assert result["settlement"] is None

    confirmed = await confirm_payment(db_session, pid(order), "pay_123")
    assert confirmed["already_paid"] is False
    assert confirmed["order"]["payment_reference"] == "pay_123"
    # seller self delivery, the courier share goes to the platform
    assert confirmed["settlement"]["split"]["courier"] == 0
    assert confirmed["settlement"]["split"]["platform"] == 90

    again = await confirm_payment(db_session, pid(order), "pay_123")
    assert again["already_paid"] is True
    assert (await get_wallet(db_session, market.seller.id)).balance == 360


@pytest.mark.asyncio
async def test_confirm_payment_moves_pending_order_to_confirmed(db_session, market):
    order = await place(db_session, market, (market.mango, 1), payment_method="upi")

    result = await confirm_payment(db_session, pid(order), "pay_456", method="upi")
    assert result["order"]["status"] == "confirmed"
    assert result["order"]["payment_status"] == "paid"
    assert result["settlement"] is None


@pytest.mark.asyncio
async def test_cancelled_orders_do_not_take_payment(db_session, market):
    order = await place(db_session, market, (market.mango, 1), payment_method="upi")
    await cancel_order(db_session, pid(order), actor_for(market.customer))

    with pytest.raises(InvalidTransition):
        await confirm_payment(db_session, pid(order), "pay_789")


@pytest.mark.asyncio
async def test_payment_status_updates(db_session, market):
    order = await place(db_session, market, (market.mango, 1), payment_method="upi")
    seller, admin = actor_for(market.seller), actor_for(market.admin)

    failed = await update_payment_status(db_session, pid(order), seller, "failed")
    assert failed["order"]["payment_status"] == "failed"

    with pytest.raises(InvalidTransition):
        await update_payment_status(db_session, pid(order), seller, "refunded")

    paid = await update_payment_status(db_session, pid(order), seller, "paid", reference="utr-1")
    assert paid["order"]["payment_status"] == "paid"
    assert paid["order"]["status"] == "confirmed"

    await cancel_order(db_session, pid(order), admin, "customer unreachable")
    with pytest.raises(Forbidden):
        await update_payment_status(db_session, pid(order), seller, "refunded")

    refunded = await update_payment_status(db_session, pid(order), admin, "refunded")
    assert refunded["order"]["payment_status"] == "refunded"


@pytest.mark.asyncio
async def test_failed_delivery_cancels_and_can_be_requeued(db_session, market):
    order = await place(db_session, market, (market.mango, 4))
    seller, courier = actor_for(market.seller), actor_for(market.courier)
    await transition_status(db_session, pid(order), seller, "confirmed")
    await accept_delivery(db_session, pid(order), courier)

    result = await update_delivery_status(db_session, pid(order), courier, "failed", notes="door locked")
    failed = result["order"]
    assert failed["status"] == "cancelled"
    assert failed["delivery_status"] == "failed"
    assert failed["payment_status"] == "pending"
    assert failed["cancellation_reason"] == "Delivery failed: door locked"
    assert (await fetch(db_session, Product, market.mango.id)).stock_qty == 10

    requeued = await make_available_for_delivery(db_session, pid(order), seller)
    assert requeued["status"] == "confirmed"
    assert requeued["courier_id"] is None
    assert requeued["delivery_status"] is None
    assert requeued["cancellation_reason"] is None
    assert (await fetch(db_session, Product, market.mango.id)).stock_qty == 6

    claimed = await accept_delivery(db_session, pid(order), actor_for(market.other_courier))
    assert claimed["courier_id"] == str(market.other_courier.public_id)


@pytest.mark.asyncio
async def test_refunded_failed_delivery_cannot_be_requeued(db_session, market):
    order = await place(db_session, market, (market.mango, 2), payment_method="upi")
    courier, admin = actor_for(market.courier), actor_for(market.admin)
    await confirm_payment(db_session, pid(order), "pay_321")
    await accept_delivery(db_session, pid(order), courier)
    await update_delivery_status(db_session, pid(order), courier, "failed", notes="wrong address")

    refunded = await update_payment_status(db_session, pid(order), admin, "refunded")
    assert refunded["order"]["payment_status"] == "refunded"

    with pytest.raises(InvalidTransition):
        await make_available_for_delivery(db_session, pid(order), admin)

    assert (await fetch(db_session, Product, market.mango.id)).stock_qty == 10
    current = await get_order(db_session, pid(order), admin)
    assert current["status"] == "cancelled"
    assert current["delivery_status"] == "failed"


@pytest.mark.asyncio
async def test_requeue_is_refused_for_finished_orders(db_session, market):
    order = await place(db_session, market, (market.mango, 1))
    await cancel_order(db_session, pid(order), actor_for(market.customer))

    with pytest.raises(InvalidTransition):
        await make_available_for_delivery(db_session, pid(order), actor_for(market.seller))


@pytest.mark.asyncio
async def test_orders_are_scoped_to_the_caller(db_session, market):
    mine = await place(db_session, market, (market.mango, 1))
    other = await create_order(db_session, actor_for(market.customer),
                               order_payload(market, (market.foreign, 1), shop=market.other_shop))

    seller_view = await list_orders(db_session, actor_for(market.seller))
    assert [o["public_id"] for o in seller_view["items"]] == [mine["public_id"]]

    customer_view = await list_orders(db_session, actor_for(market.customer))
    assert customer_view["pagination"]["total"] == 2

    admin_view = await list_orders(db_session, actor_for(market.admin), status="pending")
    assert admin_view["pagination"]["total"] == 2

    with pytest.raises(Forbidden):
        await get_order(db_session, pid(other), actor_for(market.seller))

    # unassigned confirmed orders are visible to couriers looking for work
    with pytest.raises(Forbidden):
        await get_order(db_session, pid(mine), actor_for(market.courier))
    await transition_status(db_session, pid(mine), actor_for(market.seller), "confirmed")
    seen = await get_order(db_session, pid(mine), actor_for(market.courier))
    assert seen["status"] == "confirmed"
