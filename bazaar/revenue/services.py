from typing import Any, Dict, List
from sqlalchemy.exc import SQLAlchemyError
from bazaar.common.custom_exceptions import ConfigurationError, DomainError, InvalidTransition
from bazaar.config.settings import config_settings
from bazaar.db.utils import acquire_xact_lock
from bazaar.revenue.constants import logger
from bazaar.orders.repository import shop_owner_id
from bazaar.revenue.repository import platform_account_id, settled_revenue_types
from bazaar.revenue.utils import compute_revenue_split, settlement_lock_key, settlement_reference
from bazaar.schema.full_schema import Orders, OrderStatus, PaymentStatus, RevenueType
from bazaar.wallets.services import credit


def _share_descriptions(order: Orders, delivery_charge: int) -> Dict[str, str]:
    courier_desc = f"Delivery fee ({config_settings.COURIER_SHARE_PERCENT}%"
    if delivery_charge:
        courier_desc += f" + {delivery_charge} delivery charge"
    courier_desc += f") from order {order.order_number}"
    return {
        RevenueType.SELLER_SHARE.value: f"Shop revenue ({config_settings.SELLER_SHARE_PERCENT}%) from order {order.order_number}",
        RevenueType.COURIER_SHARE.value: courier_desc,
        RevenueType.PLATFORM_SHARE.value: f"Platform commission ({config_settings.PLATFORM_SHARE_PERCENT}%) from order {order.order_number}",
    }


async def distribute_revenue(session, order: Orders) -> Dict[str, Any]:
    """Settles a delivered and paid order into the seller, courier and platform wallets.

    Runs inside the caller's transaction. The per order advisory lock is taken
    before the "already distributed" check, so concurrent triggers for the same
    order serialize and never credit a share twice. Each credit runs in its own
    SAVEPOINT: one failing share is logged and reported in ``failed`` while the
    other shares still commit, and a later run credits only what is missing.
    """
    if order.status != OrderStatus.DELIVERED.value or order.payment_status != PaymentStatus.PAID.value:
        raise InvalidTransition(
            "Revenue is distributed only for delivered and paid orders",
            details={"status": order.status, "payment_status": order.payment_status},
        )

    await acquire_xact_lock(session, settlement_lock_key(order.id))

    split = compute_revenue_split(order.total_amount, order.shipping_cost, has_courier=order.courier_id is not None)
    amounts = {
        RevenueType.SELLER_SHARE.value: split.seller,
        RevenueType.COURIER_SHARE.value: split.courier,
        RevenueType.PLATFORM_SHARE.value: split.platform,
    }

    # a re-run only fills in shares that failed the first time
    done = await settled_revenue_types(session, order.id)
    pending = [rt for rt, amount in amounts.items() if amount > 0 and rt not in done]
    if done and not pending:
        logger.info("revenue.distribute.already_done", extra={"order_number": order.order_number})
        return {"already_distributed": True, "order_number": order.order_number}

    platform_id = None
    if RevenueType.PLATFORM_SHARE.value in pending:
        platform_id = await platform_account_id(session)
        if platform_id is None:
            logger.error("revenue.distribute.platform_account_missing", extra={"order_number": order.order_number})
            raise ConfigurationError("Platform account is not configured")

    recipients = {
        RevenueType.SELLER_SHARE.value: await shop_owner_id(session, order.shop_id),
        RevenueType.COURIER_SHARE.value: order.courier_id,
        RevenueType.PLATFORM_SHARE.value: platform_id,
    }
    descriptions = _share_descriptions(order, split.delivery_charge)

    credited: List[Dict[str, Any]] = []
    failed: List[Dict[str, Any]] = []

    for revenue_type in pending:
        user_id, amount = recipients[revenue_type], amounts[revenue_type]
        try:
            async with session.begin_nested():
                await credit(
                    session, user_id, amount, descriptions[revenue_type], revenue_type,
                    order_id=order.id, reference=settlement_reference(order.order_number, revenue_type),
                )
        except (DomainError, SQLAlchemyError) as e:
            logger.exception("revenue.credit.failed", extra={
                "order_number": order.order_number, "revenue_type": revenue_type,
                "user_id": user_id, "amount": amount,
            })
            failed.append({"revenue_type": revenue_type, "amount": amount, "reason": str(e)})
            continue
        credited.append({"revenue_type": revenue_type, "amount": amount, "user_id": user_id})

    logger.info("revenue.distribute.success", extra={
        "order_number": order.order_number,
        "seller": split.seller, "courier": split.courier, "platform": split.platform,
        "failed": len(failed),
    })

    return {
        "already_distributed": False,
        "order_number": order.order_number,
        "split": {
            "total": order.total_amount,
            "delivery_charge": split.delivery_charge,
            "base": split.base,
            "seller": split.seller,
            "courier": split.courier,
            "platform": split.platform,
        },
        "credited": credited,
        "failed": failed,
    }
