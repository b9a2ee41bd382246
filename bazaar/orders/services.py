from typing import Any, Dict, List, Optional
from bazaar.common.custom_exceptions import (AlreadyAssigned, DomainError, Forbidden, InvalidTransition, NotFound,
                                             OutOfStock, ProductUnavailable, ValidationFailed)
from bazaar.common.utils import now
from bazaar.config.settings import config_settings
from bazaar.orders.constants import (DELIVERY_ACTIVE_STATUSES, DELIVERY_FAILED_REASON, DELIVERY_TRANSITIONS,
                                     ORDER_TRANSITIONS, PAYMENT_TRANSITIONS, TERMINAL_STATUSES, logger)
from bazaar.orders.models import OrderCreateIn
from bazaar.orders.repository import (claim_for_delivery, decrement_stock, fetch_orders, fetch_products_for_order,
                                      get_order_by_pid, get_order_items, get_shop_by_pid, insert_order_with_items,
                                      order_id_by_pid, public_refs, restore_stock, shop_id_for_owner, shop_owner_id)
from bazaar.orders.utils import compute_order_totals, generate_order_number, merge_order_lines, order_to_dict
from bazaar.revenue.services import distribute_revenue
from bazaar.schema.full_schema import (DeliveryStatus, OrderStatus, Orders, PaymentMethod, PaymentStatus,
                                       ProductStatus, UserRoleName)
from bazaar.user.dependencies import Actor
from bazaar.user.repository import get_user_by_pid

ROLE = UserRoleName


async def serialize_order(session, order: Orders) -> Dict[str, Any]:
    items = await get_order_items(session, [order.id])
    refs = await public_refs(session, [order], items)
    return order_to_dict(order, items[order.id], refs)


async def _is_shop_owner(session, actor: Actor, order: Orders) -> bool:
    if actor.role != ROLE.SELLER.value:
        return False
    return await shop_owner_id(session, order.shop_id) == actor.user_id


def _is_assigned_courier(actor: Actor, order: Orders) -> bool:
    return actor.role == ROLE.COURIER.value and order.courier_id == actor.user_id


async def _restore_order_stock(session, order: Orders) -> None:
    items = await get_order_items(session, [order.id])
    for item in items[order.id]:
        await restore_stock(session, item.product_id, item.quantity)


async def _reserve_order_stock(session, order: Orders) -> None:
    items = await get_order_items(session, [order.id])
    for item in items[order.id]:
        if not await decrement_stock(session, item.product_id, item.quantity):
            raise OutOfStock(f"Insufficient stock for {item.product_name}",
                             details={"product_name": item.product_name, "requested": item.quantity})


async def settle_if_ready(session, order: Orders) -> Optional[Dict[str, Any]]:
    """Triggers revenue distribution once an order is both delivered and paid.

    Settlement problems never undo the delivery or payment update that
    triggered them: the attempt runs in a savepoint and an admin can re-run it.
    """
    if order.status != OrderStatus.DELIVERED.value or order.payment_status != PaymentStatus.PAID.value:
        return None
    try:
        async with session.begin_nested():
            return await distribute_revenue(session, order)
    except DomainError:
        logger.exception("order.settlement.failed", extra={"order_number": order.order_number})
        return None


async def _apply_transition(session, order: Orders, new_status: str, reason: Optional[str] = None,
                            notes: Optional[str] = None) -> Optional[Dict[str, Any]]:
    current = order.status
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(f"Order is already {current}",
                                details={"from": current, "to": new_status})
    if new_status not in ORDER_TRANSITIONS.get(current, ()):
        raise InvalidTransition(f"Cannot move order from {current} to {new_status}",
                                details={"from": current, "to": new_status})

    ts = now()
    if new_status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
        await _restore_order_stock(session, order)
        order.cancellation_reason = reason
        order.cancelled_at = ts
        if new_status == OrderStatus.REFUNDED.value and order.payment_status == PaymentStatus.PAID.value:
            order.payment_status = PaymentStatus.REFUNDED.value

    if new_status == OrderStatus.DELIVERED.value:
        order.delivered_at = ts
        if order.courier_id is not None:
            order.delivery_status = DeliveryStatus.DELIVERED.value
        # cash is collected at the door
        if (order.payment_method == PaymentMethod.CASH_ON_DELIVERY.value
                and order.payment_status == PaymentStatus.PENDING.value):
            order.payment_status = PaymentStatus.PAID.value

    if notes:
        order.notes = notes
    order.status = new_status
    order.updated_at = ts
    await session.flush()

    logger.info("order.status.changed", extra={
        "order_number": order.order_number, "from": current, "to": new_status,
    })

    if new_status == OrderStatus.DELIVERED.value:
        return await settle_if_ready(session, order)
    return None


async def create_order(session, actor: Actor, payload: OrderCreateIn) -> Dict[str, Any]:
    if actor.role != ROLE.CUSTOMER.value:
        raise Forbidden("Only customers can place orders")

    shop = await get_shop_by_pid(session, payload.shop_id)
    if shop is None:
        raise NotFound("Shop not found")

    lines = merge_order_lines(payload.items)
    products = await fetch_products_for_order(session, lines.keys())

    # validate every line before touching stock
    priced: List[Dict[str, Any]] = []
    for product_pid, quantity in lines.items():
        product = products.get(product_pid)
        if product is None or product.deleted_at is not None:
            raise NotFound(f"Product {product_pid} not found")
        if product.shop_id != shop.id:
            raise ValidationFailed(f"Product {product.name} is not sold by this shop")
        if product.status == ProductStatus.DISCONTINUED.value:
            raise ProductUnavailable(f"Product {product.name} is not available",
                                     details={"product_id": str(product_pid)})
        if product.stock_qty < quantity:
            raise OutOfStock(f"Insufficient stock for {product.name}. Available: {product.stock_qty}",
                             details={"product_id": str(product_pid), "available": product.stock_qty,
                                      "requested": quantity})
        priced.append({
            "product_id": product.id,
            "product_name": product.name,
            "quantity": quantity,
            "unit_price": int(product.base_price),
        })

    for line in priced:
        if not await decrement_stock(session, line["product_id"], line["quantity"]):
            # lost a race with a concurrent order, the caller's rollback undoes earlier lines
            logger.warning("order.create.stock_race", extra={"product_id": line["product_id"]})
            raise OutOfStock(f"Insufficient stock for {line['product_name']}",
                             details={"requested": line["quantity"]})

    totals = compute_order_totals(priced)
    order = Orders(
        order_number=generate_order_number(),
        buyer_id=actor.user_id,
        shop_id=shop.id,
        payment_method=payload.payment_method.value,
        currency=config_settings.CURRENCY,
        shipping_address=payload.shipping_address.model_dump(),
        notes=payload.notes,
        **totals,
    )
    await insert_order_with_items(session, order, priced)

    logger.info("order.create.success", extra={
        "order_number": order.order_number, "buyer_id": actor.user_id,
        "total_amount": order.total_amount, "lines": len(priced),
    })
    return await serialize_order(session, order)


async def transition_status(session, order_pid, actor: Actor, new_status: str,
                            notes: Optional[str] = None) -> Dict[str, Any]:
    order = await get_order_by_pid(session, order_pid, lock=True)

    allowed = actor.is_admin or _is_assigned_courier(actor, order) or await _is_shop_owner(session, actor, order)
    if not allowed:
        raise Forbidden("You do not have permission to update this order")

    reason = notes if new_status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value) else None
    settlement = await _apply_transition(session, order, new_status, reason=reason, notes=notes)
    return {"order": await serialize_order(session, order), "settlement": settlement}


async def cancel_order(session, order_pid, actor: Actor, reason: Optional[str] = None) -> Dict[str, Any]:
    order = await get_order_by_pid(session, order_pid, lock=True)

    allowed = (
        actor.is_admin
        or (actor.role == ROLE.CUSTOMER.value and order.buyer_id == actor.user_id)
        or await _is_shop_owner(session, actor, order)
    )
    if not allowed:
        raise Forbidden("You do not have permission to cancel this order")

    if order.status in TERMINAL_STATUSES:
        raise InvalidTransition("Order cannot be cancelled in current status",
                                details={"status": order.status})

    await _apply_transition(session, order, OrderStatus.CANCELLED.value, reason=reason or "Cancelled")
    return await serialize_order(session, order)


async def accept_delivery(session, order_pid, actor: Actor) -> Dict[str, Any]:
    if actor.role != ROLE.COURIER.value:
        raise Forbidden("Only couriers can accept deliveries")

    order_id = await order_id_by_pid(session, order_pid)
    if order_id is None:
        raise NotFound("Order not found")

    if not await claim_for_delivery(session, order_id, actor.user_id):
        logger.info("order.delivery.claim_lost", extra={"order_id": order_id, "courier_id": actor.user_id})
        raise AlreadyAssigned("Order is already assigned or not ready for delivery")

    order = await get_order_by_pid(session, order_pid)
    logger.info("order.delivery.accepted", extra={"order_number": order.order_number, "courier_id": actor.user_id})
    return await serialize_order(session, order)


async def assign_courier(session, order_pid, actor: Actor, courier_pid) -> Dict[str, Any]:
    order = await get_order_by_pid(session, order_pid)
    if not (actor.is_admin or await _is_shop_owner(session, actor, order)):
        raise Forbidden("You do not have permission to assign delivery for this order")

    courier = await get_user_by_pid(session, courier_pid)
    if courier is None or courier.role != ROLE.COURIER.value or courier.deleted_at is not None:
        raise NotFound("Valid courier not found")

    if not await claim_for_delivery(session, order.id, courier.id):
        raise AlreadyAssigned("Order is already assigned or not ready for delivery")

    order = await get_order_by_pid(session, order_pid)
    logger.info("order.delivery.assigned", extra={"order_number": order.order_number, "courier_id": courier.id})
    return await serialize_order(session, order)


async def update_delivery_status(session, order_pid, actor: Actor, delivery_status: str,
                                 notes: Optional[str] = None) -> Dict[str, Any]:
    order = await get_order_by_pid(session, order_pid, lock=True)

    if not _is_assigned_courier(actor, order):
        raise Forbidden("Only the assigned courier can update delivery status")

    if order.status not in DELIVERY_ACTIVE_STATUSES:
        raise InvalidTransition(f"Delivery cannot be updated for a {order.status} order")

    current = order.delivery_status
    if delivery_status not in DELIVERY_TRANSITIONS.get(current, ()):
        raise InvalidTransition(f"Cannot move delivery from {current} to {delivery_status}",
                                details={"from": current, "to": delivery_status})

    if notes:
        order.delivery_notes = notes

    settlement = None
    if delivery_status == DeliveryStatus.DELIVERED.value:
        settlement = await _apply_transition(session, order, OrderStatus.DELIVERED.value)
    elif delivery_status == DeliveryStatus.FAILED.value:
        order.delivery_status = DeliveryStatus.FAILED.value
        # payment stays as it is, nothing to settle
        await _apply_transition(session, order, OrderStatus.CANCELLED.value,
                                reason=f"{DELIVERY_FAILED_REASON}: {notes}" if notes else DELIVERY_FAILED_REASON)
    else:
        order.delivery_status = delivery_status
        order.updated_at = now()
        await session.flush()

    logger.info("order.delivery.updated", extra={
        "order_number": order.order_number, "from": current, "to": delivery_status,
    })
    return {"order": await serialize_order(session, order), "settlement": settlement}


async def make_available_for_delivery(session, order_pid, actor: Actor) -> Dict[str, Any]:
    order = await get_order_by_pid(session, order_pid, lock=True)

    if not (actor.is_admin or await _is_shop_owner(session, actor, order)):
        raise Forbidden("You do not have permission to update this order")

    failed_delivery = (order.status == OrderStatus.CANCELLED.value
                       and order.delivery_status == DeliveryStatus.FAILED.value)
    if order.status not in DELIVERY_ACTIVE_STATUSES and not failed_delivery:
        raise InvalidTransition(f"A {order.status} order cannot be made available for delivery")
    if order.payment_status == PaymentStatus.REFUNDED.value:
        raise InvalidTransition("A refunded order cannot be made available for delivery")

    if failed_delivery:
        # stock went back on the shelf when the delivery failed
        await _reserve_order_stock(session, order)
        order.cancellation_reason = None
        order.cancelled_at = None

    previous_courier = order.courier_id
    order.courier_id = None
    order.delivery_status = None
    order.status = OrderStatus.CONFIRMED.value
    order.updated_at = now()
    await session.flush()

    logger.info("order.delivery.requeued", extra={
        "order_number": order.order_number, "previous_courier_id": previous_courier,
    })
    return await serialize_order(session, order)


async def _mark_paid(session, order: Orders, gateway_reference: Optional[str],
                     method: Optional[str]) -> Optional[Dict[str, Any]]:
    if order.status in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
        raise InvalidTransition(f"Cannot take payment for a {order.status} order")

    order.payment_status = PaymentStatus.PAID.value
    if gateway_reference:
        order.payment_reference = gateway_reference
    if method:
        order.payment_method = method
    if order.status == OrderStatus.PENDING.value:
        order.status = OrderStatus.CONFIRMED.value
    order.updated_at = now()
    await session.flush()

    logger.info("order.payment.paid", extra={"order_number": order.order_number, "method": order.payment_method})
    return await settle_if_ready(session, order)


async def confirm_payment(session, order_pid, gateway_reference: str,
                          method: Optional[str] = None) -> Dict[str, Any]:
    """Entry point for the payment gateway once a charge is confirmed. Safe to call again."""
    order = await get_order_by_pid(session, order_pid, lock=True)

    if order.payment_status == PaymentStatus.PAID.value:
        logger.info("order.payment.already_paid", extra={"order_number": order.order_number})
        return {"order": await serialize_order(session, order), "already_paid": True, "settlement": None}

    settlement = await _mark_paid(session, order, gateway_reference, method)
    return {"order": await serialize_order(session, order), "already_paid": False, "settlement": settlement}


async def update_payment_status(session, order_pid, actor: Actor, payment_status: str,
                                reference: Optional[str] = None, method: Optional[str] = None) -> Dict[str, Any]:
    order = await get_order_by_pid(session, order_pid, lock=True)

    allowed = actor.is_admin or _is_assigned_courier(actor, order) or await _is_shop_owner(session, actor, order)
    if not allowed:
        raise Forbidden("You do not have permission to update payment for this order")

    current = order.payment_status
    if payment_status not in PAYMENT_TRANSITIONS.get(current, ()):
        raise InvalidTransition(f"Cannot move payment from {current} to {payment_status}",
                                details={"from": current, "to": payment_status})

    settlement = None
    if payment_status == PaymentStatus.PAID.value:
        settlement = await _mark_paid(session, order, reference, method)
    elif payment_status == PaymentStatus.REFUNDED.value:
        if not actor.is_admin:
            raise Forbidden("Only admins can refund payments")
        if order.status not in (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value):
            raise InvalidTransition("Only cancelled orders can be refunded")
        order.payment_status = PaymentStatus.REFUNDED.value
        order.updated_at = now()
        await session.flush()
    else:
        order.payment_status = payment_status
        order.updated_at = now()
        await session.flush()

    logger.info("order.payment.updated", extra={
        "order_number": order.order_number, "from": current, "to": payment_status,
    })
    return {"order": await serialize_order(session, order), "settlement": settlement}


async def distribute_order_revenue(session, order_pid) -> Dict[str, Any]:
    order = await get_order_by_pid(session, order_pid, lock=True)
    return await distribute_revenue(session, order)


async def _serialize_page(session, orders: List[Orders], total: int, page: int, limit: int) -> Dict[str, Any]:
    items = await get_order_items(session, [o.id for o in orders])
    refs = await public_refs(session, orders, items)
    return {
        "items": [order_to_dict(o, items[o.id], refs) for o in orders],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


async def list_orders(session, actor: Actor, status: Optional[str] = None,
                      page: int = 1, limit: int = 20) -> Dict[str, Any]:
    conds = []
    if actor.role == ROLE.CUSTOMER.value:
        conds.append(Orders.buyer_id == actor.user_id)
    elif actor.role == ROLE.SELLER.value:
        shop_id = await shop_id_for_owner(session, actor.user_id)
        if shop_id is None:
            return await _serialize_page(session, [], 0, page, limit)
        conds.append(Orders.shop_id == shop_id)
    elif actor.role == ROLE.COURIER.value:
        conds.append(Orders.courier_id == actor.user_id)
    if status:
        conds.append(Orders.status == status)

    orders, total = await fetch_orders(session, conds, offset=(page - 1) * limit, limit=limit)
    return await _serialize_page(session, orders, total, page, limit)


async def list_available_for_delivery(session, actor: Actor, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    if actor.role not in (ROLE.COURIER.value, ROLE.ADMIN.value):
        raise Forbidden("Only couriers can browse deliveries")
    conds = [Orders.status == OrderStatus.CONFIRMED.value, Orders.courier_id.is_(None)]
    orders, total = await fetch_orders(session, conds, offset=(page - 1) * limit, limit=limit)
    return await _serialize_page(session, orders, total, page, limit)


async def get_order(session, order_pid, actor: Actor) -> Dict[str, Any]:
    order = await get_order_by_pid(session, order_pid)

    open_for_couriers = (actor.role == ROLE.COURIER.value and order.courier_id is None
                         and order.status == OrderStatus.CONFIRMED.value)
    allowed = (
        actor.is_admin
        or order.buyer_id == actor.user_id
        or order.courier_id == actor.user_id
        or open_for_couriers
        or await _is_shop_owner(session, actor, order)
    )
    if not allowed:
        raise Forbidden("You do not have permission to view this order")
    return await serialize_order(session, order)
