import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.common.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from bazaar.common.utils import success_response
from bazaar.db.dependencies import get_session
from bazaar.orders.constants import logger
from bazaar.orders.models import (AssignCourierIn, DeliveryStatusIn, OrderCancelIn, OrderCreateIn, OrderStatusIn,
                                  PaymentConfirmIn, PaymentStatusIn)
from bazaar.orders.services import (accept_delivery, assign_courier, cancel_order, confirm_payment, create_order,
                                    distribute_order_revenue, get_order, list_available_for_delivery, list_orders,
                                    make_available_for_delivery, transition_status, update_delivery_status,
                                    update_payment_status)
from bazaar.schema.full_schema import OrderStatus, UserRoleName
from bazaar.user.dependencies import Actor, get_actor, require_roles

orders_router = APIRouter()
payments_router = APIRouter()


@orders_router.post("")
async def place_order(payload: OrderCreateIn, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    logger.info("order.create.attempt", extra={"user_public_id": actor.public_id, "lines": len(payload.items)})

    order = await create_order(session, actor, payload)
    await session.commit()

    return success_response({"order": order}, status_code=status.HTTP_201_CREATED, message="Order created successfully")


@orders_router.get("")
async def get_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    data = await list_orders(session, actor, order_status.value if order_status else None, page, limit)
    return success_response(data)


@orders_router.get("/available-for-delivery")
async def get_available_for_delivery(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    data = await list_available_for_delivery(session, actor, page, limit)
    return success_response(data)


@orders_router.get("/{order_id}")
async def get_order_details(order_id: uuid.UUID, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    order = await get_order(session, order_id, actor)
    return success_response({"order": order})


@orders_router.put("/{order_id}/status")
async def update_order_status(order_id: uuid.UUID, payload: OrderStatusIn, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    data = await transition_status(session, order_id, actor, payload.status.value, payload.notes)
    await session.commit()
    return success_response(data, message="Order status updated successfully")


@orders_router.put("/{order_id}/cancel")
async def cancel(order_id: uuid.UUID, payload: Optional[OrderCancelIn] = None, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    reason = payload.cancellation_reason if payload else None
    order = await cancel_order(session, order_id, actor, reason)
    await session.commit()
    return success_response({"order": order}, message="Order cancelled successfully")


@orders_router.put("/{order_id}/accept-delivery")
async def accept(order_id: uuid.UUID, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    order = await accept_delivery(session, order_id, actor)
    await session.commit()
    return success_response({"order": order}, message="Delivery accepted successfully")


@orders_router.put("/{order_id}/assign-delivery")
async def assign(order_id: uuid.UUID, payload: AssignCourierIn, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    order = await assign_courier(session, order_id, actor, payload.courier_id)
    await session.commit()
    return success_response({"order": order}, message="Courier assigned successfully")


@orders_router.put("/{order_id}/update-delivery-status")
async def delivery_status(order_id: uuid.UUID, payload: DeliveryStatusIn, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    data = await update_delivery_status(session, order_id, actor, payload.delivery_status.value, payload.notes)
    await session.commit()
    return success_response(data, message="Delivery status updated successfully")


@orders_router.put("/{order_id}/make-available-for-delivery")
async def requeue_delivery(order_id: uuid.UUID, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    order = await make_available_for_delivery(session, order_id, actor)
    await session.commit()
    return success_response({"order": order}, message="Order is available for delivery")


@orders_router.put("/{order_id}/update-payment-status")
async def payment_status(order_id: uuid.UUID, payload: PaymentStatusIn, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    data = await update_payment_status(
        session, order_id, actor, payload.payment_status.value,
        reference=payload.payment_reference,
        method=payload.payment_method.value if payload.payment_method else None,
    )
    await session.commit()
    return success_response(data, message="Payment status updated successfully")


@orders_router.post("/{order_id}/distribute-revenue")
async def distribute(order_id: uuid.UUID, actor: Actor = Depends(require_roles(UserRoleName.ADMIN)),
    session: AsyncSession = Depends(get_session)):

    result = await distribute_order_revenue(session, order_id)
    await session.commit()
    message = "Revenue already distributed" if result["already_distributed"] else "Revenue distributed"
    return success_response(result, message=message)


# called by the gateway integration after it has verified the charge
@payments_router.post("/confirm")
async def payment_confirmed(payload: PaymentConfirmIn, actor: Actor = Depends(require_roles(UserRoleName.ADMIN)),
    session: AsyncSession = Depends(get_session)):

    data = await confirm_payment(
        session, payload.order_id, payload.gateway_reference,
        payload.method.value if payload.method else None,
    )
    await session.commit()
    return success_response(data, message="Payment confirmed")
