from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from sqlalchemy import and_, case, func, select, update
from bazaar.common.custom_exceptions import NotFound
from bazaar.common.utils import now
from bazaar.orders.constants import logger
from bazaar.schema.full_schema import (OrderItem, Orders, OrderStatus, Product, ProductStatus, Shop, Users,
                                       DeliveryStatus)


async def get_order_by_pid(session, order_pid, lock: bool = False) -> Orders:
    stmt = select(Orders).where(Orders.public_id == order_pid).execution_options(populate_existing=True)
    if lock:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    order = res.scalar_one_or_none()
    if order is None:
        logger.warning("order.not_found", extra={"order_public_id": order_pid})
        raise NotFound("Order not found")
    return order


async def get_order_items(session, order_ids: Sequence[int]) -> Dict[int, List[OrderItem]]:
    grouped: Dict[int, List[OrderItem]] = {oid: [] for oid in order_ids}
    if not order_ids:
        return grouped
    stmt = select(OrderItem).where(OrderItem.order_id.in_(list(order_ids))).order_by(OrderItem.id)
    res = await session.execute(stmt)
    for item in res.scalars().all():
        grouped[item.order_id].append(item)
    return grouped


async def get_shop_by_pid(session, shop_pid) -> Optional[Shop]:
    res = await session.execute(select(Shop).where(Shop.public_id == shop_pid))
    return res.scalar_one_or_none()


async def shop_owner_id(session, shop_id: int) -> Optional[int]:
    res = await session.execute(select(Shop.owner_id).where(Shop.id == shop_id))
    return res.scalar_one_or_none()


async def shop_id_for_owner(session, owner_id: int) -> Optional[int]:
    res = await session.execute(select(Shop.id).where(Shop.owner_id == owner_id))
    return res.scalar_one_or_none()


async def fetch_products_for_order(session, product_pids: Iterable[Any]) -> Dict[Any, Product]:
    # row locks keep the availability check and the decrement consistent on postgres
    stmt = (
        select(Product)
        .where(Product.public_id.in_(list(product_pids)))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    res = await session.execute(stmt)
    return {p.public_id: p for p in res.scalars().all()}


async def decrement_stock(session, product_id: int, quantity: int) -> bool:
    """UPDATE ... WHERE stock_qty >= q, False when the guard rejected it."""
    stmt = (
        update(Product)
        .where(and_(
            Product.id == product_id,
            Product.stock_qty >= quantity,
            Product.deleted_at.is_(None),
            Product.status != ProductStatus.DISCONTINUED.value,
        ))
        .values(
            stock_qty=Product.stock_qty - quantity,
            total_sold=Product.total_sold + quantity,
            status=case(
                (Product.stock_qty - quantity == 0, ProductStatus.OUT_OF_STOCK.value),
                else_=Product.status,
            ),
            updated_at=now(),
        )
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def restore_stock(session, product_id: int, quantity: int) -> None:
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(
            stock_qty=Product.stock_qty + quantity,
            total_sold=case(
                (Product.total_sold >= quantity, Product.total_sold - quantity),
                else_=0,
            ),
            status=case(
                (Product.status == ProductStatus.OUT_OF_STOCK.value, ProductStatus.AVAILABLE.value),
                else_=Product.status,
            ),
            updated_at=now(),
        )
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    if res.rowcount == 0:
        logger.warning("order.stock_restore.product_missing", extra={"product_id": product_id, "quantity": quantity})


async def insert_order_with_items(session, order: Orders, lines: List[Dict[str, Any]]) -> List[OrderItem]:
    session.add(order)
    await session.flush()

    items = [
        OrderItem(
            order_id=order.id,
            product_id=line["product_id"],
            product_name=line["product_name"],
            quantity=line["quantity"],
            unit_price_snapshot=line["unit_price"],
        )
        for line in lines
    ]
    session.add_all(items)
    await session.flush()
    return items


async def claim_for_delivery(session, order_id: int, courier_id: int) -> bool:
    """Compare-and-set: only an unassigned, confirmed order can be claimed."""
    ts = now()
    stmt = (
        update(Orders)
        .where(and_(
            Orders.id == order_id,
            Orders.courier_id.is_(None),
            Orders.status == OrderStatus.CONFIRMED.value,
        ))
        .values(
            courier_id=courier_id,
            delivery_status=DeliveryStatus.ASSIGNED.value,
            status=OrderStatus.SHIPPED.value,
            updated_at=ts,
        )
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def order_id_by_pid(session, order_pid) -> Optional[int]:
    res = await session.execute(select(Orders.id).where(Orders.public_id == order_pid))
    return res.scalar_one_or_none()


async def fetch_orders(session, conds: List[Any], offset: int, limit: int) -> Tuple[List[Orders], int]:
    count_stmt = select(func.count()).select_from(Orders).where(*conds)
    total = (await session.execute(count_stmt)).scalar_one()

    stmt = (
        select(Orders)
        .where(*conds)
        .order_by(Orders.created_at.desc(), Orders.id.desc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all()), int(total)


async def public_refs(session, orders: Sequence[Orders],
                      items: Optional[Dict[int, List[OrderItem]]] = None) -> Dict[str, Dict[int, str]]:
    """Maps internal ids referenced by orders to public ids for responses."""
    user_ids = {o.buyer_id for o in orders} | {o.courier_id for o in orders if o.courier_id}
    shop_ids = {o.shop_id for o in orders}
    product_ids = {it.product_id for rows in (items or {}).values() for it in rows}

    refs: Dict[str, Dict[int, str]] = {"users": {}, "shops": {}, "products": {}}
    if user_ids:
        res = await session.execute(select(Users.id, Users.public_id).where(Users.id.in_(user_ids)))
        refs["users"] = {r[0]: str(r[1]) for r in res.all()}
    if shop_ids:
        res = await session.execute(select(Shop.id, Shop.public_id).where(Shop.id.in_(shop_ids)))
        refs["shops"] = {r[0]: str(r[1]) for r in res.all()}
    if product_ids:
        res = await session.execute(select(Product.id, Product.public_id).where(Product.id.in_(product_ids)))
        refs["products"] = {r[0]: str(r[1]) for r in res.all()}
    return refs
