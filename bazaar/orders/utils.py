from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from bazaar.common.utils import epoch_ms, random_code
from bazaar.config.settings import config_settings
from bazaar.schema.full_schema import OrderItem, Orders


def generate_order_number() -> str:
    return f"ORD-{epoch_ms()}-{random_code(5)}"


def compute_order_totals(items: Iterable[Dict[str, Any]], discount: int = 0) -> Dict[str, int]:
    """items carry server side prices: {"unit_price": int, "quantity": int}"""
    subtotal = sum(int(it["unit_price"]) * int(it["quantity"]) for it in items)
    shipping = 0 if subtotal >= config_settings.FREE_DELIVERY_THRESHOLD else config_settings.DELIVERY_CHARGE
    tax = int((Decimal(subtotal) * config_settings.TAX_PERCENT / 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    discount = min(discount, subtotal + shipping + tax)
    total = subtotal + shipping + tax - discount
    return {
        "subtotal": subtotal,
        "shipping_cost": shipping,
        "tax_amount": tax,
        "discount_amount": discount,
        "total_amount": total,
    }


def merge_order_lines(items) -> Dict[Any, int]:
    """Collapses repeated products into one line, keeping request order."""
    merged: Dict[Any, int] = {}
    for it in items:
        merged[it.product_id] = merged.get(it.product_id, 0) + it.quantity
    return merged


def _iso(dt):
    return dt.isoformat() if dt else None


def order_to_dict(order: Orders, items: Optional[List[OrderItem]] = None,
                  refs: Optional[Dict[str, Dict[int, str]]] = None) -> Dict[str, Any]:
    refs = refs or {}
    users = refs.get("users", {})
    shops = refs.get("shops", {})
    products = refs.get("products", {})
    out = {
        "public_id": str(order.public_id),
        "order_number": order.order_number,
        "buyer_id": users.get(order.buyer_id),
        "shop_id": shops.get(order.shop_id),
        "courier_id": users.get(order.courier_id) if order.courier_id else None,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "payment_reference": order.payment_reference,
        "delivery_status": order.delivery_status,
        "currency": order.currency,
        "subtotal": int(order.subtotal),
        "shipping_cost": int(order.shipping_cost),
        "tax_amount": int(order.tax_amount),
        "discount_amount": int(order.discount_amount),
        "total_amount": int(order.total_amount),
        "shipping_address": order.shipping_address,
        "notes": order.notes,
        "delivery_notes": order.delivery_notes,
        "cancellation_reason": order.cancellation_reason,
        "created_at": _iso(order.created_at),
        "delivered_at": _iso(order.delivered_at),
        "cancelled_at": _iso(order.cancelled_at),
    }
    if items is not None:
        out["items"] = [
            {
                "product_id": products.get(it.product_id),
                "product_name": it.product_name,
                "quantity": it.quantity,
                "unit_price": int(it.unit_price_snapshot),
                "line_total": int(it.unit_price_snapshot) * it.quantity,
            }
            for it in items
        ]
    return out
