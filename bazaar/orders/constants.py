from bazaar.common.logging_setup import get_logger
from bazaar.schema.full_schema import DeliveryStatus as DS, OrderStatus as OS, PaymentStatus as PS

logger = get_logger("bazaar.orders")

MAX_ITEM_QUANTITY = 100

TERMINAL_STATUSES = frozenset({OS.DELIVERED.value, OS.CANCELLED.value, OS.REFUNDED.value})

# confirmed -> delivered is seller self-delivery, no courier involved
ORDER_TRANSITIONS = {
    OS.PENDING.value: {OS.CONFIRMED.value, OS.CANCELLED.value, OS.REFUNDED.value},
    OS.CONFIRMED.value: {OS.SHIPPED.value, OS.DELIVERED.value, OS.CANCELLED.value, OS.REFUNDED.value},
    OS.SHIPPED.value: {OS.DELIVERED.value, OS.CANCELLED.value, OS.REFUNDED.value},
}

# delivery sub-states only exist while the order is confirmed or shipped
DELIVERY_ACTIVE_STATUSES = frozenset({OS.CONFIRMED.value, OS.SHIPPED.value})

DELIVERY_TRANSITIONS = {
    DS.ASSIGNED.value: {DS.PICKED_UP.value, DS.FAILED.value},
    DS.PICKED_UP.value: {DS.OUT_FOR_DELIVERY.value, DS.FAILED.value},
    DS.OUT_FOR_DELIVERY.value: {DS.DELIVERED.value, DS.FAILED.value},
}

PAYMENT_TRANSITIONS = {
    PS.PENDING.value: {PS.PAID.value, PS.FAILED.value},
    PS.FAILED.value: {PS.PAID.value},
    PS.PAID.value: {PS.REFUNDED.value},
}

DELIVERY_FAILED_REASON = "Delivery failed"
