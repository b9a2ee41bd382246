import uuid
from typing import List, Optional
from pydantic import BaseModel, Field
from bazaar.orders.constants import MAX_ITEM_QUANTITY
from bazaar.schema.full_schema import DeliveryStatus, OrderStatus, PaymentMethod, PaymentStatus


class OrderItemIn(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1, le=MAX_ITEM_QUANTITY)


class ShippingAddressIn(BaseModel):
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=128)
    state: str = Field(..., min_length=1, max_length=128)
    postal_code: str = Field(..., min_length=3, max_length=16)
    country: str = Field("IN", max_length=64)
    phone: Optional[str] = Field(None, max_length=20)


class OrderCreateIn(BaseModel):
    shop_id: uuid.UUID
    items: List[OrderItemIn] = Field(..., min_length=1)
    shipping_address: ShippingAddressIn
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    notes: Optional[str] = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class OrderStatusIn(BaseModel):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=500)


class OrderCancelIn(BaseModel):
    cancellation_reason: Optional[str] = Field(None, max_length=500)


class DeliveryStatusIn(BaseModel):
    delivery_status: DeliveryStatus
    notes: Optional[str] = Field(None, max_length=500)


class AssignCourierIn(BaseModel):
    courier_id: uuid.UUID


class PaymentStatusIn(BaseModel):
    payment_status: PaymentStatus
    payment_reference: Optional[str] = Field(None, max_length=128)
    payment_method: Optional[PaymentMethod] = None


class PaymentConfirmIn(BaseModel):
    order_id: uuid.UUID
    gateway_reference: str = Field(..., min_length=1, max_length=128)
    method: Optional[PaymentMethod] = None
