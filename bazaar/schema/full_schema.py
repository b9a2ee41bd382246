import enum
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import JSON, BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint, Uuid, text
from sqlmodel import Column, SQLModel, Field, String
from uuid6 import uuid7
from bazaar.common.utils import now


class UserRoleName(str, enum.Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    COURIER = "courier"
    ADMIN = "admin"


class Users(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)
    )
    email: Optional[str] = Field(default=None,sa_column=Column(String(320), nullable=True,unique=True))
    name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    role: str = Field(default=UserRoleName.CUSTOMER.value, sa_column=Column(String(16), nullable=False, index=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    deleted_at: Optional[datetime] = Field(default=None,
        sa_column=Column(DateTime(timezone=True)))


# one shop per seller
class Shop(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    owner_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), unique=True, nullable=False))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))


class ProductStatus(str, enum.Enum):
    AVAILABLE = "available"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)
    )
    shop_id: int = Field(sa_column=Column(Integer, ForeignKey("shop.id", ondelete="CASCADE"), index=True, nullable=False))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    base_price: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))  # rs
    stock_qty: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    total_sold: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default=text("0")))
    status: str = Field(default=ProductStatus.AVAILABLE.value, sa_column=Column(String(16), nullable=False))

    created_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    deleted_at: Optional[datetime] = Field(default=None,
        sa_column=Column(DateTime(timezone=True)))

    __table_args__ = (
        CheckConstraint("stock_qty >= 0", name="ck_product_stock_non_negative"),
    )


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    UPI = "upi"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    NET_BANKING = "net_banking"


class DeliveryStatus(str, enum.Enum):
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"


# User --> Orders (1:many), Shop --> Orders (1:many)
class Orders(SQLModel, table=True):

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    order_number: str = Field(sa_column=Column(String(32), unique=True, index=True, nullable=False))
    buyer_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False))
    shop_id: int = Field(sa_column=Column(Integer, ForeignKey("shop.id", ondelete="RESTRICT"), index=True, nullable=False))
    courier_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True))

    status: str = Field(default=OrderStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    payment_status: str = Field(default=PaymentStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    payment_method: str = Field(default=PaymentMethod.CASH_ON_DELIVERY.value, sa_column=Column(String(32), nullable=False))
    payment_reference: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    delivery_status: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))

    currency: str = Field(default="INR", sa_column=Column(String(8), nullable=False))
    subtotal: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))  # stored in rs
    shipping_cost: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    tax_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    discount_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    total_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))

    shipping_address: dict = Field(sa_column=Column(JSON, nullable=False))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    delivery_notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    cancellation_reason: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))

    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))
    delivered_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))


# Order --> OrderItems (1:many), price is a snapshot taken at checkout
class OrderItem(SQLModel, table=True):

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(sa_column=Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False))
    product_id: int = Field(sa_column=Column(Integer, ForeignKey("product.id", ondelete="RESTRICT"), nullable=False))
    product_name: str = Field(sa_column=Column(String(255), nullable=False))
    quantity: int = Field(sa_column=Column(Integer, nullable=False))
    unit_price_snapshot: int = Field(sa_column=Column(BigInteger, nullable=False))  # rs

    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_order_product"),
        CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
    )


class Wallet(SQLModel, table=True):

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), unique=True, nullable=False))
    balance: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, server_default=text("0")))
    pending_balance: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, server_default=text("0")))
    total_earnings: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, server_default=text("0")))
    total_withdrawn: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, server_default=text("0")))
    currency: str = Field(default="INR", sa_column=Column(String(8), nullable=False, server_default=text("'INR'")))
    last_transaction_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
    )


class TransactionType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class RevenueType(str, enum.Enum):
    SELLER_SHARE = "seller_share"
    COURIER_SHARE = "courier_share"
    PLATFORM_SHARE = "platform_share"
    PAYOUT = "payout"
    # customer refunds only flip payment_status today, nothing credits this yet
    REFUND = "refund"


SETTLEMENT_REVENUE_TYPES = (
    RevenueType.SELLER_SHARE.value,
    RevenueType.COURIER_SHARE.value,
    RevenueType.PLATFORM_SHARE.value,
)


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_settlement_rows = text("revenue_type IN ('seller_share', 'courier_share', 'platform_share')")


# append only ledger audit trail, one row per wallet mutation
class WalletTransaction(SQLModel, table=True):

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False))
    order_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), index=True, nullable=True))
    payout_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("payout.id", ondelete="SET NULL"), index=True, nullable=True))
    transaction_type: str = Field(sa_column=Column(String(8), nullable=False))
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    currency: str = Field(default="INR", sa_column=Column(String(8), nullable=False))
    revenue_type: str = Field(sa_column=Column(String(16), nullable=False, index=True))
    description: str = Field(sa_column=Column(String(500), nullable=False))
    reference: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    balance_before: int = Field(sa_column=Column(BigInteger, nullable=False))
    balance_after: int = Field(sa_column=Column(BigInteger, nullable=False))
    status: str = Field(default=TransactionStatus.COMPLETED.value, sa_column=Column(String(16), nullable=False, index=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now, index=True))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_wallet_txn_amount_non_negative"),
        # second line of defence behind the settlement advisory lock
        Index("uq_wallet_txn_order_share", "order_id", "revenue_type", unique=True,
              postgresql_where=_settlement_rows, sqlite_where=_settlement_rows),
    )


class PayoutMethod(str, enum.Enum):
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    WALLET = "wallet"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Payout(SQLModel, table=True):

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    payout_number: str = Field(sa_column=Column(String(40), unique=True, index=True, nullable=False))
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False))
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    currency: str = Field(default="INR", sa_column=Column(String(8), nullable=False))
    method: str = Field(sa_column=Column(String(16), nullable=False))

    upi_id: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    bank_account_number: Optional[str] = Field(default=None, sa_column=Column(String(34), nullable=True))
    bank_account_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    bank_ifsc: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))
    bank_name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))

    status: str = Field(default=PayoutStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    requested_at: datetime = Field(default_factory=now, sa_column=Column(DateTime(timezone=True), nullable=False, default=now))
    processed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    processed_by: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True))
    failure_reason: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))
    transaction_reference: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    notes: Optional[str] = Field(default=None, sa_column=Column(String(500), nullable=True))
    updated_at: datetime = Field(default_factory=now,sa_column=Column(DateTime(timezone=True), nullable=False,default=now, onupdate=now))

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payout_amount_positive"),
    )
