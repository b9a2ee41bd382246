"""create marketplace tables

Revision ID: 3a9e51c07b2d
Revises:
Create Date: 2026-10-18 10:12:41.508113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a9e51c07b2d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_settlement_rows = sa.text("revenue_type IN ('seller_share', 'courier_share', 'platform_share')")


def _ts(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('public_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
        _ts('deleted_at', nullable=True),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_public_id', 'users', ['public_id'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'shop',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('public_id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        _ts('created_at'),
        sa.UniqueConstraint('owner_id'),
    )
    op.create_index('ix_shop_public_id', 'shop', ['public_id'], unique=True)

    op.create_table(
        'product',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('public_id', sa.Uuid(), nullable=False),
        sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shop.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('base_price', sa.BigInteger(), nullable=False),
        sa.Column('stock_qty', sa.Integer(), nullable=False),
        sa.Column('total_sold', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
        _ts('deleted_at', nullable=True),
        sa.CheckConstraint('stock_qty >= 0', name='ck_product_stock_non_negative'),
    )
    op.create_index('ix_product_public_id', 'product', ['public_id'], unique=True)
    op.create_index('ix_product_shop_id', 'product', ['shop_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('public_id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shop.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('courier_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('delivery_status', sa.String(length=32), nullable=True),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('subtotal', sa.BigInteger(), nullable=False),
        sa.Column('shipping_cost', sa.BigInteger(), nullable=False),
        sa.Column('tax_amount', sa.BigInteger(), nullable=False),
        sa.Column('discount_amount', sa.BigInteger(), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('shipping_address', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('delivery_notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        _ts('delivered_at', nullable=True),
        _ts('cancelled_at', nullable=True),
    )
    op.create_index('ix_orders_public_id', 'orders', ['public_id'], unique=True)
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_shop_id', 'orders', ['shop_id'])
    op.create_index('ix_orders_courier_id', 'orders', ['courier_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])

    op.create_table(
        'orderitem',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('product.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_snapshot', sa.BigInteger(), nullable=False),
        sa.UniqueConstraint('order_id', 'product_id', name='uq_order_product'),
        sa.CheckConstraint('quantity > 0', name='ck_order_item_quantity_positive'),
    )
    op.create_index('ix_orderitem_order_id', 'orderitem', ['order_id'])

    op.create_table(
        'wallet',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('balance', sa.BigInteger(), server_default=sa.text('0'), nullable=False),
        sa.Column('pending_balance', sa.BigInteger(), server_default=sa.text('0'), nullable=False),
        sa.Column('total_earnings', sa.BigInteger(), server_default=sa.text('0'), nullable=False),
        sa.Column('total_withdrawn', sa.BigInteger(), server_default=sa.text('0'), nullable=False),
        sa.Column('currency', sa.String(length=8), server_default=sa.text("'INR'"), nullable=False),
        _ts('last_transaction_at', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.UniqueConstraint('user_id'),
        sa.CheckConstraint('balance >= 0', name='ck_wallet_balance_non_negative'),
    )

    op.create_table(
        'payout',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('public_id', sa.Uuid(), nullable=False),
        sa.Column('payout_number', sa.String(length=40), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('upi_id', sa.String(length=128), nullable=True),
        sa.Column('bank_account_number', sa.String(length=34), nullable=True),
        sa.Column('bank_account_name', sa.String(length=128), nullable=True),
        sa.Column('bank_ifsc', sa.String(length=16), nullable=True),
        sa.Column('bank_name', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        _ts('requested_at'),
        _ts('processed_at', nullable=True),
        sa.Column('processed_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('failure_reason', sa.String(length=500), nullable=True),
        sa.Column('transaction_reference', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        _ts('updated_at'),
        sa.CheckConstraint('amount > 0', name='ck_payout_amount_positive'),
    )
    op.create_index('ix_payout_public_id', 'payout', ['public_id'], unique=True)
    op.create_index('ix_payout_payout_number', 'payout', ['payout_number'], unique=True)
    op.create_index('ix_payout_user_id', 'payout', ['user_id'])
    op.create_index('ix_payout_status', 'payout', ['status'])

    op.create_table(
        'wallettransaction',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('public_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('payout_id', sa.Integer(), sa.ForeignKey('payout.id', ondelete='SET NULL'), nullable=True),
        sa.Column('transaction_type', sa.String(length=8), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('revenue_type', sa.String(length=16), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('balance_before', sa.BigInteger(), nullable=False),
        sa.Column('balance_after', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint('amount >= 0', name='ck_wallet_txn_amount_non_negative'),
    )
    op.create_index('ix_wallettransaction_public_id', 'wallettransaction', ['public_id'], unique=True)
    op.create_index('ix_wallettransaction_user_id', 'wallettransaction', ['user_id'])
    op.create_index('ix_wallettransaction_order_id', 'wallettransaction', ['order_id'])
    op.create_index('ix_wallettransaction_payout_id', 'wallettransaction', ['payout_id'])
    op.create_index('ix_wallettransaction_revenue_type', 'wallettransaction', ['revenue_type'])
    op.create_index('ix_wallettransaction_status', 'wallettransaction', ['status'])
    op.create_index('ix_wallettransaction_created_at', 'wallettransaction', ['created_at'])
    op.create_index('uq_wallet_txn_order_share', 'wallettransaction', ['order_id', 'revenue_type'], unique=True,
                    postgresql_where=_settlement_rows, sqlite_where=_settlement_rows)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('wallettransaction')
    op.drop_table('payout')
    op.drop_table('wallet')
    op.drop_table('orderitem')
    op.drop_table('orders')
    op.drop_table('product')
    op.drop_table('shop')
    op.drop_table('users')
