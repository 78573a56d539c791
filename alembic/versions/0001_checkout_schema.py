"""Create checkout tables.

Revision ID: 0001_checkout_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '0001_checkout_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('city', sa.String(120), nullable=True),
        sa.Column('state', sa.String(120), nullable=True),
        sa.Column('postal_code', sa.String(32), nullable=True),
        sa.Column('country', sa.String(120), nullable=False, server_default='Nigeria'),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('is_guest', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_customers_email', 'customers', ['email'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(14, 2), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tx_ref', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('coupon', sa.String(64), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=True),
        sa.Column('discount_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('shipping_cost', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('total_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='NGN'),
        sa.Column('payment_reference', sa.String(255), nullable=False),
        sa.Column('payment_transaction_id', sa.String(255), nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=False, server_default='flutterwave'),
        sa.Column('shipping_address', sa.String(1000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    # Unique tx_ref closes the duplicate-order race between concurrent verifications
    op.create_index('ix_orders_tx_ref', 'orders', ['tx_ref'], unique=True)
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_id', sa.String(64), nullable=True),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('image', sa.String(1000), nullable=True),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_price', sa.Numeric(14, 2), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tx_ref', sa.String(255), nullable=False),
        sa.Column('gateway_transaction_id', sa.String(255), nullable=True),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='NGN'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('gateway', sa.String(50), nullable=False, server_default='flutterwave'),
        sa.Column('gateway_data', sa.JSON(), nullable=True),
        sa.Column('checkout_payload', sa.JSON(), nullable=True),
        sa.Column('verify_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_transactions_tx_ref', 'transactions', ['tx_ref'], unique=True)
    op.create_index('ix_transactions_gateway_transaction_id', 'transactions', ['gateway_transaction_id'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_customer_id', 'transactions', ['customer_id'])


def downgrade() -> None:
    op.drop_table('transactions')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('customers')
