"""initial_store_schema

Revision ID: 3f9c1a7d2b10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    'store_order_status_enum': ('pending', 'processing', 'failed', 'success', 'done'),
    'store_payment_status_enum': ('pending', 'completed', 'failed', 'refunded'),
    'store_payment_method_enum': ('stripe', 'paypal'),
    'store_donation_status_enum': ('pending', 'completed', 'failed'),
    'store_webhook_event_status_enum': ('received', 'applying', 'applied', 'failed'),
    'store_setting_type_enum': ('string', 'boolean', 'integer', 'json'),
    'store_notification_type_enum': (
        'new_order', 'new_donation', 'payment_received', 'payment_failed', 'system',
    ),
}


def _enum(name: str) -> postgresql.ENUM:
    # Types are created once up front; several tables share payment_method
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps(updated: bool = True) -> list:
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), nullable=True)]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:
    """Upgrade schema - Create store tables."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # Catalog
    op.create_table(
        'store_categories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('name_translations', sa.JSON(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_store_categories'),
        sa.UniqueConstraint('slug', name='uq_store_categories_slug'),
    )
    op.create_table(
        'store_colors',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('hex_code', sa.String(length=7), nullable=True),
        sa.Column('name_translations', sa.JSON(), nullable=True),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_store_colors'),
        sa.UniqueConstraint('name', name='uq_store_colors_name'),
    )
    op.create_table(
        'store_sizes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('category_type', sa.String(length=50), server_default='general', nullable=True),
        sa.Column('name_translations', sa.JSON(), nullable=True),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_store_sizes'),
        sa.UniqueConstraint('name', 'category_type', name='uq_store_sizes_name'),
    )
    op.create_table(
        'store_products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('category_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('name_translations', sa.JSON(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('description_translations', sa.JSON(), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('stock', sa.Integer(), server_default='0', nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        sa.Column('is_donatable', sa.Boolean(), server_default='false', nullable=True),
        *_timestamps(),
        sa.CheckConstraint('stock >= 0', name='ck_store_products_product_stock_non_negative'),
        sa.ForeignKeyConstraint(
            ['category_id'], ['store_categories.id'],
            name='fk_store_products_category_id_store_categories', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_store_products'),
        sa.UniqueConstraint('slug', name='uq_store_products_slug'),
    )
    op.create_table(
        'store_product_variants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('color_id', sa.Uuid(), nullable=True),
        sa.Column('size_id', sa.Uuid(), nullable=True),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('stock', sa.Integer(), server_default='0', nullable=True),
        sa.Column('price_adjustment', sa.Numeric(precision=10, scale=2), server_default='0', nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=True),
        *_timestamps(),
        sa.CheckConstraint('stock >= 0', name='ck_store_product_variants_variant_stock_non_negative'),
        sa.ForeignKeyConstraint(
            ['product_id'], ['store_products.id'],
            name='fk_store_product_variants_product_id_store_products', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['color_id'], ['store_colors.id'],
            name='fk_store_product_variants_color_id_store_colors', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['size_id'], ['store_sizes.id'],
            name='fk_store_product_variants_size_id_store_sizes', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_store_product_variants'),
        sa.UniqueConstraint('sku', name='uq_store_product_variants_sku'),
        sa.UniqueConstraint(
            'product_id', 'color_id', 'size_id', name='uq_store_product_variants_product_id'
        ),
    )

    # Customers and carts
    op.create_table(
        'store_customers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('auth_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('locale', sa.String(length=10), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_store_customers'),
    )
    op.create_index('ix_store_customers_auth_id', 'store_customers', ['auth_id'], unique=True)

    op.create_table(
        'store_carts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('customer_id', sa.Uuid(), nullable=True),
        sa.Column('session_id', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            'customer_id IS NOT NULL OR session_id IS NOT NULL',
            name='ck_store_carts_cart_one_owner',
        ),
        sa.ForeignKeyConstraint(
            ['customer_id'], ['store_customers.id'],
            name='fk_store_carts_customer_id_store_customers', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_store_carts'),
    )
    op.create_index('ix_store_carts_customer_id', 'store_carts', ['customer_id'])
    op.create_index('ix_store_carts_session_id', 'store_carts', ['session_id'])

    op.create_table(
        'store_cart_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cart_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('quantity > 0', name='ck_store_cart_items_positive_quantity'),
        sa.ForeignKeyConstraint(
            ['cart_id'], ['store_carts.id'],
            name='fk_store_cart_items_cart_id_store_carts', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['product_id'], ['store_products.id'],
            name='fk_store_cart_items_product_id_store_products', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['variant_id'], ['store_product_variants.id'],
            name='fk_store_cart_items_variant_id_store_product_variants', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_store_cart_items'),
    )

    # Orders
    op.create_table(
        'store_donation_beneficiaries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('organization_name', sa.String(length=255), nullable=True),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Column('is_organization', sa.Boolean(), server_default='false', nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_store_donation_beneficiaries'),
    )
    op.create_table(
        'store_orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=20), nullable=False),
        sa.Column('customer_id', sa.Uuid(), nullable=True),
        sa.Column('beneficiary_id', sa.Uuid(), nullable=True),
        sa.Column('subtotal', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('shipping', sa.Numeric(precision=10, scale=2), server_default='0', nullable=True),
        sa.Column('total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), server_default='usd', nullable=True),
        sa.Column('status', _enum('store_order_status_enum'), server_default='pending', nullable=True),
        sa.Column('is_donation', sa.Boolean(), server_default='false', nullable=True),
        sa.Column('payment_method', _enum('store_payment_method_enum'), server_default='stripe', nullable=True),
        sa.Column('payment_id', sa.String(length=255), nullable=True),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('payment_error_message', sa.Text(), nullable=True),
        sa.Column('stock_shortfalls', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_failed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['customer_id'], ['store_customers.id'],
            name='fk_store_orders_customer_id_store_customers', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['beneficiary_id'], ['store_donation_beneficiaries.id'],
            name='fk_store_orders_beneficiary_id_store_donation_beneficiaries',
            ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_store_orders'),
    )
    op.create_index('ix_store_orders_order_number', 'store_orders', ['order_number'], unique=True)
    op.create_index('ix_store_orders_customer_id', 'store_orders', ['customer_id'])
    op.create_index('ix_store_orders_status', 'store_orders', ['status'])
    op.create_index('ix_store_orders_payment_id', 'store_orders', ['payment_id'])
    op.create_index('ix_store_orders_payment_intent_id', 'store_orders', ['payment_intent_id'])

    op.create_table(
        'store_order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=True),
        sa.Column('variant_id', sa.Uuid(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('product_name_translations', sa.JSON(), nullable=True),
        sa.Column('selected_color', sa.String(length=50), nullable=True),
        sa.Column('selected_color_hex', sa.String(length=7), nullable=True),
        sa.Column('selected_size', sa.String(length=50), nullable=True),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('line_total', sa.Numeric(precision=10, scale=2), nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint('quantity > 0', name='ck_store_order_items_order_item_positive_quantity'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['store_orders.id'],
            name='fk_store_order_items_order_id_store_orders', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['product_id'], ['store_products.id'],
            name='fk_store_order_items_product_id_store_products', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['variant_id'], ['store_product_variants.id'],
            name='fk_store_order_items_variant_id_store_product_variants', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_store_order_items'),
    )

    # Payments, webhook ledger, donations
    op.create_table(
        'store_payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('gateway', _enum('store_payment_method_enum'), nullable=False),
        sa.Column('gateway_payment_id', sa.String(length=255), nullable=True),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('status', _enum('store_payment_status_enum'), server_default='pending', nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['order_id'], ['store_orders.id'],
            name='fk_store_payments_order_id_store_orders', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_store_payments'),
    )
    op.create_index('ix_store_payments_order_id', 'store_payments', ['order_id'])
    op.create_index('ix_store_payments_gateway_payment_id', 'store_payments', ['gateway_payment_id'])

    op.create_table(
        'store_stripe_webhook_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=100), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', _enum('store_webhook_event_status_enum'), server_default='received', nullable=True),
        sa.Column('attempts', sa.Integer(), server_default='0', nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_store_stripe_webhook_events'),
    )
    op.create_index(
        'ix_store_stripe_webhook_events_event_id',
        'store_stripe_webhook_events', ['event_id'], unique=True,
    )

    op.create_table(
        'store_donations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('value', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', _enum('store_donation_status_enum'), server_default='pending', nullable=True),
        sa.Column('payment_method', _enum('store_payment_method_enum'), server_default='stripe', nullable=True),
        sa.Column('payment_id', sa.String(length=255), nullable=True),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_store_donations'),
    )
    op.create_index('ix_store_donations_status', 'store_donations', ['status'])
    op.create_index('ix_store_donations_payment_id', 'store_donations', ['payment_id'])

    # Back office
    op.create_table(
        'store_admin_notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('type', _enum('store_notification_type_enum'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id', name='pk_store_admin_notifications'),
    )
    op.create_index(
        'ix_store_admin_notifications_read_created',
        'store_admin_notifications', ['read_at', 'created_at'],
    )

    op.create_table(
        'store_settings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('type', _enum('store_setting_type_enum'), server_default='string', nullable=True),
        sa.Column('is_public', sa.Boolean(), server_default='false', nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_store_settings'),
    )
    op.create_index('ix_store_settings_key', 'store_settings', ['key'], unique=True)


def downgrade() -> None:
    """Downgrade schema - Drop store tables."""
    op.drop_index('ix_store_settings_key', table_name='store_settings')
    op.drop_table('store_settings')
    op.drop_index('ix_store_admin_notifications_read_created', table_name='store_admin_notifications')
    op.drop_table('store_admin_notifications')
    op.drop_index('ix_store_donations_payment_id', table_name='store_donations')
    op.drop_index('ix_store_donations_status', table_name='store_donations')
    op.drop_table('store_donations')
    op.drop_index('ix_store_stripe_webhook_events_event_id', table_name='store_stripe_webhook_events')
    op.drop_table('store_stripe_webhook_events')
    op.drop_index('ix_store_payments_gateway_payment_id', table_name='store_payments')
    op.drop_index('ix_store_payments_order_id', table_name='store_payments')
    op.drop_table('store_payments')
    op.drop_table('store_order_items')
    for column in ('payment_intent_id', 'payment_id', 'status', 'customer_id', 'order_number'):
        op.drop_index(f'ix_store_orders_{column}', table_name='store_orders')
    op.drop_table('store_orders')
    op.drop_table('store_donation_beneficiaries')
    op.drop_table('store_cart_items')
    op.drop_index('ix_store_carts_session_id', table_name='store_carts')
    op.drop_index('ix_store_carts_customer_id', table_name='store_carts')
    op.drop_table('store_carts')
    op.drop_index('ix_store_customers_auth_id', table_name='store_customers')
    op.drop_table('store_customers')
    op.drop_table('store_product_variants')
    op.drop_table('store_products')
    op.drop_table('store_sizes')
    op.drop_table('store_colors')
    op.drop_table('store_categories')

    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
