from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('last_signed_in', sa.DateTime, nullable=True)
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(30), nullable=False, server_default='chemicals'),
        sa.Column('product_type', sa.String(100), nullable=True),
        sa.Column('weight_grams', sa.Integer, nullable=True),
        sa.Column('price_cents', sa.Integer, nullable=False),
        sa.Column('quantity_per_unit', sa.Integer, nullable=False, server_default='1'),
        sa.Column('unit', sa.String(50), nullable=False, server_default='each'),
        sa.Column('image_url', sa.Text, nullable=True),
        sa.Column('in_stock', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('stock_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer, nullable=False, server_default='10'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('price_cents >= 0', name='check_price_non_negative'),
        sa.CheckConstraint('stock_quantity >= 0', name='check_stock_non_negative')
    )
    op.create_index('ix_products_category', 'products', ['category'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_email', sa.String(320), nullable=False),
        sa.Column('customer_phone', sa.String(30), nullable=True),
        sa.Column('shipping_address', sa.Text, nullable=False),
        sa.Column('shipping_city', sa.String(100), nullable=False),
        sa.Column('shipping_state', sa.String(100), nullable=False),
        sa.Column('shipping_zip', sa.String(20), nullable=False),
        sa.Column('shipping_country', sa.String(100), nullable=False, server_default='USA'),
        sa.Column('shipping_carrier', sa.String(50), nullable=False),
        sa.Column('shipping_service', sa.String(100), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(20), nullable=False),
        sa.Column('payment_id', sa.String(100), nullable=True),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('subtotal', sa.Integer, nullable=False),
        sa.Column('shipping_cost', sa.Integer, nullable=False),
        sa.Column('total', sa.Integer, nullable=False),
        sa.Column('customer_notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('total = subtotal + shipping_cost', name='check_total_matches')
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_customer_email', 'orders', ['customer_email'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        # RESTRICT keeps products referenced by past orders from being deleted
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price_per_unit', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('quantity > 0', name='check_quantity_positive')
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'contacts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('subject', sa.String(255), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='new'),
        sa.Column('admin_notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now())
    )
    op.create_index('ix_contacts_status', 'contacts', ['status'])

    op.create_table(
        'abandoned_carts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('customer_email', sa.String(320), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('cart_data', sa.Text, nullable=False),
        sa.Column('total_amount', sa.Integer, nullable=False),
        sa.Column('recovery_email_sent', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('recovery_email_sent_at', sa.DateTime, nullable=True),
        sa.Column('converted', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('converted_order_number', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now())
    )
    op.create_index('ix_abandoned_carts_customer_email', 'abandoned_carts', ['customer_email'])
    op.create_index('ix_abandoned_carts_converted', 'abandoned_carts', ['converted'])

    op.create_table(
        'inventory_logs',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('product_id', sa.Integer, nullable=False),
        sa.Column('previous_quantity', sa.Integer, nullable=False),
        sa.Column('new_quantity', sa.Integer, nullable=False),
        sa.Column('change_reason', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now())
    )
    op.create_index('ix_inventory_logs_product_id', 'inventory_logs', ['product_id'])

    op.create_table(
        'shipping_rates',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('carrier', sa.String(50), nullable=False),
        sa.Column('service_name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('estimated_days', sa.String(50), nullable=True),
        sa.Column('base_rate', sa.Integer, nullable=False),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('display_order', sa.Integer, nullable=False, server_default='0')
    )

def downgrade():
    op.drop_table('shipping_rates')
    op.drop_table('inventory_logs')
    op.drop_table('abandoned_carts')
    op.drop_table('contacts')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('users')
