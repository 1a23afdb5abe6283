"""Initial schema: users, catalog, cash sessions, table orders, sales

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration creates:
1. Users (PIN credentials, admin/seller role)
2. Products (price and stock in cents/units, non-negative stock)
3. Cash sessions (opening float, per-channel accumulators, declared counts)
4. Table orders and their items (one open order per table number)
5. Sales and sale items (immutable, void annotation only)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. USERS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('pin_salt', sa.String(length=64), nullable=False),
        sa.Column('pin_hash', sa.String(length=128), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index('ix_users_username', ['username'], unique=True)
        batch_op.create_index('ix_users_is_active', ['is_active'], unique=False)

    # ==========================================================================
    # 2. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('price_cents > 0', name='ck_products_price_positive'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_name', ['name'], unique=False)

    # ==========================================================================
    # 3. CASH SESSIONS
    # ==========================================================================
    op.create_table('cash_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('opened_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('opened_by_user_id', sa.Integer(), nullable=False),
        sa.Column('closed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('opening_cash_cents', sa.Integer(), nullable=False),
        sa.Column('declared_cash_cents', sa.Integer(), nullable=True),
        sa.Column('declared_card_cents', sa.Integer(), nullable=True),
        sa.Column('declared_transfer_cents', sa.Integer(), nullable=True),
        sa.Column('sales_cash_total_cents', sa.Integer(), nullable=False),
        sa.Column('sales_card_total_cents', sa.Integer(), nullable=False),
        sa.Column('sales_transfer_total_cents', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('opening_cash_cents >= 0', name='ck_cash_sessions_opening_non_negative'),
        sa.ForeignKeyConstraint(['opened_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['closed_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('cash_sessions', schema=None) as batch_op:
        batch_op.create_index('ix_cash_sessions_opened_at', ['opened_at'], unique=False)
        batch_op.create_index('ix_cash_sessions_closed_at', ['closed_at'], unique=False)
        batch_op.create_index('ix_cash_sessions_opened_by_user_id', ['opened_by_user_id'], unique=False)

    # ==========================================================================
    # 4. TABLE ORDERS
    # ==========================================================================
    op.create_table('table_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('table_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('opened_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('opened_by_user_id', sa.Integer(), nullable=True),
        sa.Column('cash_session_id', sa.Integer(), nullable=True),
        sa.CheckConstraint('table_number >= 1', name='ck_table_orders_table_number_positive'),
        sa.ForeignKeyConstraint(['opened_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['cash_session_id'], ['cash_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('table_orders', schema=None) as batch_op:
        batch_op.create_index('ix_table_orders_table_number', ['table_number'], unique=False)
        batch_op.create_index('ix_table_orders_status', ['status'], unique=False)
        batch_op.create_index('ix_table_orders_cash_session_id', ['cash_session_id'], unique=False)
        batch_op.create_index(
            'uq_table_orders_open_table',
            ['table_number'],
            unique=True,
            sqlite_where=sa.text("status = 'open'"),
            postgresql_where=sa.text("status = 'open'"),
        )

    op.create_table('table_order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('table_order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_table_order_items_quantity_positive'),
        sa.ForeignKeyConstraint(['table_order_id'], ['table_orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('table_order_items', schema=None) as batch_op:
        batch_op.create_index('ix_table_order_items_table_order_id', ['table_order_id'], unique=False)
        batch_op.create_index('ix_table_order_items_product_id', ['product_id'], unique=False)

    # ==========================================================================
    # 5. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('cash_session_id', sa.Integer(), nullable=True),
        sa.Column('table_order_id', sa.Integer(), nullable=True),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('sale_type', sa.String(length=16), nullable=False),
        sa.Column('cash_amount_cents', sa.Integer(), nullable=False),
        sa.Column('card_amount_cents', sa.Integer(), nullable=False),
        sa.Column('transfer_amount_cents', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_by_user_id', sa.Integer(), nullable=True),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['cash_session_id'], ['cash_sessions.id'], ),
        sa.ForeignKeyConstraint(['table_order_id'], ['table_orders.id'], ),
        sa.ForeignKeyConstraint(['voided_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index('ix_sales_created_at', ['created_at'], unique=False)
        batch_op.create_index('ix_sales_session_created', ['cash_session_id', 'created_at'], unique=False)
        batch_op.create_index('ix_sales_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_sales_cash_session_id', ['cash_session_id'], unique=False)
        batch_op.create_index('ix_sales_table_order_id', ['table_order_id'], unique=False)
        batch_op.create_index('ix_sales_payment_method', ['payment_method'], unique=False)
        batch_op.create_index('ix_sales_sale_type', ['sale_type'], unique=False)

    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_sale_items_quantity_positive'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_items', schema=None) as batch_op:
        batch_op.create_index('ix_sale_items_sale_id', ['sale_id'], unique=False)
        batch_op.create_index('ix_sale_items_product_id', ['product_id'], unique=False)


def downgrade():
    # Drop tables in reverse order of creation (respect foreign keys)
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('table_order_items')
    op.drop_table('table_orders')
    op.drop_table('cash_sessions')
    op.drop_table('products')
    op.drop_table('users')
