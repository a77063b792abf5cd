"""initial ledger schema

Revision ID: t0001_initial
Revises:
Create Date: 2024-01-01 00:00:00.000000

Creates the Tillbook ledger from scratch:
- products: catalog plus the stock / avg_cost_cents balances
- sales, sale_items: finalized checks with frozen price and cost
- stock_moves: append-only stock ledger (purchase / sale / adjust)
- config: key/value settings
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 't0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # products: catalog + ledger balances
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('avg_cost_cents', sa.Float(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('avg_cost_cents >= 0', name='ck_products_avg_cost_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_category', 'products', ['category'])

    # ============================================================================
    # sales / sale_items
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('cash_received_cents', sa.Integer(), nullable=False),
        sa.Column('change_cents', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('change_cents >= 0', name='ck_sales_change_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('qty > 0', name='ck_sale_items_qty_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'])

    # ============================================================================
    # stock_moves: append-only ledger
    # ============================================================================
    op.create_table(
        'stock_moves',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=16), nullable=False),
        sa.Column('unit_cost_cents', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('comment', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('delta <> 0', name='ck_stock_moves_delta_non_zero'),
        sa.CheckConstraint("reason IN ('purchase', 'sale', 'adjust')", name='ck_stock_moves_reason'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_moves_product_id', 'stock_moves', ['product_id'])
    op.create_index('ix_stock_moves_reason', 'stock_moves', ['reason'])
    op.create_index('ix_stock_moves_created_at', 'stock_moves', ['created_at'])
    op.create_index('ix_stock_moves_product_created', 'stock_moves', ['product_id', 'created_at'])

    # ============================================================================
    # config: key/value settings
    # ============================================================================
    op.create_table(
        'config',
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade():
    op.drop_table('config')
    op.drop_index('ix_stock_moves_product_created', table_name='stock_moves')
    op.drop_index('ix_stock_moves_created_at', table_name='stock_moves')
    op.drop_index('ix_stock_moves_reason', table_name='stock_moves')
    op.drop_index('ix_stock_moves_product_id', table_name='stock_moves')
    op.drop_table('stock_moves')
    op.drop_index('ix_sale_items_product_id', table_name='sale_items')
    op.drop_index('ix_sale_items_sale_id', table_name='sale_items')
    op.drop_table('sale_items')
    op.drop_index('ix_sales_created_at', table_name='sales')
    op.drop_table('sales')
    op.drop_index('ix_products_category', table_name='products')
    op.drop_index('ix_products_name', table_name='products')
    op.drop_table('products')
