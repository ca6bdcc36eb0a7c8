"""Create catalog tables.

Products, variants, characteristic groups/values, assignments and
configurable characteristics.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create catalog tables."""
    # Products table
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(500), nullable=False),
        sa.Column('sku', sa.String(100), nullable=True, unique=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_price_cents', sa.Integer(), nullable=True),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category_id', sa.Integer(), nullable=True, index=True),
        sa.Column('manufacturer_id', sa.Integer(), nullable=True, index=True),
        sa.Column('base_attributes', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active', index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # Product variants table
    op.create_table(
        'product_variants',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('master_id', sa.Integer(),
                  sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('sku', sa.String(150), nullable=False, unique=True),
        sa.Column('name', sa.String(500), nullable=False),
        sa.Column('price_override_cents', sa.Integer(), nullable=True),
        sa.Column('discount_price_cents', sa.Integer(), nullable=True),
        sa.Column('stock_override', sa.Integer(), nullable=True),
        sa.Column('attributes', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active', index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # At most one live default variant per master
    op.create_index(
        'uq_product_variants_live_default',
        'product_variants',
        ['master_id'],
        unique=True,
        postgresql_where=sa.text("is_default AND status <> 'deleted'"),
    )

    # Characteristic groups (sections are rows without a parent)
    op.create_table(
        'characteristic_groups',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('parent_id', sa.Integer(),
                  sa.ForeignKey('characteristic_groups.id'), nullable=True, index=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('show_in_main_params', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('main_params_priority', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # Characteristic values
    op.create_table(
        'characteristic_values',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('group_id', sa.Integer(),
                  sa.ForeignKey('characteristic_groups.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('value', sa.String(255), nullable=False),
        sa.Column('color_hex', sa.String(7), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # EAV assignments
    op.create_table(
        'characteristic_assignments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_id', sa.Integer(),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=True, index=True),
        sa.Column('variant_id', sa.Integer(),
                  sa.ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=True, index=True),
        sa.Column('value_id', sa.Integer(),
                  sa.ForeignKey('characteristic_values.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('additional_value', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint(
            '(product_id IS NULL) <> (variant_id IS NULL)',
            name='ck_characteristic_assignments_single_owner',
        ),
    )

    op.create_unique_constraint(
        'uq_assignments_product_value',
        'characteristic_assignments',
        ['product_id', 'value_id'],
    )
    op.create_unique_constraint(
        'uq_assignments_variant_value',
        'characteristic_assignments',
        ['variant_id', 'value_id'],
    )

    # Configurable characteristics (one JSON array per product)
    op.create_table(
        'product_configurable_characteristics',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('product_id', sa.Integer(),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('characteristic_data', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )


def downgrade() -> None:
    """Drop catalog tables."""
    op.drop_table('product_configurable_characteristics')
    op.drop_table('characteristic_assignments')
    op.drop_table('characteristic_values')
    op.drop_table('characteristic_groups')
    op.drop_index('uq_product_variants_live_default', table_name='product_variants')
    op.drop_table('product_variants')
    op.drop_table('products')
