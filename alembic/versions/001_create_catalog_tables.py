"""Create catalog tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column('id', sa.String(36), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column(
        'created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )


def upgrade() -> None:
    """Create reference tables and the product aggregate."""
    # Reference tables
    op.create_table(
        'taxes',
        _id(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('is_inactive', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )

    op.create_table(
        'companies',
        _id(),
        sa.Column('business_name', sa.String(255), nullable=False),
        sa.Column('market_name', sa.String(255), nullable=True),
        sa.Column('logo_url', sa.String(1000), nullable=True),
        sa.Column('website_url', sa.String(1000), nullable=True),
        sa.Column('is_inactive', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )

    op.create_table(
        'categories',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(1000), nullable=True),
        sa.Column('parent_id', sa.String(36),
                  sa.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_inactive', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )

    # Products
    op.create_table(
        'products',
        _id(),
        sa.Column('sku', sa.String(32), nullable=False, unique=True),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('barcode', sa.String(64), nullable=False, unique=True),
        sa.Column('ean', sa.String(13), nullable=False, unique=True),
        sa.Column('title', sa.String(255), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('short_description', sa.Text(), nullable=True),
        sa.Column('meta_title', sa.String(255), nullable=True),
        sa.Column('meta_description', sa.Text(), nullable=True),
        sa.Column('meta_keywords', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active', index=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        sa.Column('mark_as_new', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mark_as_featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mark_as_top_seller', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_on_sale', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_special_offer', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('shipping_free', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_available_on_stock', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_digital', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_physical', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_delivery_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('has_services', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('has_custom_fields', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('weight_unit', sa.String(10), nullable=False),
        sa.Column('width', sa.Numeric(10, 2), nullable=True),
        sa.Column('height', sa.Numeric(10, 2), nullable=True),
        sa.Column('length', sa.Numeric(10, 2), nullable=True),
        sa.Column('thickness', sa.Numeric(10, 2), nullable=True),
        sa.Column('depth', sa.Numeric(10, 2), nullable=True),
        sa.Column('measures_unit', sa.String(10), nullable=False),
        sa.Column('unit_type', sa.String(10), nullable=False),
        sa.Column('lead_time', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('purchase_price_nett', sa.Numeric(12, 2), nullable=False),
        sa.Column('purchase_price_gross', sa.Numeric(12, 2), nullable=False),
        sa.Column('regular_price_nett', sa.Numeric(12, 2), nullable=False),
        sa.Column('regular_price_gross', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_percentage_nett', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('discount_percentage_gross', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('final_price_nett', sa.Numeric(12, 2), nullable=False, index=True),
        sa.Column('final_price_gross', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_discounted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('custom_details', sa.JSON(), nullable=False),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('main_image_url', sa.String(1000), nullable=True),
        sa.Column('score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('tax_id', sa.String(36), sa.ForeignKey('taxes.id'), nullable=False),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id'), nullable=True, index=True),
        sa.Column('supplier_id', sa.String(36), sa.ForeignKey('companies.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now(), index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # Product children
    op.create_table(
        'product_categories',
        _id(),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('category_id', sa.String(36),
                  sa.ForeignKey('categories.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )
    op.create_unique_constraint(
        'uq_product_categories_product_category',
        'product_categories',
        ['product_id', 'category_id'],
    )

    op.create_table(
        'product_services',
        _id(),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id'), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('full_description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('thumbnail', sa.String(1000), nullable=True),
        sa.Column('service_type', sa.String(20), nullable=False, server_default='service'),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('standalone', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )

    op.create_table(
        'product_custom_options',
        _id(),
        sa.Column('product_id', sa.String(36),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('option_name', sa.String(255), nullable=False),
        sa.Column('option_type', sa.String(20), nullable=False, server_default='select'),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('placeholder_text', sa.String(255), nullable=True),
        sa.Column('help_text', sa.Text(), nullable=True),
        sa.Column('validation_rules', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('affects_price', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('price_modifier_type', sa.String(20), nullable=False, server_default='fixed'),
        sa.Column('base_price_modifier', sa.Numeric(12, 2), nullable=False, server_default='0'),
        _created_at(),
    )

    op.create_table(
        'product_custom_option_values',
        _id(),
        sa.Column('option_id', sa.String(36),
                  sa.ForeignKey('product_custom_options.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('option_value', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('price_modifier', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('price_modifier_type', sa.String(20), nullable=False, server_default='fixed'),
        sa.Column('image_url', sa.String(1000), nullable=True),
        sa.Column('image_alt_text', sa.String(255), nullable=True),
        sa.Column('additional_data', sa.JSON(), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=True),
        sa.Column('is_in_stock', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )


def downgrade() -> None:
    """Drop catalog tables."""
    op.drop_table('product_custom_option_values')
    op.drop_table('product_custom_options')
    op.drop_table('product_services')
    op.drop_table('product_categories')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('companies')
    op.drop_table('taxes')
