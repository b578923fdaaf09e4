"""SQLAlchemy models for the product catalog.

Defines the product aggregate (product, category links, services, custom
options and option values) and the reference tables it points at (taxes,
companies, categories).
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.infrastructure.database import Base


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _money(value: Decimal | None) -> float | None:
    return None if value is None else float(value)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ============================================================================
# Reference Tables
# ============================================================================


class Tax(Base):
    """Tax rate applied to product prices.

    Attributes:
        id: Unique tax identifier.
        name: Display name (e.g. "VAT 20%").
        rate: Percentage rate, 20 means 20 %.
        is_inactive: Inactive taxes cannot be assigned to products.
    """

    __tablename__ = "taxes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    is_inactive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Tax(id={self.id}, name={self.name}, rate={self.rate})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"id": self.id, "name": self.name, "rate": float(self.rate)}


class Company(Base):
    """Company owning (or supplying) products."""

    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    market_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    website_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_inactive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Company(id={self.id}, business_name={self.business_name})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "business_name": self.business_name,
            "market_name": self.market_name,
            "logo_url": self.logo_url,
        }


class Category(Base):
    """Catalog category, optionally nested under a parent."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    parent_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_inactive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, slug={self.slug})>"

    @property
    def is_usable(self) -> bool:
        """Whether products may be linked to this category."""
        return self.is_active and not self.is_inactive

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "image_url": self.image_url,
            "parent_id": self.parent_id,
        }


# ============================================================================
# Product Aggregate
# ============================================================================


class Product(Base):
    """Product in the catalog.

    Pricing columns are derived together by the price deriver and are
    never written one at a time. ``custom_details`` is an ordered list of
    ``{key, label, value}`` records; ``images`` an ordered list of image
    metadata with exactly one ``is_main`` entry.

    Attributes:
        id: Unique product identifier (UUID string).
        sku: 8-digit stock keeping unit.
        slug: URL slug derived from the title.
        barcode: Barcode, defaults to the SKU on create.
        ean: EAN-13 code.
        status: ``active`` or ``archived``.
        is_active: False exactly when archived.
        is_published: Visible to customers.
        tax_id: Tax applied to gross prices.
        company_id: Owning company.
        supplier_id: Supplying company.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)

    # Identity
    sku: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    barcode: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    ean: Mapped[str] = mapped_column(String(13), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Text
    description: Mapped[str] = mapped_column(Text, nullable=False)
    short_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_keywords: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    # Merchandising
    mark_as_new: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mark_as_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mark_as_top_seller: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_on_sale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_special_offer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    shipping_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_available_on_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_digital: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_physical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_delivery_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_services: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_custom_fields: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Physical attributes
    weight: Mapped[Decimal] = mapped_column(Numeric(10, 3), nullable=False)
    weight_unit: Mapped[str] = mapped_column(String(10), nullable=False)
    width: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    height: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    length: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    thickness: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    depth: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    measures_unit: Mapped[str] = mapped_column(String(10), nullable=False)
    unit_type: Mapped[str] = mapped_column(String(10), nullable=False)
    lead_time: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    # Pricing
    purchase_price_nett: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    purchase_price_gross: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    regular_price_nett: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    regular_price_gross: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_percentage_nett: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    discount_percentage_gross: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    final_price_nett: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, index=True)
    final_price_gross: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_discounted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Semi-structured attributes
    custom_details: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    main_image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # References
    tax_id: Mapped[str] = mapped_column(String(36), ForeignKey("taxes.id"), nullable=False)
    company_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("companies.id"), nullable=True, index=True
    )
    supplier_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("companies.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )

    # Relationships
    tax: Mapped["Tax"] = relationship("Tax")
    company: Mapped["Company | None"] = relationship("Company", foreign_keys=[company_id])
    category_links: Mapped[list["ProductCategory"]] = relationship(
        "ProductCategory",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductCategory.created_at",
    )
    services: Mapped[list["ProductService"]] = relationship(
        "ProductService",
        back_populates="product",
        cascade="all, delete-orphan",
    )
    custom_options: Mapped[list["ProductCustomOption"]] = relationship(
        "ProductCustomOption",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductCustomOption.sort_order",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.sku}, title={self.title[:30]}...)>"

    @property
    def category_ids(self) -> list[str]:
        """IDs of all linked categories."""
        return [link.category_id for link in self.category_links]

    @property
    def primary_category_id(self) -> str | None:
        """ID of the primary category link, if any."""
        for link in self.category_links:
            if link.is_primary:
                return link.category_id
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation without child collections.
        """
        return {
            "id": self.id,
            "sku": self.sku,
            "slug": self.slug,
            "barcode": self.barcode,
            "ean": self.ean,
            "title": self.title,
            "description": self.description,
            "short_description": self.short_description,
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "meta_keywords": self.meta_keywords,
            "status": self.status,
            "is_active": self.is_active,
            "is_published": self.is_published,
            "mark_as_new": self.mark_as_new,
            "mark_as_featured": self.mark_as_featured,
            "mark_as_top_seller": self.mark_as_top_seller,
            "is_on_sale": self.is_on_sale,
            "is_special_offer": self.is_special_offer,
            "shipping_free": self.shipping_free,
            "is_available_on_stock": self.is_available_on_stock,
            "is_digital": self.is_digital,
            "is_physical": self.is_physical,
            "is_delivery_only": self.is_delivery_only,
            "has_services": self.has_services,
            "has_custom_fields": self.has_custom_fields,
            "weight": _money(self.weight),
            "weight_unit": self.weight_unit,
            "width": _money(self.width),
            "height": _money(self.height),
            "length": _money(self.length),
            "thickness": _money(self.thickness),
            "depth": _money(self.depth),
            "measures_unit": self.measures_unit,
            "unit_type": self.unit_type,
            "lead_time": self.lead_time,
            "purchase_price_nett": _money(self.purchase_price_nett),
            "purchase_price_gross": _money(self.purchase_price_gross),
            "regular_price_nett": _money(self.regular_price_nett),
            "regular_price_gross": _money(self.regular_price_gross),
            "discount_percentage_nett": _money(self.discount_percentage_nett),
            "discount_percentage_gross": _money(self.discount_percentage_gross),
            "final_price_nett": _money(self.final_price_nett),
            "final_price_gross": _money(self.final_price_gross),
            "is_discounted": self.is_discounted,
            "custom_details": list(self.custom_details or []),
            "images": list(self.images or []),
            "main_image_url": self.main_image_url,
            "score": self.score,
            "tax_id": self.tax_id,
            "company_id": self.company_id,
            "supplier_id": self.supplier_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ProductCategory(Base):
    """Link between a product and a category."""

    __tablename__ = "product_categories"
    __table_args__ = (
        UniqueConstraint("product_id", "category_id", name="uq_product_categories_product_category"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    product: Mapped["Product"] = relationship("Product", back_populates="category_links")
    category: Mapped["Category"] = relationship("Category")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ProductCategory(product_id={self.product_id}, "
            f"category_id={self.category_id}, is_primary={self.is_primary})>"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = {"category_id": self.category_id, "is_primary": self.is_primary}
        if self.category is not None:
            data["name"] = self.category.name
            data["slug"] = self.category.slug
        return data


class ProductService(Base):
    """Add-on service sold together with a product (installation, support...)."""

    __tablename__ = "product_services"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    company_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("companies.id"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    full_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    thumbnail: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    service_type: Mapped[str] = mapped_column(String(20), nullable=False, default="service")
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    standalone: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    product: Mapped["Product"] = relationship("Product", back_populates="services")

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductService(id={self.id}, slug={self.slug})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "full_description": self.full_description,
            "price": _money(self.price),
            "thumbnail": self.thumbnail,
            "service_type": self.service_type,
            "is_required": self.is_required,
            "is_active": self.is_active,
            "standalone": self.standalone,
            "company_id": self.company_id,
        }


class ProductCustomOption(Base):
    """Customer-selectable option of a product (size, engraving...)."""

    __tablename__ = "product_custom_options"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    option_name: Mapped[str] = mapped_column(String(255), nullable=False)
    option_type: Mapped[str] = mapped_column(String(20), nullable=False, default="select")
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    placeholder_text: Mapped[str | None] = mapped_column(String(255), nullable=True)
    help_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    validation_rules: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    affects_price: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    price_modifier_type: Mapped[str] = mapped_column(String(20), nullable=False, default="fixed")
    base_price_modifier: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    product: Mapped["Product"] = relationship("Product", back_populates="custom_options")
    values: Mapped[list["ProductCustomOptionValue"]] = relationship(
        "ProductCustomOptionValue",
        back_populates="option",
        cascade="all, delete-orphan",
        order_by="ProductCustomOptionValue.sort_order",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductCustomOption(id={self.id}, option_name={self.option_name})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, values included."""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "option_name": self.option_name,
            "option_type": self.option_type,
            "is_required": self.is_required,
            "sort_order": self.sort_order,
            "placeholder_text": self.placeholder_text,
            "help_text": self.help_text,
            "validation_rules": dict(self.validation_rules or {}),
            "is_active": self.is_active,
            "affects_price": self.affects_price,
            "price_modifier_type": self.price_modifier_type,
            "base_price_modifier": _money(self.base_price_modifier),
            "values": [v.to_dict() for v in self.values],
        }


class ProductCustomOptionValue(Base):
    """One selectable value of a custom option."""

    __tablename__ = "product_custom_option_values"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    option_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("product_custom_options.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    option_value: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    price_modifier: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    price_modifier_type: Mapped[str] = mapped_column(String(20), nullable=False, default="fixed")
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    image_alt_text: Mapped[str | None] = mapped_column(String(255), nullable=True)
    additional_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    stock_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    option: Mapped["ProductCustomOption"] = relationship(
        "ProductCustomOption", back_populates="values"
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductCustomOptionValue(id={self.id}, option_value={self.option_value})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "option_id": self.option_id,
            "option_value": self.option_value,
            "display_name": self.display_name,
            "sort_order": self.sort_order,
            "is_default": self.is_default,
            "is_active": self.is_active,
            "price_modifier": _money(self.price_modifier),
            "price_modifier_type": self.price_modifier_type,
            "image_url": self.image_url,
            "image_alt_text": self.image_alt_text,
            "additional_data": dict(self.additional_data or {}),
            "stock_quantity": self.stock_quantity,
            "is_in_stock": self.is_in_stock,
        }
