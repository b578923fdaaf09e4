"""Catalog query engine.

Read side of the catalog: admin listing, customer search and browse,
new arrivals, flash deals, recommendations and product detail pages.
Customer-facing reads only ever see products that are active, published
and not archived.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Generic, TypeVar

import structlog
from sqlalchemy import ColumnElement, Text, cast, exists, func, literal, or_, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session

from app.catalog.facets import discount_range_facet, extract_automatic_filters
from app.catalog.models import Product, ProductCategory, ProductCustomOption
from app.catalog.options import serialize_option
from app.catalog.payloads import parse_uuid
from app.catalog.pricing import gross_price, modifier_delta, savings, selection_price
from app.catalog.repository import ProductRepository
from app.catalog.scoring import (
    deal_badges,
    deal_metadata,
    deal_stats,
    describe_deal,
    rank_recommendations,
    recommendation_stats,
)
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.state_machines import ProductStatus
from app.infrastructure.config import settings

logger = structlog.get_logger()

T = TypeVar("T")


# ============================================================================
# Filters & Pagination
# ============================================================================


@dataclass
class ProductFilter:
    """Filter parameters for product queries.

    Attributes:
        query: Case-insensitive substring searched in text fields.
        min_price: Minimum final nett price.
        max_price: Maximum final nett price.
        category_id: Only products linked to this category.
        company_id: Only products owned by this company.
        include_out_of_stock: Include products not available on stock.
        is_on_sale: On sale or discounted.
        free_shipping: Free shipping only.
        is_featured: Featured only.
        is_new: Marked as new only.
        is_top_seller: Top sellers only.
        specifications: ``{key: [values]}``, OR within a key, AND across keys.
        status: Admin only, product status.
        is_published: Admin only, publication flag.
        is_active: Admin only, activity flag.
        min_discount: Flash deals, minimum discount percentage.
        max_discount: Flash deals, maximum discount percentage.
        min_quality_score: Flash deals, minimum deal quality score.
    """

    query: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    category_id: str | None = None
    company_id: str | None = None
    include_out_of_stock: bool = False
    is_on_sale: bool | None = None
    free_shipping: bool | None = None
    is_featured: bool | None = None
    is_new: bool | None = None
    is_top_seller: bool | None = None
    specifications: dict[str, list[str]] = field(default_factory=dict)
    status: str | None = None
    is_published: bool | None = None
    is_active: bool | None = None
    min_discount: Decimal | None = None
    max_discount: Decimal | None = None
    min_quality_score: int | None = None

    def applied(self) -> dict[str, Any]:
        """Filters that were actually set, for echoing back to callers."""
        applied: dict[str, Any] = {}
        for name, value in self.__dict__.items():
            if value is None or value == {}:
                continue
            applied[name] = float(value) if isinstance(value, Decimal) else value
        return applied


@dataclass
class PaginationParams:
    """Pagination parameters.

    Attributes:
        offset: Rows to skip.
        limit: Items per page.
        sort_by: Sort key, meaning depends on the endpoint.
        sort_order: ``asc`` or ``desc`` (admin listing only).
    """

    offset: int = 0
    limit: int = 20
    sort_by: str | None = None
    sort_order: str = "desc"

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ValidationError("offset cannot be negative", details={"field": "offset"})
        if self.limit < 1:
            raise ValidationError("limit must be at least 1", details={"field": "limit"})
        self.limit = min(self.limit, settings.max_page_size)


@dataclass
class PaginatedResult(Generic[T]):
    """Paginated result container.

    Attributes:
        items: Items of the current page.
        total: Total number of matches.
        offset: Rows skipped.
        limit: Items per page.
    """

    items: list[T]
    total: int
    offset: int
    limit: int

    @property
    def current_page(self) -> int:
        """1-based page number."""
        return self.offset // self.limit + 1

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_more(self) -> bool:
        """Check if there are rows after this page."""
        return self.offset + self.limit < self.total

    @property
    def next_offset(self) -> int | None:
        """Offset of the next page, if any."""
        return self.offset + self.limit if self.has_more else None

    def meta(self) -> dict[str, Any]:
        """Pagination block of a listing response."""
        return {
            "total_count": self.total,
            "current_offset": self.offset,
            "limit": self.limit,
            "has_more": self.has_more,
            "next_offset": self.next_offset,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "has_prev": self.offset > 0,
        }


# ============================================================================
# Condition Builders
# ============================================================================


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column: Any, text: str) -> ColumnElement[bool]:
    return column.ilike(f"%{escape_like(text)}%", escape="\\")


def customer_visible() -> list[ColumnElement[bool]]:
    """Conditions for products customers may see."""
    return [
        Product.is_active.is_(True),
        Product.is_published.is_(True),
        Product.status == ProductStatus.ACTIVE.value,
    ]


def in_category(category_id: str) -> ColumnElement[bool]:
    """Products linked to a category."""
    return Product.id.in_(
        select(ProductCategory.product_id).where(ProductCategory.category_id == category_id)
    )


def detail_match(key: str, values: list[str], dialect: str) -> ColumnElement[bool]:
    """One ``custom_details`` entry has ``key`` and one of ``values``.

    PostgreSQL uses JSONB containment per value; other dialects (SQLite)
    scan the entries with ``json_each``.
    """
    if dialect == "postgresql":
        details = cast(Product.custom_details, JSONB)
        return or_(*(details.contains([{"key": key, "value": value}]) for value in values))

    entry = func.json_each(Product.custom_details).table_valued("value").alias("detail_entry")
    return exists(
        select(literal(1))
        .select_from(entry)
        .where(
            func.json_extract(entry.c.value, "$.key") == key,
            func.json_extract(entry.c.value, "$.value").in_(values),
        )
    )


def specification_conditions(
    specifications: dict[str, list[str]], dialect: str = "postgresql"
) -> list[ColumnElement[bool]]:
    """Match custom details per entry, OR within a key and AND across keys."""
    conditions = []
    for key, values in specifications.items():
        values = [v for v in values or [] if v]
        if values:
            conditions.append(detail_match(key, values, dialect))
    return conditions


def quality_score_expression() -> ColumnElement[Any]:
    """SQL form of ``discount * 1.2 + savings / 10``."""
    return (
        Product.discount_percentage_nett * literal(Decimal("1.2"))
        + (Product.regular_price_nett - Product.final_price_nett) / literal(Decimal("10"))
    )


def build_conditions(
    filters: ProductFilter, text_columns: list[Any], dialect: str = "postgresql"
) -> list[ColumnElement[bool]]:
    """Translate a filter into AND-combined SQL conditions.

    Args:
        filters: Filter parameters.
        text_columns: Columns the free-text query is matched against.
        dialect: Name of the database dialect the conditions run on.

    Returns:
        List of conditions.
    """
    conditions: list[ColumnElement[bool]] = []

    if filters.query and filters.query.strip():
        text = filters.query.strip()
        conditions.append(or_(*(_contains(column, text) for column in text_columns)))

    if filters.min_price is not None:
        conditions.append(Product.final_price_nett >= filters.min_price)
    if filters.max_price is not None:
        conditions.append(Product.final_price_nett <= filters.max_price)
    if filters.category_id:
        conditions.append(in_category(filters.category_id))
    if filters.company_id:
        conditions.append(Product.company_id == filters.company_id)
    if not filters.include_out_of_stock:
        conditions.append(Product.is_available_on_stock.is_(True))

    if filters.is_on_sale:
        conditions.append(or_(Product.is_on_sale.is_(True), Product.is_discounted.is_(True)))
    if filters.free_shipping:
        conditions.append(Product.shipping_free.is_(True))
    if filters.is_featured:
        conditions.append(Product.mark_as_featured.is_(True))
    if filters.is_new:
        conditions.append(Product.mark_as_new.is_(True))
    if filters.is_top_seller:
        conditions.append(Product.mark_as_top_seller.is_(True))

    if filters.status:
        conditions.append(Product.status == filters.status)
    if filters.is_published is not None:
        conditions.append(Product.is_published.is_(filters.is_published))
    if filters.is_active is not None:
        conditions.append(Product.is_active.is_(filters.is_active))

    if filters.min_discount is not None:
        conditions.append(Product.is_discounted.is_(True))
        conditions.append(Product.discount_percentage_nett >= filters.min_discount)
    if filters.max_discount is not None:
        conditions.append(Product.discount_percentage_nett <= filters.max_discount)
    if filters.min_quality_score is not None:
        # round-half-up(x) >= q  <=>  x >= q - 0.5
        conditions.append(
            quality_score_expression() >= literal(Decimal(filters.min_quality_score) - Decimal("0.5"))
        )

    conditions.extend(specification_conditions(filters.specifications, dialect))
    return conditions


ADMIN_TEXT_COLUMNS = [Product.title, Product.description, Product.sku, Product.barcode]
CUSTOMER_TEXT_COLUMNS = [
    Product.title,
    Product.description,
    Product.short_description,
    Product.sku,
    Product.ean,
]
SEARCH_TEXT_COLUMNS = [*CUSTOMER_TEXT_COLUMNS, cast(Product.custom_details, Text)]

ADMIN_SORT_COLUMNS = {
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
    "title": Product.title,
    "sku": Product.sku,
    "status": Product.status,
    "final_price_nett": Product.final_price_nett,
    "regular_price_nett": Product.regular_price_nett,
}

_SAVINGS = Product.regular_price_nett - Product.final_price_nett

CUSTOMER_SORTS: dict[str, list[Any]] = {
    "relevance": [
        Product.mark_as_featured.desc(),
        Product.mark_as_top_seller.desc(),
        Product.is_on_sale.desc(),
        Product.created_at.desc(),
    ],
    "price_low_high": [Product.final_price_nett.asc()],
    "price_high_low": [Product.final_price_nett.desc()],
    "name_a_z": [Product.title.asc()],
    "name_z_a": [Product.title.desc()],
    "newest": [Product.created_at.desc()],
    "oldest": [Product.created_at.asc()],
    "featured": [Product.mark_as_featured.desc(), Product.created_at.desc()],
    "discount": [Product.discount_percentage_nett.desc(), Product.created_at.desc()],
    "popular": [Product.score.desc(), Product.created_at.desc()],
}

FLASH_DEAL_SORTS: dict[str, list[Any]] = {
    **CUSTOMER_SORTS,
    "discount_percentage": [Product.discount_percentage_nett.desc()],
    "discount_high_low": [Product.discount_percentage_nett.desc()],
    "discount_low_high": [Product.discount_percentage_nett.asc()],
    "savings_high_low": [_SAVINGS.desc()],
    "savings_low_high": [_SAVINGS.asc()],
    "urgency": [
        Product.is_special_offer.desc(),
        Product.discount_percentage_nett.desc(),
        Product.is_on_sale.desc(),
    ],
    "popularity": [Product.score.desc(), Product.mark_as_top_seller.desc()],
}


def _customer_sort(sort_by: str | None, table: dict[str, list[Any]], default: str) -> list[Any]:
    return table.get(sort_by or default, table[default])


def _admin_sort(sort_by: str | None, sort_order: str) -> list[Any]:
    column = ADMIN_SORT_COLUMNS.get(sort_by or "created_at", Product.created_at)
    return [column.asc() if sort_order.lower() == "asc" else column.desc()]


# ============================================================================
# Response Shaping
# ============================================================================


def _money(value: Decimal | None) -> float:
    return float(value or 0)


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def product_card(product: Product) -> dict[str, Any]:
    """Customer-facing summary of a product."""
    primary = next((link for link in product.category_links if link.is_primary), None)
    return {
        "id": product.id,
        "title": product.title,
        "slug": product.slug,
        "sku": product.sku,
        "short_description": product.short_description,
        "main_image_url": product.main_image_url,
        "images": list(product.images or []),
        "pricing": {
            "regular_price_nett": _money(product.regular_price_nett),
            "regular_price_gross": _money(product.regular_price_gross),
            "final_price_nett": _money(product.final_price_nett),
            "final_price_gross": _money(product.final_price_gross),
            "discount_percentage": _money(product.discount_percentage_nett),
            "is_discounted": product.is_discounted,
            "savings_nett": float(savings(product.regular_price_nett, product.final_price_nett)),
            "savings_gross": float(savings(product.regular_price_gross, product.final_price_gross)),
        },
        "badges": {
            "is_new": product.mark_as_new,
            "is_featured": product.mark_as_featured,
            "is_top_seller": product.mark_as_top_seller,
            "is_on_sale": product.is_on_sale,
            "is_special_offer": product.is_special_offer,
            "free_shipping": product.shipping_free,
        },
        "availability": {
            "is_available": product.is_available_on_stock,
            "status": "In Stock" if product.is_available_on_stock else "Out of Stock",
            "lead_time": product.lead_time,
        },
        "primary_category": primary.to_dict() if primary else None,
        "categories": [link.to_dict() for link in product.category_links],
        "company": product.company.to_dict() if product.company else None,
        "custom_details": list(product.custom_details or []),
        "score": product.score,
        "created_at": product.created_at.isoformat() if product.created_at else None,
    }


def variant_price_range(product: Product) -> dict[str, float]:
    """Cheapest and dearest configuration of a product's active options."""
    base = Decimal(product.final_price_nett or 0)
    low = high = base
    for option in product.custom_options:
        if not option.is_active:
            continue
        option_delta = (
            modifier_delta(option.base_price_modifier, option.price_modifier_type, base)
            if option.affects_price
            else Decimal("0")
        )
        deltas = [
            modifier_delta(v.price_modifier, v.price_modifier_type, base)
            for v in option.values
            if v.is_active
        ]
        if not deltas:
            deltas = [Decimal("0")]
        cheapest = option_delta + min(deltas)
        dearest = option_delta + max(deltas)
        if option.is_required:
            low += cheapest
            high += dearest
        else:
            low += min(Decimal("0"), cheapest)
            high += max(Decimal("0"), dearest)
    return {"min": float(round(low, 2)), "max": float(round(high, 2))}


# ============================================================================
# Query Engine
# ============================================================================


class CatalogQueryEngine:
    """Read operations over the catalog.

    Args:
        session: Database session.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.repository = ProductRepository(session)

    @property
    def dialect(self) -> str:
        """Name of the dialect the session is bound to."""
        return self.session.get_bind().dialect.name

    def _listing(
        self,
        conditions: list[ColumnElement[bool]],
        order_by: list[Any],
        page: PaginationParams,
    ) -> tuple[list[Product], PaginatedResult[dict[str, Any]]]:
        products, total = self.repository.find_page(conditions, order_by, page.offset, page.limit)
        result = PaginatedResult(
            items=[product_card(p) for p in products],
            total=total,
            offset=page.offset,
            limit=page.limit,
        )
        return products, result

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_all(self, filters: ProductFilter, page: PaginationParams) -> dict[str, Any]:
        """List products of every status for administration.

        Args:
            filters: Admin filters (query, status, flags, company, category).
            page: Offset, limit, sort column and order.

        Returns:
            Products with pagination metadata.
        """
        filters.include_out_of_stock = True
        conditions = build_conditions(filters, ADMIN_TEXT_COLUMNS, self.dialect)
        products, total = self.repository.find_page(
            conditions, _admin_sort(page.sort_by, page.sort_order), page.offset, page.limit
        )
        result = PaginatedResult(
            items=[p.to_dict() for p in products], total=total, offset=page.offset, limit=page.limit
        )
        return {
            "products": result.items,
            "pagination": result.meta(),
            "applied_filters": filters.applied(),
        }

    def get_by_id(self, product_id: str) -> dict[str, Any]:
        """Full admin view of one product.

        Raises:
            NotFoundError: If the product does not exist.
        """
        product = self.repository.get_by_id(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        data = product.to_dict()
        data["tax"] = product.tax.to_dict() if product.tax else None
        data["company"] = product.company.to_dict() if product.company else None
        data["categories"] = [link.to_dict() for link in product.category_links]
        data["services"] = [s.to_dict() for s in product.services]
        data["custom_options"] = [serialize_option(o) for o in product.custom_options]
        data["calculated_prices"] = {
            "savings_nett": float(savings(product.regular_price_nett, product.final_price_nett)),
            "savings_gross": float(savings(product.regular_price_gross, product.final_price_gross)),
            "tax_amount": float(Decimal(product.final_price_gross) - Decimal(product.final_price_nett)),
        }
        return data

    # ------------------------------------------------------------------
    # Customer listings
    # ------------------------------------------------------------------

    def explore(self, filters: ProductFilter, page: PaginationParams) -> dict[str, Any]:
        """Browse all customer-visible products."""
        conditions = customer_visible() + build_conditions(filters, CUSTOMER_TEXT_COLUMNS, self.dialect)
        products, result = self._listing(
            conditions, _customer_sort(page.sort_by, CUSTOMER_SORTS, "newest"), page
        )
        return {
            "products": result.items,
            "pagination": result.meta(),
            "filters": extract_automatic_filters(products),
            "applied_filters": filters.applied(),
        }

    def search(self, query: str | None, filters: ProductFilter, page: PaginationParams) -> dict[str, Any]:
        """Full-text search including specification values.

        Args:
            query: Search text, matched as a case-insensitive substring.
            filters: Additional filters.
            page: Offset, limit and sort key (default ``relevance``).

        Returns:
            Products, pagination metadata and page facets.
        """
        filters.query = query
        conditions = customer_visible() + build_conditions(filters, SEARCH_TEXT_COLUMNS, self.dialect)
        products, result = self._listing(
            conditions, _customer_sort(page.sort_by, CUSTOMER_SORTS, "relevance"), page
        )
        logger.info("Catalog search", query=query, total=result.total)
        return {
            "query": query,
            "products": result.items,
            "pagination": result.meta(),
            "filters": extract_automatic_filters(products),
            "applied_filters": filters.applied(),
        }

    def by_category(self, category_id: str, filters: ProductFilter, page: PaginationParams) -> dict[str, Any]:
        """Customer-visible products of one category.

        Raises:
            ValidationError: If the id is not a UUID.
            NotFoundError: If the category does not exist or is inactive.
        """
        category_id = parse_uuid(category_id, "category_id")
        category = self.repository.get_category(category_id)
        if category is None or not category.is_usable:
            raise NotFoundError("Category", category_id, "Category not found or inactive")

        filters.category_id = category_id
        conditions = customer_visible() + build_conditions(filters, SEARCH_TEXT_COLUMNS, self.dialect)
        products, result = self._listing(
            conditions, _customer_sort(page.sort_by, CUSTOMER_SORTS, "relevance"), page
        )
        return {
            "category": category.to_dict(),
            "products": result.items,
            "pagination": result.meta(),
            "filters": extract_automatic_filters(products),
            "applied_filters": filters.applied(),
        }

    def top_new(self, limit: int = 20) -> dict[str, Any]:
        """Newest customer-visible products."""
        page = PaginationParams(offset=0, limit=limit)
        products, _ = self.repository.find_page(
            customer_visible(),
            [Product.created_at.desc(), Product.updated_at.desc()],
            0,
            page.limit,
        )
        cutoff = datetime.now(timezone.utc) - timedelta(days=settings.new_arrival_days)
        items = []
        for product in products:
            card = product_card(product)
            created = _aware(product.created_at)
            card["is_recently_added"] = bool(created and created >= cutoff)
            items.append(card)
        return {"products": items, "total": len(items)}

    def top_flash_deals(
        self,
        limit: int = 15,
        min_discount: Decimal | int = 1,
        category_id: str | None = None,
    ) -> dict[str, Any]:
        """Biggest current discounts."""
        page = PaginationParams(offset=0, limit=limit)
        filters = ProductFilter(
            min_discount=Decimal(min_discount),
            category_id=category_id,
            include_out_of_stock=True,
        )
        products, _ = self.repository.find_page(
            customer_visible() + build_conditions(filters, CUSTOMER_TEXT_COLUMNS, self.dialect),
            [
                Product.discount_percentage_nett.desc(),
                Product.is_special_offer.desc(),
                Product.is_on_sale.desc(),
                Product.created_at.desc(),
            ],
            0,
            page.limit,
        )
        items = [{**product_card(p), "flash_deal": describe_deal(p)} for p in products]
        return {"products": items, "stats": deal_stats(products)}

    def flash_deals(self, filters: ProductFilter, page: PaginationParams) -> dict[str, Any]:
        """Advanced flash deal listing with deal metadata and facets.

        ``filters.min_discount`` defaults to 10. The deal quality score is
        only used as a filter when ``min_quality_score`` is set.
        """
        if filters.min_discount is None:
            filters.min_discount = Decimal("10")
        conditions = customer_visible() + build_conditions(filters, SEARCH_TEXT_COLUMNS, self.dialect)
        products, result = self._listing(
            conditions, _customer_sort(page.sort_by, FLASH_DEAL_SORTS, "discount_high_low"), page
        )
        items = [
            {
                **card,
                "flash_deal": describe_deal(product),
                "badges": deal_badges(product),
                "deal_metadata": deal_metadata(product),
            }
            for card, product in zip(result.items, products)
        ]
        facets = extract_automatic_filters(products)
        facets["discount_ranges"] = discount_range_facet(products)
        return {
            "products": items,
            "pagination": result.meta(),
            "stats": deal_stats(products),
            "filters": facets,
            "applied_filters": filters.applied(),
        }

    # ------------------------------------------------------------------
    # Detail & recommendations
    # ------------------------------------------------------------------

    def _published(self, slug: str) -> Product:
        product = self.repository.get_by_slug(slug, customer_visible())
        if product is None:
            raise NotFoundError("Product", slug)
        return product

    def get_by_slug(self, slug: str) -> dict[str, Any]:
        """Customer detail page of a published product.

        Raises:
            NotFoundError: If no published product has this slug.
        """
        product = self._published(slug)
        data = product_card(product)
        data.update(
            {
                "description": product.description,
                "meta_title": product.meta_title,
                "meta_description": product.meta_description,
                "meta_keywords": product.meta_keywords,
                "physical_info": {
                    "weight": _money(product.weight),
                    "weight_unit": product.weight_unit,
                    "dimensions": {
                        "width": float(product.width) if product.width is not None else None,
                        "height": float(product.height) if product.height is not None else None,
                        "length": float(product.length) if product.length is not None else None,
                        "depth": float(product.depth) if product.depth is not None else None,
                        "thickness": float(product.thickness) if product.thickness is not None else None,
                        "unit": product.measures_unit,
                    },
                },
                "product_type": {
                    "is_digital": product.is_digital,
                    "is_physical": product.is_physical,
                    "unit_type": product.unit_type,
                },
                "services": [s.to_dict() for s in product.services if s.is_active],
                "custom_options": [
                    serialize_option(o, active_only=True) for o in product.custom_options if o.is_active
                ],
                "variant_price_range": variant_price_range(product),
            }
        )
        return data

    def quote_price(self, slug: str, selections: list[dict[str, Any]]) -> dict[str, Any]:
        """Price of a published product with selected option values.

        Args:
            slug: Product slug.
            selections: ``{option_id, value_id}`` pairs; ``value_id`` may be
                omitted for free-form options.

        Raises:
            NotFoundError: Unknown product.
            ValidationError: Unknown option or value, or a required option
                left unselected.
        """
        product = self._published(slug)
        options: dict[str, ProductCustomOption] = {o.id: o for o in product.custom_options if o.is_active}

        pairs = []
        selected: set[str] = set()
        for selection in selections:
            option = options.get(str(selection.get("option_id")))
            if option is None:
                raise ValidationError(
                    "Unknown option for this product", details={"option_id": selection.get("option_id")}
                )
            value = None
            value_id = selection.get("value_id")
            if value_id:
                value = next((v for v in option.values if v.id == value_id and v.is_active), None)
                if value is None:
                    raise ValidationError(
                        f"Unknown value for option '{option.option_name}'",
                        details={"option_id": option.id, "value_id": value_id},
                    )
            pairs.append((option, value))
            selected.add(option.id)

        missing = [o.option_name for o in options.values() if o.is_required and o.id not in selected]
        if missing:
            raise ValidationError("Required options not selected", details={"options": missing})

        base = Decimal(product.final_price_nett)
        nett = selection_price(base, pairs)
        return {
            "product_id": product.id,
            "base_price_nett": float(base),
            "price_nett": float(nett),
            "price_gross": float(gross_price(nett, product.tax.rate)),
            "selections": [
                {"option_id": o.id, "value_id": v.id if v is not None else None} for o, v in pairs
            ],
        }

    def recommend(self, slug: str, limit: int = 8, exclude_out_of_stock: bool = True) -> dict[str, Any]:
        """Recommend products similar to a published product.

        Raises:
            NotFoundError: If no published product has this slug.
        """
        source = self._published(slug)
        conditions = customer_visible()
        if exclude_out_of_stock:
            conditions.append(Product.is_available_on_stock.is_(True))

        candidates = self.repository.find_candidates(
            source, conditions, max(settings.recommendation_candidate_pool, limit)
        )
        ranked = rank_recommendations(source, candidates, limit)
        logger.info(
            "Generated recommendations",
            product_id=source.id,
            candidates=len(candidates),
            returned=len(ranked),
        )
        return {
            "current_product": {
                "id": source.id,
                "slug": source.slug,
                "title": source.title,
                "price": _money(source.final_price_nett),
                "categories": [link.category.name for link in source.category_links if link.category],
            },
            "recommendations": [
                {
                    **product_card(r.product),
                    "recommendation_score": r.score,
                    "recommendation_reasons": r.reasons,
                }
                for r in ranked
            ],
            "statistics": recommendation_stats(ranked),
            "metadata": {
                "limit": limit,
                "factors_considered": [
                    "Category similarity",
                    "Price range similarity",
                    "Brand matching",
                    "Product badges",
                ],
            },
        }
