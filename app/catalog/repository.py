"""Product repository for database reads.

Provides lookups and paginated reads for products. A page and its total
match count come from one statement (a window count over the filtered
rows), so the total always describes the returned rows.
"""

from collections.abc import Sequence
from typing import Any

from sqlalchemy import ColumnElement, case, func, select
from sqlalchemy.orm import Session, selectinload

from app.catalog.models import (
    Category,
    Product,
    ProductCategory,
    ProductCustomOption,
)


def _with_children(query: Any) -> Any:
    return query.options(
        selectinload(Product.category_links).selectinload(ProductCategory.category),
        selectinload(Product.company),
    )


class ProductRepository:
    """Repository for Product database reads.

    Example usage:
        repo = ProductRepository(session)
        products, total = repo.find_page(
            [Product.is_published.is_(True)],
            order_by=[Product.created_at.desc()],
            offset=0,
            limit=20,
        )
    """

    def __init__(self, session: Session) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session.
        """
        self.session = session

    def get_by_id(self, product_id: str, include_details: bool = True) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product ID.
            include_details: Eagerly load categories, services and options.

        Returns:
            Product if found, None otherwise.
        """
        query = _with_children(select(Product).where(Product.id == product_id))
        if include_details:
            query = query.options(
                selectinload(Product.services),
                selectinload(Product.tax),
                selectinload(Product.custom_options).selectinload(ProductCustomOption.values),
            )
        return self.session.execute(query).scalar_one_or_none()

    def get_by_slug(self, slug: str, conditions: Sequence[ColumnElement[bool]] = ()) -> Product | None:
        """Get product by slug, optionally restricted by extra conditions.

        Args:
            slug: Product slug.
            conditions: Additional filters (e.g. customer visibility).

        Returns:
            Product if found, None otherwise.
        """
        query = _with_children(select(Product).where(Product.slug == slug, *conditions)).options(
            selectinload(Product.services),
            selectinload(Product.tax),
            selectinload(Product.custom_options).selectinload(ProductCustomOption.values),
        )
        return self.session.execute(query).scalar_one_or_none()

    def get_category(self, category_id: str) -> Category | None:
        """Get a category by ID."""
        return self.session.get(Category, category_id)

    def count(self, conditions: Sequence[ColumnElement[bool]]) -> int:
        """Count products matching ``conditions``."""
        base = select(Product.id).where(*conditions)
        return self.session.execute(select(func.count()).select_from(base.subquery())).scalar_one()

    def find_page(
        self,
        conditions: Sequence[ColumnElement[bool]],
        order_by: Sequence[Any],
        offset: int,
        limit: int,
    ) -> tuple[list[Product], int]:
        """Find one page of products and the total match count.

        Args:
            conditions: Filters combined with AND.
            order_by: Ordering clauses; ``Product.id`` is appended as tie-breaker.
            offset: Rows to skip.
            limit: Maximum rows.

        Returns:
            Tuple of (products, total count).
        """
        query = _with_children(
            select(Product, func.count().over().label("total"))
            .where(*conditions)
            .order_by(*order_by, Product.id)
            .offset(offset)
            .limit(limit)
        )
        rows = self.session.execute(query).all()
        if rows:
            return [row.Product for row in rows], rows[0].total
        # A page past the end carries no window total.
        return [], self.count(conditions) if offset else 0

    def find_candidates(
        self,
        source: Product,
        conditions: Sequence[ColumnElement[bool]],
        limit: int,
    ) -> list[Product]:
        """Find recommendation candidates, related products first.

        Products sharing a category or the owner with ``source`` are
        preferred when the pool has to be cut.
        """
        shares_category = Product.id.in_(
            select(ProductCategory.product_id).where(
                ProductCategory.category_id.in_(source.category_ids or [""])
            )
        )
        relatedness = case((shares_category, 1), else_=0)
        if source.company_id:
            relatedness = relatedness + case((Product.company_id == source.company_id, 1), else_=0)

        query = _with_children(
            select(Product)
            .where(Product.id != source.id, *conditions)
            .order_by(
                relatedness.desc(),
                Product.mark_as_featured.desc(),
                Product.mark_as_top_seller.desc(),
                Product.created_at.desc(),
                Product.id,
            )
            .limit(limit)
        )
        return list(self.session.execute(query).scalars().all())
