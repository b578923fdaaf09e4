"""Catalog application service.

Entry point for every catalog operation exposed to callers:
- Product create, edit, duplicate and lifecycle transitions
- Custom option CRUD and value image upload
- Admin and customer queries, recommendations and price quotes

Each write runs in one transaction. Activity is recorded only after the
commit succeeded, and every operation returns a tagged ``ServiceResult``
instead of raising.
"""

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, TypeVar

import structlog
from sqlalchemy.orm import Session

from app.catalog.assembler import CatalogAssembler
from app.catalog.models import Product
from app.catalog.options import serialize_option
from app.catalog.payloads import ProductCreate, ProductEdit
from app.catalog.query import CatalogQueryEngine, PaginationParams, ProductFilter
from app.domain.base import DomainEvent
from app.domain.events import (
    CustomOptionsChanged,
    ProductCreated,
    ProductDuplicated,
    ProductStatusChanged,
    ProductUpdated,
)
from app.domain.exceptions import CatalogError, ConflictError
from app.domain.value_objects import ImageUpload
from app.infrastructure.activity_log import ActivityLogger, get_activity_logger, record_activity
from app.infrastructure.database import storage_errors, unit_of_work
from app.infrastructure.image_store import ImageStore, get_image_store

logger = structlog.get_logger()

T = TypeVar("T")


# ============================================================================
# Service Result
# ============================================================================


@dataclass
class ServiceResult:
    """Tagged result of a catalog operation."""

    status: str
    status_code: int
    message: str
    data: Any = None

    @property
    def success(self) -> bool:
        """Check if the operation succeeded."""
        return self.status == "success"

    @classmethod
    def ok(cls, data: Any, message: str, status_code: int = 200) -> "ServiceResult":
        """Build a success result."""
        return cls(status="success", status_code=status_code, message=message, data=data)

    @classmethod
    def from_error(cls, error: CatalogError) -> "ServiceResult":
        """Build an error result from a catalog error."""
        data: dict[str, Any] = {"error_code": error.error_code}
        if error.details:
            data["details"] = error.details
        if isinstance(error, ConflictError) and error.retryable:
            data["retryable"] = True
        return cls(status="error", status_code=error.status_code, message=error.message, data=data)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape."""
        result: dict[str, Any] = {
            "status": self.status,
            "statusCode": self.status_code,
            "message": self.message,
        }
        if self.data is not None:
            result["data"] = self.data
        return result


# ============================================================================
# Catalog Service
# ============================================================================


class CatalogService:
    """Application service for the product catalog.

    Args:
        session: Database session for the request.
        image_store: Image store, defaults to the configured one.
        activity_logger: Activity sink, defaults to the structlog one.
        request_id: Request ID for correlation.
    """

    def __init__(
        self,
        session: Session,
        image_store: ImageStore | None = None,
        activity_logger: ActivityLogger | None = None,
        request_id: str | None = None,
    ) -> None:
        self.session = session
        self.image_store = image_store or get_image_store()
        self.activity_logger = activity_logger or get_activity_logger()
        self.request_id = request_id
        self.assembler = CatalogAssembler(session, self.image_store)
        self.options = self.assembler.options
        self.queries = CatalogQueryEngine(session)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _write(self, work: Callable[[], T]) -> T:
        with unit_of_work(self.session):
            result = work()
        # Children were written by foreign key; reload them on next access.
        self.session.expire_all()
        return result

    def _failure(self, operation: str, error: CatalogError, **context: Any) -> ServiceResult:
        log = logger.error if error.status_code >= 500 else logger.warning
        log(
            "Catalog operation failed",
            operation=operation,
            error_code=error.error_code,
            error=error.message,
            request_id=self.request_id,
            **context,
        )
        return ServiceResult.from_error(error)

    def _detail(self, product_id: str) -> dict[str, Any]:
        with storage_errors():
            return self.queries.get_by_id(product_id)

    def _record(self, event: DomainEvent) -> None:
        record_activity(self.activity_logger, event)

    def _status_event(self, product: Product, action: str) -> ProductStatusChanged:
        return ProductStatusChanged(
            aggregate_id=product.id,
            product_id=product.id,
            action=action,
            status=product.status,
            is_active=product.is_active,
            is_published=product.is_published,
        )

    # ------------------------------------------------------------------
    # Product writes
    # ------------------------------------------------------------------

    def create_product(
        self, data: dict[str, Any] | ProductCreate, uploads: list[ImageUpload] | None = None
    ) -> ServiceResult:
        """Create a product.

        Args:
            data: Product payload.
            uploads: Image files; at least one image (or a hosted
                ``main_image_url``) is required.

        Returns:
            ServiceResult with the full product (201).
        """
        try:
            product = self._write(lambda: self.assembler.create(data, uploads or []))
            self._record(
                ProductCreated(
                    aggregate_id=product.id,
                    product_id=product.id,
                    title=product.title,
                    sku=product.sku,
                    company_id=product.company_id,
                )
            )
            return ServiceResult.ok(self._detail(product.id), "Product created successfully", 201)
        except CatalogError as e:
            return self._failure("create_product", e)

    def edit_product(
        self,
        product_id: str,
        data: dict[str, Any] | ProductEdit,
        new_uploads: list[ImageUpload] | None = None,
    ) -> ServiceResult:
        """Apply a partial update to a product."""
        try:
            outcome = self._write(lambda: self.assembler.edit(product_id, data, new_uploads or []))
            self._record(
                ProductUpdated(
                    aggregate_id=outcome.product.id,
                    product_id=outcome.product.id,
                    changed_fields=tuple(outcome.changed_fields),
                    prices_rederived=outcome.prices_rederived,
                )
            )
            return ServiceResult.ok(self._detail(outcome.product.id), "Product updated successfully")
        except CatalogError as e:
            return self._failure("edit_product", e, product_id=product_id)

    def duplicate_product(self, product_id: str, overrides: dict[str, Any] | None = None) -> ServiceResult:
        """Copy a product under new identifiers."""
        try:
            outcome = self._write(lambda: self.assembler.duplicate(product_id, overrides))
            self._record(
                ProductDuplicated(
                    aggregate_id=outcome.product.id,
                    source_product_id=outcome.source_id,
                    product_id=outcome.product.id,
                    summary=outcome.summary,
                )
            )
            data = self._detail(outcome.product.id)
            data["duplication_summary"] = {
                "source_product_id": outcome.source_id,
                **outcome.summary,
                "skipped": outcome.skipped,
            }
            return ServiceResult.ok(data, "Product duplicated successfully", 201)
        except CatalogError as e:
            return self._failure("duplicate_product", e, product_id=product_id)

    def _transition(self, product_id: str, action: str, message: str) -> ServiceResult:
        try:
            product = self._write(lambda: getattr(self.assembler, action)(product_id))
            self._record(self._status_event(product, action))
            return ServiceResult.ok(product.to_dict(), message)
        except CatalogError as e:
            return self._failure(action, e, product_id=product_id)

    def publish_product(self, product_id: str) -> ServiceResult:
        """Publish a product."""
        return self._transition(product_id, "publish", "Product published successfully")

    def unpublish_product(self, product_id: str) -> ServiceResult:
        """Unpublish a product."""
        return self._transition(product_id, "unpublish", "Product unpublished successfully")

    def archive_product(self, product_id: str) -> ServiceResult:
        """Archive a product."""
        return self._transition(product_id, "archive", "Product archived successfully")

    def unarchive_product(self, product_id: str) -> ServiceResult:
        """Restore an archived product."""
        return self._transition(product_id, "unarchive", "Product unarchived successfully")

    # ------------------------------------------------------------------
    # Custom options
    # ------------------------------------------------------------------

    def list_options(self, product_id: str) -> ServiceResult:
        """Active options of a product."""
        try:
            with storage_errors():
                options = self.options.list_options(product_id)
            return ServiceResult.ok(options, "Custom options retrieved successfully")
        except CatalogError as e:
            return self._failure("list_options", e, product_id=product_id)

    def create_options(self, product_id: str, options: list[Any]) -> ServiceResult:
        """Add options to a product."""
        try:
            created = self._write(lambda: self.options.create_options(product_id, options))
            self._record(
                CustomOptionsChanged(
                    aggregate_id=product_id, product_id=product_id, action="create", option_count=len(created)
                )
            )
            return ServiceResult.ok(
                [serialize_option(o) for o in created], "Custom options created successfully", 201
            )
        except CatalogError as e:
            return self._failure("create_options", e, product_id=product_id)

    def replace_options(self, product_id: str, options: list[Any]) -> ServiceResult:
        """Replace all options of a product, preserving value images."""
        try:
            updated = self._write(lambda: self.options.update_options(product_id, options))
            self._record(
                CustomOptionsChanged(
                    aggregate_id=product_id, product_id=product_id, action="replace", option_count=len(updated)
                )
            )
            return ServiceResult.ok(
                [serialize_option(o) for o in updated], "Custom options updated successfully"
            )
        except CatalogError as e:
            return self._failure("replace_options", e, product_id=product_id)

    def update_option(self, option_id: str, patch: dict[str, Any]) -> ServiceResult:
        """Update a single option."""
        try:
            option = self._write(lambda: self.options.update_option(option_id, patch))
            self._record(
                CustomOptionsChanged(
                    aggregate_id=option.product_id, product_id=option.product_id, action="update", option_count=1
                )
            )
            return ServiceResult.ok(serialize_option(option), "Custom option updated successfully")
        except CatalogError as e:
            return self._failure("update_option", e, option_id=option_id)

    def delete_option(self, option_id: str) -> ServiceResult:
        """Delete an option with its values."""
        try:
            with storage_errors():
                product_id = self.options.get_option(option_id).product_id
            self._write(lambda: self.options.delete_option(option_id))
            self._record(
                CustomOptionsChanged(
                    aggregate_id=product_id, product_id=product_id, action="delete", option_count=1
                )
            )
            return ServiceResult.ok({"id": option_id}, "Custom option deleted successfully")
        except CatalogError as e:
            return self._failure("delete_option", e, option_id=option_id)

    def upload_option_value_image(self, option_id: str, value_id: str, upload: ImageUpload) -> ServiceResult:
        """Attach an uploaded image to one option value."""
        try:
            value = self._write(lambda: self.options.upload_value_image(option_id, value_id, upload))
            return ServiceResult.ok(value.to_dict(), "Option value image uploaded successfully")
        except CatalogError as e:
            return self._failure("upload_option_value_image", e, option_id=option_id, value_id=value_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _read(self, operation: str, message: str, work: Callable[[], Any], **context: Any) -> ServiceResult:
        try:
            with storage_errors():
                data = work()
            return ServiceResult.ok(data, message)
        except CatalogError as e:
            return self._failure(operation, e, **context)

    def list_products(self, filters: ProductFilter, page: PaginationParams) -> ServiceResult:
        """Admin listing over all statuses."""
        return self._read(
            "list_products", "Products retrieved successfully", lambda: self.queries.list_all(filters, page)
        )

    def get_product(self, product_id: str) -> ServiceResult:
        """Admin detail view."""
        return self._read(
            "get_product",
            "Product retrieved successfully",
            lambda: self.queries.get_by_id(self.assembler.get_product(product_id).id),
            product_id=product_id,
        )

    def explore_products(self, filters: ProductFilter, page: PaginationParams) -> ServiceResult:
        """Customer browse."""
        return self._read(
            "explore_products", "Products retrieved successfully", lambda: self.queries.explore(filters, page)
        )

    def search_products(self, query: str | None, filters: ProductFilter, page: PaginationParams) -> ServiceResult:
        """Customer search."""
        return self._read(
            "search_products",
            "Search completed successfully",
            lambda: self.queries.search(query, filters, page),
            query=query,
        )

    def products_by_category(
        self, category_id: str, filters: ProductFilter, page: PaginationParams
    ) -> ServiceResult:
        """Customer-visible products of a category."""
        return self._read(
            "products_by_category",
            "Category products retrieved successfully",
            lambda: self.queries.by_category(category_id, filters, page),
            category_id=category_id,
        )

    def new_arrivals(self, limit: int = 20) -> ServiceResult:
        """Newest products."""
        return self._read("new_arrivals", "New arrivals retrieved successfully", lambda: self.queries.top_new(limit))

    def top_flash_deals(
        self, limit: int = 15, min_discount: Decimal | int = 1, category_id: str | None = None
    ) -> ServiceResult:
        """Simple flash deal listing."""
        return self._read(
            "top_flash_deals",
            "Flash deals retrieved successfully",
            lambda: self.queries.top_flash_deals(limit, min_discount, category_id),
        )

    def flash_deals(self, filters: ProductFilter, page: PaginationParams) -> ServiceResult:
        """Advanced flash deal listing."""
        return self._read(
            "flash_deals", "Flash deals retrieved successfully", lambda: self.queries.flash_deals(filters, page)
        )

    def product_by_slug(self, slug: str) -> ServiceResult:
        """Customer detail page."""
        return self._read(
            "product_by_slug", "Product retrieved successfully", lambda: self.queries.get_by_slug(slug), slug=slug
        )

    def recommendations(self, slug: str, limit: int = 8, exclude_out_of_stock: bool = True) -> ServiceResult:
        """Products similar to a published product."""
        return self._read(
            "recommendations",
            "Recommendations generated successfully",
            lambda: self.queries.recommend(slug, limit, exclude_out_of_stock),
            slug=slug,
        )

    def quote_price(self, slug: str, selections: list[dict[str, Any]]) -> ServiceResult:
        """Price of a product with selected option values."""
        return self._read(
            "quote_price",
            "Price calculated successfully",
            lambda: self.queries.quote_price(slug, selections),
            slug=slug,
        )


# ============================================================================
# Service Factory
# ============================================================================


def get_catalog_service(
    session: Session,
    image_store: ImageStore | None = None,
    activity_logger: ActivityLogger | None = None,
    request_id: str | None = None,
) -> CatalogService:
    """Get catalog service instance.

    Args:
        session: Database session for the request.
        image_store: Optional image store override.
        activity_logger: Optional activity logger override.
        request_id: Request ID for correlation.

    Returns:
        CatalogService instance.
    """
    return CatalogService(session, image_store, activity_logger, request_id)
