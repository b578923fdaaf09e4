"""Customer catalog endpoints.

Read-only views over published products: browse, search, category pages,
new arrivals, flash deals, product detail, recommendations and price
quotes for selected options.
"""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from app.api.dependencies import CustomerFilterDep, ServiceDep, respond
from app.api.products import TaggedResponses
from app.api.schemas import PriceQuoteRequest, TaggedResponse
from app.catalog.query import PaginationParams
from app.infrastructure.config import settings

router = APIRouter(prefix="/catalog", tags=["Catalog"])

Offset = Annotated[int, Query(ge=0, description="Rows to skip")]
Limit = Annotated[int, Query(ge=1, le=100, description="Items per page")]


@router.get("/products", response_model=TaggedResponse, responses=TaggedResponses)
def explore_products(
    service: ServiceDep,
    filters: CustomerFilterDep,
    offset: Offset = 0,
    limit: Limit = settings.default_page_size,
    search: str | None = None,
    sort_by: str = "newest",
) -> JSONResponse:
    """Browse published products."""
    filters.query = search
    page = PaginationParams(offset=offset, limit=limit, sort_by=sort_by)
    return respond(service.explore_products(filters, page))


@router.get("/search", response_model=TaggedResponse, responses=TaggedResponses)
def search_products(
    service: ServiceDep,
    filters: CustomerFilterDep,
    q: str | None = None,
    offset: Offset = 0,
    limit: Limit = 25,
    sort_by: str = "relevance",
) -> JSONResponse:
    """Search published products, specification values included."""
    page = PaginationParams(offset=offset, limit=limit, sort_by=sort_by)
    return respond(service.search_products(q, filters, page))


@router.get("/categories/{category_id}/products", response_model=TaggedResponse, responses=TaggedResponses)
def products_by_category(
    category_id: str,
    service: ServiceDep,
    filters: CustomerFilterDep,
    q: str | None = None,
    offset: Offset = 0,
    limit: Limit = 25,
    sort_by: str = "relevance",
) -> JSONResponse:
    """Published products of one category."""
    filters.query = q
    page = PaginationParams(offset=offset, limit=limit, sort_by=sort_by)
    return respond(service.products_by_category(category_id, filters, page))


@router.get("/new-arrivals", response_model=TaggedResponse, responses=TaggedResponses)
def new_arrivals(service: ServiceDep, limit: Limit = 20) -> JSONResponse:
    """Newest published products."""
    return respond(service.new_arrivals(limit))


@router.get("/flash-deals/top", response_model=TaggedResponse, responses=TaggedResponses)
def top_flash_deals(
    service: ServiceDep,
    limit: Limit = 15,
    min_discount: Annotated[Decimal, Query(ge=0, le=100)] = Decimal("1"),
    category_id: str | None = None,
) -> JSONResponse:
    """Biggest current discounts."""
    return respond(service.top_flash_deals(limit, min_discount, category_id or None))


@router.get("/flash-deals", response_model=TaggedResponse, responses=TaggedResponses)
def flash_deals(
    service: ServiceDep,
    filters: CustomerFilterDep,
    offset: Offset = 0,
    limit: Limit = 40,
    search: str | None = None,
    sort_by: str = "discount_high_low",
    min_discount: Annotated[Decimal | None, Query(ge=0, le=100)] = None,
    max_discount: Annotated[Decimal | None, Query(ge=0, le=100)] = None,
    min_quality_score: Annotated[int | None, Query(ge=0, le=100)] = None,
) -> JSONResponse:
    """Flash deals with deal metadata, statistics and facets."""
    filters.query = search
    filters.min_discount = min_discount
    filters.max_discount = max_discount
    filters.min_quality_score = min_quality_score
    page = PaginationParams(offset=offset, limit=limit, sort_by=sort_by)
    return respond(service.flash_deals(filters, page))


@router.get("/products/{slug}", response_model=TaggedResponse, responses=TaggedResponses)
def product_detail(slug: str, service: ServiceDep) -> JSONResponse:
    """Detail page of a published product."""
    return respond(service.product_by_slug(slug))


@router.get("/products/{slug}/recommendations", response_model=TaggedResponse, responses=TaggedResponses)
def recommendations(
    slug: str,
    service: ServiceDep,
    limit: Annotated[int, Query(ge=1, le=50)] = 8,
    exclude_out_of_stock: bool = True,
) -> JSONResponse:
    """Products similar to a published product."""
    return respond(service.recommendations(slug, limit, exclude_out_of_stock))


@router.post("/products/{slug}/price", response_model=TaggedResponse, responses=TaggedResponses)
def quote_price(slug: str, request: PriceQuoteRequest, service: ServiceDep) -> JSONResponse:
    """Price of a product with the selected option values."""
    selections = [selection.model_dump() for selection in request.selections]
    return respond(service.quote_price(slug, selections))
