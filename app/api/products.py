"""Product administration endpoints.

Provides endpoints for creating, editing, duplicating and transitioning
products, and for managing their custom options.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, File, Form, Query, UploadFile
from fastapi.responses import JSONResponse

from app.api.dependencies import ServiceDep, parse_form_model, read_uploads, respond
from app.api.schemas import DuplicateRequest, OptionPatchRequest, OptionsRequest, TaggedResponse
from app.catalog.payloads import ProductCreate, ProductEdit
from app.catalog.query import PaginationParams, ProductFilter
from app.domain.exceptions import ValidationError
from app.infrastructure.config import settings

router = APIRouter(tags=["Products"])

TaggedResponses: dict[int | str, dict[str, Any]] = {
    400: {"model": TaggedResponse, "description": "Validation, conflict or state error"},
    404: {"model": TaggedResponse, "description": "Record not found"},
    500: {"model": TaggedResponse, "description": "Storage or image store failure"},
}


# ============================================================================
# Products
# ============================================================================


@router.get("/products", response_model=TaggedResponse, responses=TaggedResponses)
def list_products(
    service: ServiceDep,
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = settings.default_page_size,
    search: str | None = None,
    status: str | None = None,
    is_published: bool | None = None,
    is_active: bool | None = None,
    company_id: str | None = None,
    category_id: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> JSONResponse:
    """List products of every status."""
    filters = ProductFilter(
        query=search,
        status=status or None,
        is_published=is_published,
        is_active=is_active,
        company_id=company_id or None,
        category_id=category_id or None,
    )
    page = PaginationParams(offset=offset, limit=limit, sort_by=sort_by, sort_order=sort_order)
    return respond(service.list_products(filters, page))


@router.post("/products", status_code=201, response_model=TaggedResponse, responses=TaggedResponses)
def create_product(
    service: ServiceDep,
    payload: Annotated[str, Form(description="Product fields as a JSON object")],
    images: Annotated[list[UploadFile] | None, File(description="Product images")] = None,
) -> JSONResponse:
    """Create a product.

    The first uploaded image becomes the main image.
    """
    data = parse_form_model(payload, ProductCreate)
    return respond(service.create_product(data, read_uploads(images)))


@router.get("/products/{product_id}", response_model=TaggedResponse, responses=TaggedResponses)
def get_product(product_id: str, service: ServiceDep) -> JSONResponse:
    """Get the full admin view of a product."""
    return respond(service.get_product(product_id))


@router.patch("/products/{product_id}", response_model=TaggedResponse, responses=TaggedResponses)
def edit_product(
    product_id: str,
    service: ServiceDep,
    payload: Annotated[str | None, Form(description="Changed fields as a JSON object")] = None,
    new_images: Annotated[list[UploadFile] | None, File(description="Images to append")] = None,
) -> JSONResponse:
    """Apply a partial update.

    ``existing_images`` in the payload replaces the stored image list;
    ``new_images`` are appended after it.
    """
    data = parse_form_model(payload, ProductEdit)
    uploads = read_uploads(new_images)
    if not data.supplied and not uploads:
        raise ValidationError("Nothing to update")
    return respond(service.edit_product(product_id, data, uploads))


@router.post(
    "/products/{product_id}/duplicate",
    status_code=201,
    response_model=TaggedResponse,
    responses=TaggedResponses,
)
def duplicate_product(
    product_id: str,
    service: ServiceDep,
    request: Annotated[DuplicateRequest | None, Body()] = None,
) -> JSONResponse:
    """Copy a product with new identifiers."""
    overrides = request.model_dump(exclude_none=True) if request else {}
    return respond(service.duplicate_product(product_id, overrides))


@router.post("/products/{product_id}/publish", response_model=TaggedResponse, responses=TaggedResponses)
def publish_product(product_id: str, service: ServiceDep) -> JSONResponse:
    """Publish a product."""
    return respond(service.publish_product(product_id))


@router.post("/products/{product_id}/unpublish", response_model=TaggedResponse, responses=TaggedResponses)
def unpublish_product(product_id: str, service: ServiceDep) -> JSONResponse:
    """Unpublish a product."""
    return respond(service.unpublish_product(product_id))


@router.post("/products/{product_id}/archive", response_model=TaggedResponse, responses=TaggedResponses)
def archive_product(product_id: str, service: ServiceDep) -> JSONResponse:
    """Archive a product."""
    return respond(service.archive_product(product_id))


@router.post("/products/{product_id}/unarchive", response_model=TaggedResponse, responses=TaggedResponses)
def unarchive_product(product_id: str, service: ServiceDep) -> JSONResponse:
    """Restore an archived product."""
    return respond(service.unarchive_product(product_id))


# ============================================================================
# Custom Options
# ============================================================================


@router.get("/products/{product_id}/options", response_model=TaggedResponse, responses=TaggedResponses)
def list_options(product_id: str, service: ServiceDep) -> JSONResponse:
    """List active options of a product."""
    return respond(service.list_options(product_id))


@router.post(
    "/products/{product_id}/options",
    status_code=201,
    response_model=TaggedResponse,
    responses=TaggedResponses,
)
def create_options(product_id: str, request: OptionsRequest, service: ServiceDep) -> JSONResponse:
    """Add options to a product."""
    return respond(service.create_options(product_id, request.options))


@router.put("/products/{product_id}/options", response_model=TaggedResponse, responses=TaggedResponses)
def replace_options(product_id: str, request: OptionsRequest, service: ServiceDep) -> JSONResponse:
    """Replace all options of a product, keeping value images."""
    return respond(service.replace_options(product_id, request.options))


@router.patch("/options/{option_id}", response_model=TaggedResponse, responses=TaggedResponses)
def update_option(
    option_id: str,
    patch: OptionPatchRequest,
    service: ServiceDep,
) -> JSONResponse:
    """Update one option; ``option_values`` are diffed when given."""
    return respond(service.update_option(option_id, patch.model_dump(exclude_unset=True)))


@router.delete("/options/{option_id}", response_model=TaggedResponse, responses=TaggedResponses)
def delete_option(option_id: str, service: ServiceDep) -> JSONResponse:
    """Delete an option and its values."""
    return respond(service.delete_option(option_id))


@router.post(
    "/options/{option_id}/values/{value_id}/image",
    response_model=TaggedResponse,
    responses=TaggedResponses,
)
def upload_option_value_image(
    option_id: str,
    value_id: str,
    image: Annotated[UploadFile, File(description="Image for the option value")],
    service: ServiceDep,
) -> JSONResponse:
    """Upload an image for one option value."""
    uploads = read_uploads([image])
    if not uploads:
        raise ValidationError("An image file is required", details={"field": "image"})
    return respond(service.upload_option_value_image(option_id, value_id, uploads[0]))
