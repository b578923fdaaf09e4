"""Shared API dependencies and helpers.

Builds the per-request catalog service and turns service results and
query parameters into what the routers need.
"""

import json
from collections.abc import Generator
from decimal import Decimal
from typing import Annotated, Any, TypeVar

import structlog
from fastapi import Depends, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.application.catalog_service import CatalogService, ServiceResult, get_catalog_service
from app.catalog.payloads import validate_payload
from app.catalog.query import ProductFilter
from app.domain.exceptions import ValidationError
from app.domain.value_objects import ImageUpload
from app.infrastructure.activity_log import ActivityLogger, get_activity_logger
from app.infrastructure.database import get_session
from app.infrastructure.image_store import ImageStore, get_image_store

logger = structlog.get_logger()

_JSON_OBJECT = TypeAdapter(dict[str, Any])

ModelT = TypeVar("ModelT", bound=BaseModel)


# ============================================================================
# Dependencies
# ============================================================================


def get_db() -> Generator[Session, None, None]:
    """Database session for one request."""
    yield from get_session()


def get_store() -> ImageStore:
    """Image store used by write endpoints."""
    return get_image_store()


def get_activity() -> ActivityLogger:
    """Activity logger used by write endpoints."""
    return get_activity_logger()


def get_service(
    request: Request,
    session: Annotated[Session, Depends(get_db)],
    image_store: Annotated[ImageStore, Depends(get_store)],
    activity_logger: Annotated[ActivityLogger, Depends(get_activity)],
) -> CatalogService:
    """Get catalog service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_catalog_service(session, image_store, activity_logger, request_id)


ServiceDep = Annotated[CatalogService, Depends(get_service)]


# ============================================================================
# Converters
# ============================================================================


def respond(result: ServiceResult) -> JSONResponse:
    """Render a tagged result with its status code."""
    return JSONResponse(status_code=result.status_code, content=result.to_dict())


def error_response(error: ValidationError) -> JSONResponse:
    """Render a request-level validation error."""
    return respond(ServiceResult.from_error(error))


def parse_payload(raw: str | None, field_name: str = "payload") -> dict[str, Any]:
    """Parse the JSON object sent in a multipart form field.

    Raises:
        ValidationError: If the field is not a JSON object.
    """
    if raw is None or not raw.strip():
        return {}
    try:
        return _JSON_OBJECT.validate_json(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            f"{field_name} must be a JSON object",
            details={"field": field_name, "errors": e.errors(include_url=False, include_context=False)},
        ) from e


def parse_form_model(raw: str | None, model: type[ModelT]) -> ModelT:
    """Parse and validate the JSON object of a multipart form field.

    Raises:
        ValidationError: If the field is not a JSON object or fails ``model``.
    """
    return validate_payload(model, parse_payload(raw))


def read_uploads(files: list[UploadFile] | None) -> list[ImageUpload]:
    """Read uploaded files into memory."""
    uploads = []
    for upload in files or []:
        if not upload.filename:
            continue
        uploads.append(
            ImageUpload(
                content=upload.file.read(),
                filename=upload.filename,
                content_type=upload.content_type or "application/octet-stream",
            )
        )
    return uploads


def parse_specifications(raw: str | None) -> dict[str, list[str]]:
    """Read ``{"specifications": {key: [values]}}`` from the ``filters`` parameter.

    Malformed input is logged and ignored.
    """
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring malformed filters parameter", error=str(e))
        return {}
    specifications = parsed.get("specifications") if isinstance(parsed, dict) else None
    if not isinstance(specifications, dict):
        return {}
    return {
        str(key): [str(v) for v in values]
        for key, values in specifications.items()
        if isinstance(values, list)
    }


def customer_filter(
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    category_id: str | None = None,
    company_id: str | None = None,
    include_out_of_stock: bool = False,
    is_on_sale: bool | None = None,
    free_shipping: bool | None = None,
    is_featured: bool | None = None,
    is_new: bool | None = None,
    is_top_seller: bool | None = None,
    filters: str | None = None,
) -> ProductFilter:
    """Filter parameters shared by customer listings."""
    return ProductFilter(
        min_price=min_price,
        max_price=max_price,
        category_id=category_id or None,
        company_id=company_id or None,
        include_out_of_stock=include_out_of_stock,
        is_on_sale=is_on_sale,
        free_shipping=free_shipping,
        is_featured=is_featured,
        is_new=is_new,
        is_top_seller=is_top_seller,
        specifications=parse_specifications(filters),
    )


CustomerFilterDep = Annotated[ProductFilter, Depends(customer_filter)]
