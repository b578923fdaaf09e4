"""Catalog API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.api.catalog import router as catalog_router
from app.api.health import router as health_router
from app.api.middleware import setup_middleware
from app.api.products import router as products_router
from app.application.catalog_service import ServiceResult
from app.catalog.payloads import describe_error
from app.domain.exceptions import CatalogError
from app.infrastructure.config import settings
from app.infrastructure.logging_config import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    configure_logging()
    logger.info(
        "Starting Catalog API",
        version=settings.api_version,
        debug=settings.debug,
        image_store=settings.image_store_backend,
    )

    yield

    logger.info("Shutting down Catalog API")


app = FastAPI(
    title="Catalog API",
    description="Multi-tenant product catalog and pricing engine",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(products_router)
app.include_router(catalog_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    """Render catalog errors raised while parsing a request."""
    result = ServiceResult.from_error(exc)
    return JSONResponse(status_code=result.status_code, content=result.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed parameters as a 400 tagged result."""
    errors = [
        {"field": ".".join(str(part) for part in error["loc"][1:]), "message": describe_error(error)}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "status": "error",
            "statusCode": 400,
            "message": "Invalid request parameters",
            "data": {"error_code": "VALIDATION_ERROR", "details": errors},
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with the tagged format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "statusCode": exc.status_code, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )
