"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from app.api.catalog import router as catalog_router
from app.api.health import router as health_router
from app.api.products import router as products_router

__all__ = [
    "catalog_router",
    "health_router",
    "products_router",
]
