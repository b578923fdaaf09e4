"""Application layer module.

Contains the catalog service that orchestrates domain logic and
infrastructure and wraps every outcome in a tagged result.
"""

from app.application.catalog_service import (
    CatalogService,
    ServiceResult,
    get_catalog_service,
)

__all__ = [
    "CatalogService",
    "ServiceResult",
    "get_catalog_service",
]
