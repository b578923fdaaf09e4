"""Product catalog.

Persistence models, identifier generation, price derivation, custom
options, the write-side assembler and the read-side query engine.
"""

from app.catalog.assembler import CatalogAssembler
from app.catalog.identifiers import IdentifierGenerator
from app.catalog.models import Category, Company, Product, ProductCustomOption, Tax
from app.catalog.options import CustomOptionManager
from app.catalog.query import CatalogQueryEngine, PaginatedResult, PaginationParams, ProductFilter
from app.catalog.repository import ProductRepository

__all__ = [
    # Models
    "Category",
    "Company",
    "Product",
    "ProductCustomOption",
    "Tax",
    # Write side
    "CatalogAssembler",
    "CustomOptionManager",
    "IdentifierGenerator",
    # Read side
    "CatalogQueryEngine",
    "PaginatedResult",
    "PaginationParams",
    "ProductFilter",
    "ProductRepository",
]
