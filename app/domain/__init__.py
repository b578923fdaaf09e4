"""Domain layer - value objects, state machines, domain events.

This module exports the core catalog building blocks:

- **Value Objects**: Immutable objects compared by value (DerivedPrices, ProductImage)
- **State Machines**: Product lifecycle and publication transitions
- **Domain Events**: Significant product changes recorded in the activity log
- **Exceptions**: Catalog errors carrying their status and error code

Example usage:
    from app.domain import ProductStatus, validate_status_transition

    validate_status_transition(product.id, ProductStatus.ACTIVE, ProductStatus.ARCHIVED)
"""

# Base classes
from app.domain.base import DomainEvent, ValueObject

# Domain Events
from app.domain.events import (
    CustomOptionsChanged,
    ProductCreated,
    ProductDuplicated,
    ProductStatusChanged,
    ProductUpdated,
)

# Exceptions
from app.domain.exceptions import (
    CatalogError,
    ConflictError,
    DependencyFailure,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

# State Machines
from app.domain.state_machines import (
    ProductStatus,
    PublicationStatus,
    validate_publication_transition,
    validate_status_transition,
)

# Value Objects
from app.domain.value_objects import (
    CustomDetail,
    DerivedPrices,
    ImageUpload,
    ProductImage,
)

__all__ = [
    # Base
    "DomainEvent",
    "ValueObject",
    # Events
    "CustomOptionsChanged",
    "ProductCreated",
    "ProductDuplicated",
    "ProductStatusChanged",
    "ProductUpdated",
    # Exceptions
    "CatalogError",
    "ConflictError",
    "DependencyFailure",
    "InvalidStateError",
    "NotFoundError",
    "ValidationError",
    # State machines
    "ProductStatus",
    "PublicationStatus",
    "validate_publication_transition",
    "validate_status_transition",
    # Value objects
    "CustomDetail",
    "DerivedPrices",
    "ImageUpload",
    "ProductImage",
]
