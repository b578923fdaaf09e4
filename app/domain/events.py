"""Domain events for the product catalog.

Events are recorded through the activity logger after a write has been
committed. They describe what happened to a product and who owns it.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

from app.domain.base import DomainEvent


@dataclass(frozen=True)
class ProductCreated(DomainEvent):
    """Event raised when a product is created."""

    event_type: ClassVar[str] = "product.created"

    product_id: str = ""
    title: str = ""
    sku: str = ""
    company_id: str | None = None

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "product_id": self.product_id,
            "title": self.title,
            "sku": self.sku,
            "company_id": self.company_id,
        }


@dataclass(frozen=True)
class ProductUpdated(DomainEvent):
    """Event raised when a product is edited."""

    event_type: ClassVar[str] = "product.updated"

    product_id: str = ""
    changed_fields: tuple[str, ...] = field(default_factory=tuple)
    prices_rederived: bool = False

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "product_id": self.product_id,
            "changed_fields": list(self.changed_fields),
            "prices_rederived": self.prices_rederived,
        }


@dataclass(frozen=True)
class ProductDuplicated(DomainEvent):
    """Event raised when a product is copied."""

    event_type: ClassVar[str] = "product.duplicated"

    source_product_id: str = ""
    product_id: str = ""
    summary: dict[str, int] = field(default_factory=dict)

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "source_product_id": self.source_product_id,
            "product_id": self.product_id,
            "summary": dict(self.summary),
        }


@dataclass(frozen=True)
class ProductStatusChanged(DomainEvent):
    """Event raised on publish, unpublish, archive and unarchive."""

    event_type: ClassVar[str] = "product.status_changed"

    product_id: str = ""
    action: str = ""
    status: str = ""
    is_active: bool = True
    is_published: bool = False

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "product_id": self.product_id,
            "action": self.action,
            "status": self.status,
            "is_active": self.is_active,
            "is_published": self.is_published,
        }


@dataclass(frozen=True)
class CustomOptionsChanged(DomainEvent):
    """Event raised when a product's custom options are written."""

    event_type: ClassVar[str] = "product.options_changed"

    product_id: str = ""
    action: str = ""
    option_count: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "product_id": self.product_id,
            "action": self.action,
            "option_count": self.option_count,
        }
