"""State machines for product lifecycle.

A product carries two independent lifecycle axes:

- ``ProductStatus`` (active / archived) together with ``is_active``;
- ``PublicationStatus`` (unpublished / published), mirrored by
  ``is_published``.

Every transition is guarded; a transition that would be a no-op is an
error rather than a silent success.
"""

from enum import Enum

from app.domain.exceptions import InvalidStateError


# ============================================================================
# Product Status
# ============================================================================


class ProductStatus(str, Enum):
    """Product catalog status.

    State diagram:
        ACTIVE ──── archive ───► ARCHIVED
          ▲                        │
          └────── unarchive ───────┘
    """

    ACTIVE = "active"
    ARCHIVED = "archived"

    def can_transition_to(self, target: "ProductStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _STATUS_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["ProductStatus"]:
        """Get list of valid target states."""
        return list(_STATUS_TRANSITIONS.get(self, set()))


_STATUS_TRANSITIONS: dict[ProductStatus, set[ProductStatus]] = {
    ProductStatus.ACTIVE: {ProductStatus.ARCHIVED},
    ProductStatus.ARCHIVED: {ProductStatus.ACTIVE},
}


# ============================================================================
# Publication Status
# ============================================================================


class PublicationStatus(str, Enum):
    """Whether a product is visible to customers."""

    UNPUBLISHED = "unpublished"
    PUBLISHED = "published"

    @classmethod
    def from_flag(cls, is_published: bool) -> "PublicationStatus":
        """Map the persisted boolean to a status."""
        return cls.PUBLISHED if is_published else cls.UNPUBLISHED

    def can_transition_to(self, target: "PublicationStatus") -> bool:
        """Check if transition to target state is valid."""
        return target in _PUBLICATION_TRANSITIONS.get(self, set())


_PUBLICATION_TRANSITIONS: dict[PublicationStatus, set[PublicationStatus]] = {
    PublicationStatus.UNPUBLISHED: {PublicationStatus.PUBLISHED},
    PublicationStatus.PUBLISHED: {PublicationStatus.UNPUBLISHED},
}


# ============================================================================
# Transition Guards
# ============================================================================


def validate_status_transition(
    product_id: str,
    current: ProductStatus | str,
    target: ProductStatus,
) -> None:
    """Validate an archive/unarchive transition.

    Args:
        product_id: ID of the product.
        current: Current status.
        target: Target status.

    Raises:
        InvalidStateError: If the transition is not allowed.
    """
    current = ProductStatus(current)
    if not current.can_transition_to(target):
        messages = {
            ProductStatus.ARCHIVED: "Product is already archived",
            ProductStatus.ACTIVE: "Product is not archived",
        }
        raise InvalidStateError(
            product_id,
            current.value,
            target.value,
            message=messages[target],
        )


def validate_publication_transition(
    product_id: str,
    is_published: bool,
    target: PublicationStatus,
    is_active: bool = True,
) -> None:
    """Validate a publish/unpublish transition.

    Publishing additionally requires the product to be active.

    Args:
        product_id: ID of the product.
        is_published: Current publication flag.
        target: Target publication status.
        is_active: Current activity flag.

    Raises:
        InvalidStateError: If the transition is not allowed.
    """
    current = PublicationStatus.from_flag(is_published)

    if target == PublicationStatus.PUBLISHED and not is_active:
        raise InvalidStateError(
            product_id,
            current.value,
            target.value,
            message="Cannot publish an inactive product",
        )

    if not current.can_transition_to(target):
        message = (
            "Product is already published"
            if target == PublicationStatus.PUBLISHED
            else "Product is not published"
        )
        raise InvalidStateError(product_id, current.value, target.value, message=message)
