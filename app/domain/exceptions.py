"""Domain exceptions.

All catalog errors derive from ``CatalogError`` and carry the status code
reported to callers. Validation and state errors are raised before any
write happens; dependency failures abort the enclosing transaction.
"""

from typing import Any


class CatalogError(Exception):
    """Base class for all catalog exceptions.

    Attributes:
        status_code: Status reported in the tagged result.
        error_code: Stable machine-readable code.
        message: Human-readable error message.
        details: Additional error context.
    """

    status_code: int = 400
    error_code: str = "CATALOG_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize catalog error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(CatalogError):
    """Raised when a field is missing, malformed or out of range."""

    error_code = "VALIDATION_ERROR"


class NotFoundError(CatalogError):
    """Raised when a referenced record is absent or inactive."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str, message: str | None = None) -> None:
        """Initialize not found error.

        Args:
            entity_type: Type of record (e.g. "Product", "Tax").
            entity_id: Identifier that was looked up.
            message: Optional override for the default message.
        """
        super().__init__(
            message or f"{entity_type} not found",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )


class ConflictError(CatalogError):
    """Raised when a unique identifier is already taken.

    ``retryable`` is set when the conflict came from the database itself
    (a concurrent writer won the race), in which case retrying the whole
    operation is expected to succeed with freshly generated identifiers.
    """

    error_code = "CONFLICT"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message, details)
        self.retryable = retryable


class InvalidStateError(CatalogError):
    """Raised when a lifecycle transition is not allowed."""

    error_code = "INVALID_STATE"

    def __init__(
        self,
        entity_id: str,
        current_state: str,
        target_state: str,
        message: str | None = None,
    ) -> None:
        """Initialize invalid state error.

        Args:
            entity_id: ID of the product.
            current_state: Current state of the product.
            target_state: Attempted target state.
            message: Optional override for the default message.
        """
        super().__init__(
            message
            or f"Cannot move product {entity_id} from '{current_state}' to '{target_state}'",
            details={
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
            },
        )


class DependencyFailure(CatalogError):
    """Raised when an external collaborator (storage, image store) fails."""

    status_code = 500
    error_code = "DEPENDENCY_FAILURE"
