"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. Monetary amounts are ``Decimal`` throughout and are
rounded half-up to two places whenever a value is displayed or persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Self
from uuid import uuid4

from app.domain.base import ValueObject
from app.domain.exceptions import ValidationError

TWO_PLACES = Decimal("0.01")


# ============================================================================
# Decimal Helpers
# ============================================================================


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """Coerce a numeric input to ``Decimal``.

    Floats go through ``str`` so ``0.1`` stays ``Decimal("0.1")``.

    Args:
        value: Number or numeric string.
        field_name: Field name used in the error message.

    Returns:
        Decimal value.

    Raises:
        ValidationError: If the value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number", details={"field": field_name})
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(
            f"{field_name} must be a number",
            details={"field": field_name, "value": str(value)},
        ) from e


def round2(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_half_up(value: Decimal | float) -> int:
    """Round half-up to the nearest integer."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ============================================================================
# Derived Prices
# ============================================================================


@dataclass(frozen=True)
class DerivedPrices(ValueObject):
    """Complete pricing block derived from nett prices, discount and tax.

    Gross values are already rounded; nett values keep full precision and
    are rounded when persisted.
    """

    purchase_price_nett: Decimal
    purchase_price_gross: Decimal
    regular_price_nett: Decimal
    regular_price_gross: Decimal
    discount_percentage: Decimal
    final_price_nett: Decimal
    final_price_gross: Decimal
    is_discounted: bool
    tax_rate: Decimal

    @property
    def savings_nett(self) -> Decimal:
        """Amount saved against the regular nett price."""
        return round2(self.regular_price_nett - self.final_price_nett)

    def to_columns(self) -> dict[str, Any]:
        """Map to product column values, rounded for storage."""
        return {
            "purchase_price_nett": round2(self.purchase_price_nett),
            "purchase_price_gross": self.purchase_price_gross,
            "regular_price_nett": round2(self.regular_price_nett),
            "regular_price_gross": self.regular_price_gross,
            "discount_percentage_nett": round2(self.discount_percentage),
            "discount_percentage_gross": round2(self.discount_percentage),
            "final_price_nett": round2(self.final_price_nett),
            "final_price_gross": self.final_price_gross,
            "is_discounted": self.is_discounted,
        }


# ============================================================================
# Product Image
# ============================================================================


@dataclass(frozen=True)
class ProductImage(ValueObject):
    """Metadata of one stored product image."""

    url: str
    id: str = field(default_factory=lambda: str(uuid4()))
    alt_text: str = ""
    order: int = 0
    is_main: bool = False
    file_name: str | None = None
    size_bytes: int | None = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build from stored or caller-supplied metadata.

        Raises:
            ValidationError: If ``url`` is missing.
        """
        url = data.get("url")
        if not url or not isinstance(url, str):
            raise ValidationError("Image url is required", details={"field": "images"})
        kwargs: dict[str, Any] = {
            "url": url,
            "alt_text": data.get("alt_text") or "",
            "order": int(data.get("order") or 0),
            "is_main": bool(data.get("is_main", False)),
            "file_name": data.get("file_name"),
            "size_bytes": data.get("size_bytes"),
        }
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        if data.get("created_at"):
            kwargs["created_at"] = str(data["created_at"])
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape stored on the product."""
        return {
            "id": self.id,
            "url": self.url,
            "alt_text": self.alt_text,
            "order": self.order,
            "is_main": self.is_main,
            "file_name": self.file_name,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at,
        }


def reorder_images(images: list[ProductImage]) -> list[ProductImage]:
    """Renumber images in list order and mark the first one as main."""
    return [
        ProductImage(
            url=image.url,
            id=image.id,
            alt_text=image.alt_text,
            order=index,
            is_main=index == 0,
            file_name=image.file_name,
            size_bytes=image.size_bytes,
            created_at=image.created_at,
        )
        for index, image in enumerate(images)
    ]


# ============================================================================
# Custom Details
# ============================================================================


@dataclass(frozen=True)
class CustomDetail(ValueObject):
    """One free-form specification attribute of a product."""

    key: str
    label: str
    value: str

    def to_dict(self) -> dict[str, str]:
        """Convert to the stored JSON shape."""
        return {"key": self.key, "label": self.label, "value": self.value}


# ============================================================================
# Uploads
# ============================================================================


@dataclass(frozen=True)
class ImageUpload(ValueObject):
    """An image file received from a caller, not yet stored."""

    content: bytes
    filename: str
    content_type: str | None = None

    @property
    def size_bytes(self) -> int:
        """Size of the file in bytes."""
        return len(self.content)
