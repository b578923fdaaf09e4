"""Unique identifier generation for products.

Issues URL slugs, 8-digit SKUs and EAN-13 barcodes. Slugs and SKUs are
checked against the database before use; the unique constraints on the
products table remain authoritative for concurrent writers.
"""

import random
import re
import time
import unicodedata
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.catalog.models import Product, ProductService
from app.domain.exceptions import ValidationError
from app.infrastructure.config import settings

logger = structlog.get_logger()

SKU_MIN = 10_000_000
SKU_MAX = 99_999_999

_INVALID_SLUG_CHARS = re.compile(r"[^a-z0-9\s.-]")
_WHITESPACE = re.compile(r"\s+")
_DASH_RUNS = re.compile(r"-+")
_DOT_RUNS = re.compile(r"\.+")


# ============================================================================
# Pure Helpers
# ============================================================================


def strip_accents(text: str) -> str:
    """Decompose to NFD and drop combining marks."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_slug(text: str) -> str:
    """Normalize free text to a slug base.

    Example:
        >>> normalize_slug("Café Déjà Vu!!")
        'cafe-deja-vu'

    Args:
        text: Source text, usually a product title.

    Returns:
        Lowercase slug made of ``[a-z0-9.-]``; empty if nothing survives.
    """
    slug = strip_accents(text.strip().lower())
    slug = _INVALID_SLUG_CHARS.sub("", slug)
    slug = _WHITESPACE.sub("-", slug)
    slug = _DASH_RUNS.sub("-", slug)
    slug = _DOT_RUNS.sub(".", slug)
    return slug.strip("-.")


def ean13_check_digit(digits: str) -> int:
    """Compute the EAN-13 check digit of a 12-digit body.

    Weights alternate 1 and 3 starting from the leftmost digit.

    Args:
        digits: The first 12 digits.

    Returns:
        Check digit 0-9.

    Raises:
        ValueError: If ``digits`` is not exactly 12 decimal digits.
    """
    if len(digits) != 12 or not digits.isdigit():
        raise ValueError(f"EAN-13 body must be 12 digits, got {digits!r}")
    total = sum(int(d) * (3 if i % 2 else 1) for i, d in enumerate(digits))
    return (10 - total % 10) % 10


def is_valid_ean13(code: str) -> bool:
    """Check length, digits and check digit of an EAN-13 code."""
    if len(code) != 13 or not code.isdigit():
        return False
    return ean13_check_digit(code[:12]) == int(code[12])


def _millis() -> int:
    return int(time.time() * 1000)


# ============================================================================
# Generator
# ============================================================================


class IdentifierGenerator:
    """Generates unique slugs, SKUs and EAN-13 codes.

    Args:
        session: Session used for uniqueness checks.
        rng: Random source, injectable for deterministic tests.
    """

    def __init__(self, session: Session, rng: random.Random | None = None) -> None:
        self.session = session
        self.rng = rng or random.Random()

    def _exists(self, model: Any, column: str, value: str, exclude_id: str | None) -> bool:
        stmt = select(model.id).where(getattr(model, column) == value)
        if exclude_id:
            stmt = stmt.where(model.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    def generate_slug(
        self,
        text: str | None,
        exclude_id: str | None = None,
        model: type[Product] | type[ProductService] = Product,
    ) -> str:
        """Generate a slug not used by any other row.

        Tries the normalized base, then ``base-1`` .. ``base-N``; after
        ``settings.slug_max_attempts`` collisions a millisecond timestamp
        suffix is used without checking.

        Args:
            text: Text to derive the slug from.
            exclude_id: Row allowed to keep its own slug (edits).
            model: Table to check, products or product services.

        Returns:
            Unique slug.

        Raises:
            ValidationError: If the text is empty or normalizes to nothing.
        """
        if not text or not text.strip():
            raise ValidationError("Text is required to generate a slug", details={"field": "slug"})

        base = normalize_slug(text)
        if not base:
            raise ValidationError(
                "Slug cannot be generated from the given text",
                details={"field": "slug", "text": text},
            )

        if not self._exists(model, "slug", base, exclude_id):
            return base

        for counter in range(1, settings.slug_max_attempts + 1):
            candidate = f"{base}-{counter}"
            if not self._exists(model, "slug", candidate, exclude_id):
                return candidate

        fallback = f"{base}-{_millis()}"
        logger.warning("Slug attempts exhausted, using timestamp suffix", slug=fallback)
        return fallback

    def generate_sku(self) -> str:
        """Draw a random 8-digit SKU without checking uniqueness."""
        return str(self.rng.randint(SKU_MIN, SKU_MAX))

    def generate_unique_sku(self, exclude_id: str | None = None) -> str:
        """Draw SKUs until one is unused.

        Falls back to the last 8 digits of the current millisecond time
        after ``settings.sku_max_attempts`` collisions.

        Args:
            exclude_id: Product allowed to keep its own SKU.

        Returns:
            8-digit SKU string.
        """
        for _ in range(settings.sku_max_attempts):
            candidate = self.generate_sku()
            if not self._exists(Product, "sku", candidate, exclude_id):
                return candidate

        fallback = str(_millis())[-8:]
        logger.warning("SKU attempts exhausted, using timestamp fallback", sku=fallback)
        return fallback

    def generate_ean13(self) -> str:
        """Generate an EAN-13 code with a valid check digit.

        Format is ``prefix + 5 random digits + 4 random digits + check``;
        no uniqueness check is performed.
        """
        prefix = settings.ean_prefix
        manufacturer = f"{self.rng.randint(0, 99_999):05d}"
        body_length = 12 - len(prefix) - len(manufacturer)
        item = f"{self.rng.randint(0, 10**body_length - 1):0{body_length}d}"
        body = f"{prefix}{manufacturer}{item}"
        return f"{body}{ean13_check_digit(body)}"
