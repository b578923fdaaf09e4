"""Free-form product specifications.

Products carry an ordered list of ``{key, label, value}`` records.
Callers may send any subset of the three fields; missing keys are derived
from the label (else the value), and missing labels from the key.
"""

import re
from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from app.catalog.identifiers import strip_accents
from app.domain.exceptions import ValidationError
from app.domain.value_objects import CustomDetail

MAX_KEY_LENGTH = 50

_NON_KEY_CHARS = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def generate_key(text: str) -> str:
    """Derive a snake_case key from a label or value.

    Args:
        text: Label or value text.

    Returns:
        Key of at most 50 characters, possibly empty.
    """
    key = strip_accents(text.strip().lower())
    key = _NON_KEY_CHARS.sub("", key)
    key = _WHITESPACE.sub("_", key.strip())
    return key[:MAX_KEY_LENGTH]


def friendly_label(key: str) -> str:
    """Turn a key into a display label.

    Example:
        >>> friendly_label("screenSize_inches")
        'Screen Size Inches'
    """
    spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", key)
    spaced = spaced.replace("_", " ").replace("-", " ")
    return " ".join(word.capitalize() for word in spaced.split())


def process_custom_details(raw: Iterable[Any] | None) -> list[CustomDetail]:
    """Normalize caller-supplied custom details.

    Keys fall back to
    ``custom_field_<n>`` (1-based position) when nothing usable can be
    derived.

    Args:
        raw: List of mappings with optional ``key``, ``label`` and ``value``.

    Returns:
        Normalized details in input order.

    Raises:
        ValidationError: If ``raw`` is not a list of mappings.
    """
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, dict)):
        raise ValidationError(
            "custom_details must be a list", details={"field": "custom_details"}
        )

    details: list[CustomDetail] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(
                "Each custom detail must be an object",
                details={"field": "custom_details", "index": index},
            )

        value = entry.get("value")
        value = "" if value is None else str(value).strip()
        label = str(entry.get("label") or "").strip()
        key = str(entry.get("key") or "").strip()

        if key:
            details.append(CustomDetail(key=key, label=label or key, value=value))
            continue

        key = generate_key(label or value)
        if len(key) < 2:
            key = f"custom_field_{index + 1}"
            label = label or friendly_label(key)

        details.append(CustomDetail(key=key, label=label or friendly_label(key), value=value))

    return details


# ============================================================================
# Specification Index
# ============================================================================


@dataclass
class SpecificationIndex:
    """Counts of specification values across a set of products.

    Attributes:
        values: key -> value -> number of products having it.
        labels: key -> first label seen.
    """

    values: dict[str, Counter[str]] = field(default_factory=lambda: defaultdict(Counter))
    labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, details_per_product: Iterable[Iterable[dict[str, Any]] | None]) -> "SpecificationIndex":
        """Index the custom details of many products.

        A product counts once per ``(key, value)`` pair even if it repeats.
        """
        index = cls()
        for details in details_per_product:
            seen: set[tuple[str, str]] = set()
            for detail in details or []:
                if not isinstance(detail, dict):
                    continue
                key = str(detail.get("key") or "").strip()
                value = str(detail.get("value") or "").strip()
                if not key or not value or (key, value) in seen:
                    continue
                seen.add((key, value))
                index.values[key][value] += 1
                index.labels.setdefault(key, str(detail.get("label") or "").strip())
        return index

    def keys(self) -> list[str]:
        """Indexed keys in first-seen order."""
        return list(self.values.keys())
