"""Facets derived from a page of results.

Facets are computed from the products on the current page only, so their
counts always add up to the page size and never describe items outside it.
"""

import math
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

import structlog

from app.catalog.custom_details import SpecificationIndex, friendly_label
from app.catalog.models import Product

logger = structlog.get_logger()

DISCOUNT_RANGES: tuple[tuple[str, str, int, int | None], ...] = (
    ("70_plus", "70% or more (Mega Deals)", 70, None),
    ("50_to_69", "50% - 69% (Super Deals)", 50, 70),
    ("30_to_49", "30% - 49% (Great Deals)", 30, 50),
    ("20_to_29", "20% - 29% (Good Deals)", 20, 30),
    ("10_to_19", "10% - 19% (Standard Deals)", 10, 20),
)


def _empty_filters() -> dict[str, Any]:
    return {
        "price_range": {
            "type": "range",
            "label": "Price Range",
            "min": 0,
            "max": 0,
            "current_range": {"min": 0, "max": 0},
        },
        "availability": {"type": "checkbox", "label": "Availability", "options": []},
        "specifications": {},
    }


def price_range_facet(products: Sequence[Product]) -> dict[str, Any]:
    """Floor of the lowest and ceiling of the highest final nett price."""
    prices = [Decimal(p.final_price_nett) for p in products if p.final_price_nett is not None]
    if not prices:
        return _empty_filters()["price_range"]
    low = math.floor(min(prices))
    high = math.ceil(max(prices))
    return {
        "type": "range",
        "label": "Price Range",
        "min": low,
        "max": high,
        "current_range": {"min": low, "max": high},
        "formatted_range": f"{low} Euro - {high} Euro",
    }


def availability_facet(products: Sequence[Product]) -> dict[str, Any]:
    """In-stock / out-of-stock counts; zero-count options are left out."""
    in_stock = sum(1 for p in products if p.is_available_on_stock)
    options = [
        {"value": "in_stock", "label": "In Stock", "count": in_stock},
        {"value": "out_of_stock", "label": "Out of Stock", "count": len(products) - in_stock},
    ]
    return {
        "type": "checkbox",
        "label": "Availability",
        "options": [o for o in options if o["count"] > 0],
    }


def specifications_facet(products: Sequence[Product]) -> dict[str, Any]:
    """One dropdown per custom detail key, most common keys first."""
    index = SpecificationIndex.build(p.custom_details for p in products)
    specs = {}
    for key in index.keys():
        counts = index.values[key]
        options = [
            {"value": value, "label": value, "count": count}
            for value, count in sorted(counts.items(), key=lambda item: -item[1])
        ]
        specs[key] = {
            "type": "dropdown",
            "label": friendly_label(key),
            "options": options,
            "total_products": sum(counts.values()),
        }
    return dict(sorted(specs.items(), key=lambda item: -item[1]["total_products"]))


def extract_automatic_filters(products: Sequence[Product]) -> dict[str, Any]:
    """Build the facet block shown next to a page of results.

    Args:
        products: Products of the current page.

    Returns:
        ``price_range``, ``availability`` and ``specifications`` facets.
    """
    if not products:
        return _empty_filters()

    filters = {
        "price_range": price_range_facet(products),
        "availability": availability_facet(products),
        "specifications": specifications_facet(products),
    }
    logger.debug(
        "Extracted facets",
        product_count=len(products),
        specification_count=len(filters["specifications"]),
    )
    return filters


def discount_range_facet(products: Sequence[Product]) -> dict[str, Any]:
    """Discount buckets of a page of flash deals."""
    options = []
    for value, label, low, high in DISCOUNT_RANGES:
        count = sum(
            1
            for p in products
            if Decimal(p.discount_percentage_nett or 0) >= low
            and (high is None or Decimal(p.discount_percentage_nett or 0) < high)
        )
        if count:
            options.append({"value": value, "label": label, "count": count})
    return {"type": "checkbox", "label": "Discount Ranges", "options": options}
