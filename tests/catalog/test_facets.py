"""Tests for page facets."""

from decimal import Decimal
from typing import Any

from app.catalog.facets import (
    availability_facet,
    discount_range_facet,
    extract_automatic_filters,
    price_range_facet,
)
from app.catalog.models import Product


def product(price: str, in_stock: bool = True, discount: str = "0", details: list[dict[str, Any]] | None = None) -> Product:
    """Build an unsaved product with the fields facets read."""
    return Product(
        final_price_nett=Decimal(price),
        discount_percentage_nett=Decimal(discount),
        is_available_on_stock=in_stock,
        custom_details=details or [],
    )


class TestExtractAutomaticFilters:
    """Tests for extract_automatic_filters."""

    def test_empty_page(self) -> None:
        """An empty page has empty facets."""
        filters = extract_automatic_filters([])
        assert filters["price_range"]["min"] == 0
        assert filters["price_range"]["max"] == 0
        assert filters["availability"]["options"] == []
        assert filters["specifications"] == {}

    def test_price_range_floors_and_ceils(self) -> None:
        """The range covers the page's prices in whole units."""
        facet = price_range_facet([product("12.40"), product("99.01"), product("50")])
        assert facet["min"] == 12
        assert facet["max"] == 100
        assert facet["current_range"] == {"min": 12, "max": 100}
        assert facet["formatted_range"] == "12 Euro - 100 Euro"

    def test_availability_counts_sum_to_page_size(self) -> None:
        """In-stock and out-of-stock counts add up to the page size."""
        page = [product("1"), product("2"), product("3", in_stock=False)]
        options = availability_facet(page)["options"]
        assert {o["value"]: o["count"] for o in options} == {"in_stock": 2, "out_of_stock": 1}
        assert sum(o["count"] for o in options) == len(page)

    def test_availability_drops_empty_options(self) -> None:
        """Options with a zero count are left out."""
        options = availability_facet([product("1"), product("2")])["options"]
        assert [o["value"] for o in options] == ["in_stock"]

    def test_specifications(self) -> None:
        """One dropdown per key, values by frequency, keys by coverage."""
        page = [
            product("1", details=[{"key": "color", "label": "Color", "value": "Red"}, {"key": "woodType", "value": "Oak"}]),
            product("2", details=[{"key": "color", "label": "Color", "value": "Blue"}]),
            product("3", details=[{"key": "color", "label": "Color", "value": "Blue"}]),
        ]
        specs = extract_automatic_filters(page)["specifications"]
        assert list(specs) == ["color", "woodType"]
        assert specs["color"]["label"] == "Color"
        assert specs["color"]["options"][0] == {"value": "Blue", "label": "Blue", "count": 2}
        assert specs["color"]["total_products"] == 3
        assert specs["woodType"]["label"] == "Wood Type"
        assert specs["woodType"]["type"] == "dropdown"


class TestDiscountRangeFacet:
    """Tests for discount buckets."""

    def test_buckets(self) -> None:
        """Each product lands in exactly one bucket; empty buckets are dropped."""
        page = [product("1", discount=d) for d in ("75", "70", "55", "10", "5")]
        options = discount_range_facet(page)["options"]
        assert {o["value"]: o["count"] for o in options} == {"70_plus": 2, "50_to_69": 1, "10_to_19": 1}
