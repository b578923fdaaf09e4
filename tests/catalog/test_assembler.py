"""Tests for product assembly, editing, duplication and lifecycle."""

from collections.abc import Callable
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.catalog.assembler import CatalogAssembler, parse_categories
from app.catalog.identifiers import is_valid_ean13
from app.catalog.models import Product, ProductCustomOptionValue
from app.catalog.payloads import ProductAttributes, validate_payload
from app.domain.exceptions import (
    ConflictError,
    DependencyFailure,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.domain.value_objects import ImageUpload

Payload = Callable[..., dict[str, Any]]


def _reload(session: Session, product: Product) -> Product:
    session.commit()
    session.expire_all()
    return session.get(Product, product.id)


class TestCreate:
    """Tests for CatalogAssembler.create."""

    def test_derives_identifiers_and_prices(
        self, assembler: CatalogAssembler, session: Session, product_payload: Payload
    ) -> None:
        """A product gets slug, SKU, barcode, EAN and derived prices."""
        product = _reload(session, assembler.create(product_payload(title="Café Déjà Vu!!")))
        assert product.slug == "cafe-deja-vu"
        assert len(product.sku) == 8
        assert product.barcode == product.sku
        assert is_valid_ean13(product.ean)
        assert product.regular_price_gross == Decimal("24.00")
        assert product.final_price_nett == Decimal("18.00")
        assert product.final_price_gross == Decimal("21.60")
        assert product.is_discounted is True
        assert product.status == "active"
        assert product.is_active is True
        assert product.is_published is False

    def test_links_categories_first_is_primary(
        self, assembler: CatalogAssembler, session: Session, product_payload: Payload, refs: Any
    ) -> None:
        """Without an explicit primary the first category is primary."""
        ids = [c.id for c in refs.categories]
        product = _reload(session, assembler.create(product_payload(categories=ids)))
        assert sorted(product.category_ids) == sorted(ids)
        assert product.primary_category_id == ids[0]

    def test_explicit_primary_category(
        self, assembler: CatalogAssembler, session: Session, product_payload: Payload, refs: Any
    ) -> None:
        """An entry flagged primary wins."""
        first, second = refs.categories[0].id, refs.categories[1].id
        payload = product_payload(categories=[first, {"category_id": second, "is_primary": True}])
        product = _reload(session, assembler.create(payload))
        assert product.primary_category_id == second

    def test_stores_uploaded_images_in_order(
        self,
        assembler: CatalogAssembler,
        session: Session,
        product_payload: Payload,
        image_store: Any,
        upload: Callable[[str], ImageUpload],
    ) -> None:
        """Uploads are stored publicly and the first becomes main."""
        payload = product_payload(images=None)
        product = _reload(session, assembler.create(payload, [upload("front.jpg"), upload("back.jpg")]))
        assert [u["namespace"] for u in image_store.uploads] == ["products", "products"]
        assert all(u["visibility"] == "public-read" for u in image_store.uploads)
        assert [img["order"] for img in product.images] == [0, 1]
        assert [img["is_main"] for img in product.images] == [True, False]
        assert product.main_image_url == product.images[0]["url"]
        assert product.images[0]["file_name"] == "front.jpg"

    def test_main_image_url_alone_is_enough(
        self, assembler: CatalogAssembler, session: Session, product_payload: Payload
    ) -> None:
        """A hosted main image URL satisfies the image requirement."""
        payload = product_payload(images=None, main_image_url="https://cdn.test/main.jpg")
        product = _reload(session, assembler.create(payload))
        assert product.main_image_url == "https://cdn.test/main.jpg"
        assert len(product.images) == 1

    def test_image_required(self, assembler: CatalogAssembler, product_payload: Payload) -> None:
        """Products cannot be created without an image."""
        with pytest.raises(ValidationError, match="At least one image is required."):
            assembler.create(product_payload(images=[]))

    def test_custom_details_and_services(
        self, assembler: CatalogAssembler, session: Session, product_payload: Payload
    ) -> None:
        """Details are normalized and services get their own slugs."""
        payload = product_payload(
            custom_details=[{"label": "Wood Type", "value": "Oak"}],
            services=[{"title": "Assembly", "price": 25, "service_type": "installation"}],
        )
        product = _reload(session, assembler.create(payload))
        assert product.custom_details == [{"key": "wood_type", "label": "Wood Type", "value": "Oak"}]
        assert product.has_custom_fields is True
        assert product.has_services is True
        assert product.services[0].slug == "assembly"
        assert product.services[0].company_id == product.company_id

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"title": "  "}, "title is required"),
            ({"description": None}, "description is required"),
            ({"weight": -1}, "weight cannot be negative"),
            ({"discount_percentage_nett": 120}, "cannot exceed 100"),
            ({"weight_unit": "stone"}, "weight_unit must be one of"),
            ({"ean": "1234567890123"}, "not a valid EAN-13"),
            ({"categories": "desks"}, "categories must be a list"),
            ({"services": [{"price": 3}]}, "title is required"),
            (
                {"services": [{"title": "Fix", "service_type": "magic"}]},
                "Service #1: service_type must be one of",
            ),
            ({"services": [{"title": "Fix", "price": "free"}]}, "Service #1: price must be a number"),
            ({"tax_id": "not-a-uuid"}, "Invalid tax_id format"),
            ({"categories": ["desks"]}, "Category #1: Invalid category_id format"),
            ({"regular_price_nett": "NaN"}, "regular_price_nett must be a (finite )?number"),
            ({"purchase_price_nett": "Infinity"}, "purchase_price_nett must be a (finite )?number"),
            ({"weight_unit": ["kg"]}, "weight_unit must be one of"),
            ({"lead_time": "5.5"}, "lead_time must be an integer"),
            ({"lead_time": -2}, "lead_time cannot be negative"),
            (
                {"custom_options": [{"option_name": "Size", "sort_order": "first"}]},
                "Option #1: sort_order must be an integer",
            ),
            ({"custom_options": [{"option_name": "Size", "option_type": "slider"}]}, "option_type must be one of"),
            ({"custom_details": {"color": "red"}}, "custom_details must be a list"),
        ],
    )
    def test_rejects_invalid_payload(
        self,
        assembler: CatalogAssembler,
        session: Session,
        product_payload: Payload,
        overrides: dict[str, Any],
        message: str,
    ) -> None:
        """Malformed fields are rejected before anything is written."""
        with pytest.raises(ValidationError, match=message):
            assembler.create(product_payload(**overrides))
        assert session.scalar(select(func.count()).select_from(Product)) == 0

    def test_two_primary_categories(
        self, assembler: CatalogAssembler, product_payload: Payload, refs: Any
    ) -> None:
        """Only one category may be primary."""
        categories = [{"category_id": c.id, "is_primary": True} for c in refs.categories[:2]]
        with pytest.raises(ValidationError, match="Only one category can be primary"):
            assembler.create(product_payload(categories=categories))

    def test_inactive_tax(self, assembler: CatalogAssembler, product_payload: Payload, refs: Any) -> None:
        """Inactive taxes cannot be used."""
        with pytest.raises(NotFoundError, match="Tax not found or inactive"):
            assembler.create(product_payload(tax_id=refs.inactive_tax.id))

    def test_inactive_category(self, assembler: CatalogAssembler, product_payload: Payload, refs: Any) -> None:
        """Inactive categories cannot be linked."""
        with pytest.raises(NotFoundError, match="Category not found or inactive"):
            assembler.create(product_payload(categories=[refs.inactive_category.id]))

    def test_unknown_company(self, assembler: CatalogAssembler, product_payload: Payload) -> None:
        """Unknown owners are rejected."""
        with pytest.raises(NotFoundError, match="Company not found or inactive"):
            assembler.create(product_payload(company_id="00000000-0000-0000-0000-000000000000"))

    def test_duplicate_title(
        self, assembler: CatalogAssembler, session: Session, product_payload: Payload
    ) -> None:
        """Titles are unique."""
        assembler.create(product_payload(title="Walnut Shelf"))
        session.commit()
        with pytest.raises(ConflictError, match="this title already exists"):
            assembler.create(product_payload(title="Walnut Shelf"))

    def test_duplicate_sku(
        self, assembler: CatalogAssembler, session: Session, product_payload: Payload
    ) -> None:
        """Explicit SKUs must be free."""
        assembler.create(product_payload(sku="12345678"))
        session.commit()
        with pytest.raises(ConflictError, match="this sku already exists") as excinfo:
            assembler.create(product_payload(sku="12345678"))
        assert excinfo.value.retryable is False

    def test_image_store_failure(
        self,
        assembler: CatalogAssembler,
        product_payload: Payload,
        image_store: Any,
        upload: Callable[[str], ImageUpload],
    ) -> None:
        """A failed upload aborts the create."""
        image_store.fail = True
        with pytest.raises(DependencyFailure, match="Failed to upload product image"):
            assembler.create(product_payload(images=None), [upload("front.jpg")])


class TestEdit:
    """Tests for CatalogAssembler.edit."""

    @pytest.fixture
    def product(self, assembler: CatalogAssembler, session: Session, product_payload: Payload) -> Product:
        """Stored product."""
        return _reload(session, assembler.create(product_payload(title="Oak Desk")))

    def test_title_only_keeps_prices(
        self, assembler: CatalogAssembler, session: Session, product: Product
    ) -> None:
        """Changing the title moves the slug and leaves prices alone."""
        outcome = assembler.edit(product.id, {"title": "Oak Desk Deluxe"})
        product = _reload(session, outcome.product)
        assert product.slug == "oak-desk-deluxe"
        assert product.final_price_gross == Decimal("21.60")
        assert outcome.prices_rederived is False
        assert set(outcome.changed_fields) == {"title", "slug"}

    def test_explicit_slug_wins(self, assembler: CatalogAssembler, session: Session, product: Product) -> None:
        """A given slug is normalized and used."""
        outcome = assembler.edit(product.id, {"title": "Oak Desk Deluxe", "slug": "Desk Pro"})
        assert _reload(session, outcome.product).slug == "desk-pro"

    def test_price_change_rederives(self, assembler: CatalogAssembler, session: Session, product: Product) -> None:
        """Changing a price re-derives the whole block."""
        outcome = assembler.edit(product.id, {"discount_percentage_nett": 0})
        product = _reload(session, outcome.product)
        assert outcome.prices_rederived is True
        assert product.final_price_nett == Decimal("20.00")
        assert product.final_price_gross == Decimal("24.00")
        assert product.is_discounted is False

    def test_tax_change_rederives(
        self, assembler: CatalogAssembler, session: Session, product: Product, refs: Any
    ) -> None:
        """A new tax rate changes the gross prices."""
        outcome = assembler.edit(product.id, {"tax_id": refs.zero_tax.id})
        product = _reload(session, outcome.product)
        assert product.regular_price_gross == Decimal("20.00")
        assert product.final_price_gross == Decimal("18.00")

    def test_images_replaced_then_appended(
        self,
        assembler: CatalogAssembler,
        session: Session,
        product: Product,
        upload: Callable[[str], ImageUpload],
    ) -> None:
        """existing_images sets the kept list, uploads follow it."""
        kept = {"url": "https://cdn.test/kept.jpg"}
        outcome = assembler.edit(product.id, {"existing_images": [kept]}, [upload("new.jpg")])
        product = _reload(session, outcome.product)
        assert [img["url"] for img in product.images][0] == "https://cdn.test/kept.jpg"
        assert product.images[1]["file_name"] == "new.jpg"
        assert product.main_image_url == "https://cdn.test/kept.jpg"

    def test_cannot_remove_all_images(self, assembler: CatalogAssembler, product: Product) -> None:
        """An edit cannot leave a product without images."""
        with pytest.raises(ValidationError, match="At least one image is required."):
            assembler.edit(product.id, {"existing_images": []})

    def test_replaces_categories(
        self, assembler: CatalogAssembler, session: Session, product: Product, refs: Any
    ) -> None:
        """A categories list replaces the links."""
        outcome = assembler.edit(product.id, {"categories": [refs.categories[2].id]})
        product = _reload(session, outcome.product)
        assert product.category_ids == [refs.categories[2].id]
        assert product.primary_category_id == refs.categories[2].id

    def test_title_conflict(
        self, assembler: CatalogAssembler, session: Session, product: Product, product_payload: Payload
    ) -> None:
        """A title taken by another product is a conflict."""
        assembler.create(product_payload(title="Pine Desk"))
        session.commit()
        with pytest.raises(ConflictError, match="this title already exists"):
            assembler.edit(product.id, {"title": "Pine Desk"})

    def test_same_values_are_not_conflicts(
        self, assembler: CatalogAssembler, session: Session, product: Product
    ) -> None:
        """Re-sending a product's own identifiers is fine."""
        outcome = assembler.edit(product.id, {"title": "Oak Desk", "sku": product.sku})
        assert "title" not in outcome.changed_fields

    def test_unknown_product(self, assembler: CatalogAssembler) -> None:
        """Unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError, match="Product not found"):
            assembler.edit("00000000-0000-0000-0000-000000000000", {"title": "X"})

    def test_malformed_id(self, assembler: CatalogAssembler) -> None:
        """Ids must be UUIDs."""
        with pytest.raises(ValidationError, match="Invalid product_id format"):
            assembler.edit("42", {"title": "X"})

    def test_null_required_field(self, assembler: CatalogAssembler, product: Product) -> None:
        """Required fields cannot be cleared."""
        with pytest.raises(ValidationError, match="weight_unit is required"):
            assembler.edit(product.id, {"weight_unit": None})

    def test_null_clears_optional_field(
        self, assembler: CatalogAssembler, session: Session, product: Product
    ) -> None:
        """A null optional field is cleared, an omitted one is kept."""
        assembler.edit(product.id, {"width": 40, "short_description": "Compact"})
        outcome = assembler.edit(product.id, {"width": None})
        product = _reload(session, outcome.product)
        assert product.width is None
        assert product.short_description == "Compact"
        assert outcome.changed_fields == ["width"]

    def test_rejects_non_finite_price(self, assembler: CatalogAssembler, product: Product) -> None:
        """Prices must be finite numbers."""
        with pytest.raises(ValidationError, match="regular_price_nett must be a") as excinfo:
            assembler.edit(product.id, {"regular_price_nett": "NaN"})
        assert excinfo.value.details["field"] == "regular_price_nett"


class TestDuplicate:
    """Tests for CatalogAssembler.duplicate."""

    @pytest.fixture
    def source(self, assembler: CatalogAssembler, session: Session, product_payload: Payload, refs: Any) -> Product:
        """Fully populated product."""
        payload = product_payload(
            title="Standing Desk",
            is_published=True,
            mark_as_featured=True,
            images=["https://cdn.test/a.jpg", {"url": "https://cdn.test/b.jpg", "file_name": "b.jpg"}],
            services=[{"title": "Delivery", "service_type": "transport", "price": 15}],
            categories=[c.id for c in refs.categories],
            custom_details=[{"key": "height", "value": "120cm"}],
            custom_options=[
                {
                    "option_name": name,
                    "option_values": [
                        {
                            "option_value": f"{name}-{i}",
                            "price_modifier": i,
                            "image_url": f"https://cdn.test/{name}-{i}.jpg",
                        }
                        for i in range(3)
                    ],
                }
                for name in ("Color", "Size")
            ],
        )
        return _reload(session, assembler.create(payload))

    def test_copies_every_component(self, assembler: CatalogAssembler, session: Session, source: Product) -> None:
        """Images, services, categories and options are copied."""
        outcome = assembler.duplicate(source.id)
        assert outcome.summary == {
            "images": 2,
            "services": 1,
            "categories": 3,
            "custom_options": 2,
            "option_values": 6,
        }
        assert outcome.skipped == []

        copy = _reload(session, outcome.product)
        assert copy.id != source.id
        assert copy.title == f"Standing Desk (Copy {copy.sku})"
        assert copy.sku != source.sku
        assert copy.barcode == copy.ean
        assert is_valid_ean13(copy.ean)
        assert copy.slug != source.slug
        assert sorted(copy.category_ids) == sorted(source.category_ids)
        assert copy.primary_category_id == source.primary_category_id
        assert copy.custom_details == source.custom_details
        assert copy.final_price_gross == source.final_price_gross
        assert copy.services[0].slug == "delivery-1"

    def test_copy_starts_unpublished_without_badges(
        self, assembler: CatalogAssembler, session: Session, source: Product
    ) -> None:
        """Badges reset and the copy is not published."""
        copy = _reload(session, assembler.duplicate(source.id).product)
        assert copy.is_published is False
        assert copy.mark_as_featured is False
        assert copy.status == "active"

    def test_images_keep_urls_under_new_ids(
        self, assembler: CatalogAssembler, session: Session, source: Product
    ) -> None:
        """Image URLs are shared, metadata ids are new."""
        copy = _reload(session, assembler.duplicate(source.id).product)
        assert [i["url"] for i in copy.images] == [i["url"] for i in source.images]
        assert {i["id"] for i in copy.images}.isdisjoint({i["id"] for i in source.images})
        assert copy.images[1]["file_name"] == f"{copy.sku}-b.jpg"

    def test_option_values_copied_with_images(
        self, assembler: CatalogAssembler, session: Session, source: Product
    ) -> None:
        """Copied values keep modifiers and images."""
        copy = _reload(session, assembler.duplicate(source.id).product)
        assert [o.option_name for o in copy.custom_options] == ["Color", "Size"]
        values = copy.custom_options[0].values
        assert [v.option_value for v in values] == ["Color-0", "Color-1", "Color-2"]
        assert values[2].image_url == "https://cdn.test/Color-2.jpg"
        assert float(values[2].price_modifier) == 2.0
        total = session.execute(select(func.count()).select_from(ProductCustomOptionValue)).scalar_one()
        assert total == 12

    def test_overrides(self, assembler: CatalogAssembler, session: Session, source: Product) -> None:
        """Title, stock and badges can be overridden."""
        outcome = assembler.duplicate(
            source.id, {"title": "Standing Desk Mini", "is_available_on_stock": False, "is_on_sale": True}
        )
        copy = _reload(session, outcome.product)
        assert copy.title == "Standing Desk Mini"
        assert copy.slug == "standing-desk-mini"
        assert copy.is_available_on_stock is False
        assert copy.is_on_sale is True

    def test_override_title_conflict(self, assembler: CatalogAssembler, source: Product) -> None:
        """A taken title cannot be reused."""
        with pytest.raises(ConflictError, match="this title already exists"):
            assembler.duplicate(source.id, {"title": "Standing Desk"})

    def test_failing_component_is_skipped(
        self,
        assembler: CatalogAssembler,
        session: Session,
        source: Product,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A component that fails to copy is reported and skipped."""

        def broken(copy: Product, service: Any) -> dict[str, int]:
            raise RuntimeError("boom")

        monkeypatch.setattr(assembler, "_copy_service", broken)
        outcome = assembler.duplicate(source.id)
        session.commit()
        assert outcome.summary["services"] == 0
        assert outcome.summary["categories"] == 3
        assert len(outcome.skipped) == 1
        assert outcome.skipped[0].startswith("service:")


class TestLifecycle:
    """Tests for publish, unpublish, archive and unarchive."""

    @pytest.fixture
    def product(self, assembler: CatalogAssembler, session: Session, product_payload: Payload) -> Product:
        """Stored unpublished product."""
        return _reload(session, assembler.create(product_payload()))

    def test_publish_and_unpublish(self, assembler: CatalogAssembler, product: Product) -> None:
        """Publication toggles the flag."""
        assert assembler.publish(product.id).is_published is True
        assert assembler.unpublish(product.id).is_published is False

    def test_publish_twice(self, assembler: CatalogAssembler, product: Product) -> None:
        """Publishing a published product is an error."""
        assembler.publish(product.id)
        with pytest.raises(InvalidStateError, match="Product is already published"):
            assembler.publish(product.id)

    def test_unpublish_unpublished(self, assembler: CatalogAssembler, product: Product) -> None:
        """Unpublishing an unpublished product is an error."""
        with pytest.raises(InvalidStateError, match="Product is not published"):
            assembler.unpublish(product.id)

    def test_archive_sets_status_and_flag(self, assembler: CatalogAssembler, product: Product) -> None:
        """Archiving sets status and is_active together."""
        archived = assembler.archive(product.id)
        assert archived.status == "archived"
        assert archived.is_active is False
        restored = assembler.unarchive(product.id)
        assert restored.status == "active"
        assert restored.is_active is True

    def test_archive_twice(self, assembler: CatalogAssembler, product: Product) -> None:
        """Archiving an archived product is an error."""
        assembler.archive(product.id)
        with pytest.raises(InvalidStateError, match="Product is already archived"):
            assembler.archive(product.id)

    def test_unarchive_active(self, assembler: CatalogAssembler, product: Product) -> None:
        """Unarchiving an active product is an error."""
        with pytest.raises(InvalidStateError, match="Product is not archived"):
            assembler.unarchive(product.id)

    def test_cannot_publish_archived(self, assembler: CatalogAssembler, product: Product) -> None:
        """Archived products cannot be published."""
        assembler.archive(product.id)
        with pytest.raises(InvalidStateError, match="Cannot publish an inactive product"):
            assembler.publish(product.id)


class TestParseCategories:
    """Tests for category link parsing."""

    def test_duplicates_collapse(self) -> None:
        """Repeated ids keep the first occurrence."""
        category_id = "11111111-1111-1111-1111-111111111111"
        raw = [category_id, {"category_id": category_id, "is_primary": True}]
        links = parse_categories(validate_payload(ProductAttributes, {"categories": raw}).categories)
        assert len(links) == 1
        assert str(links[0].category_id) == category_id
        assert links[0].is_primary is True
