"""Tests for the catalog application service."""

from collections.abc import Callable
from typing import Any
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.application.catalog_service import CatalogService, ServiceResult
from app.catalog.assembler import CatalogAssembler
from app.catalog.identifiers import IdentifierGenerator
from app.catalog.models import Product, ProductCategory, ProductService
from app.catalog.query import PaginationParams, ProductFilter
from app.domain.exceptions import ConflictError, NotFoundError
from app.domain.value_objects import ImageUpload

Payload = Callable[..., dict[str, Any]]


def product_count(session: Session) -> int:
    return session.execute(select(func.count()).select_from(Product)).scalar_one()


class TestServiceResult:
    """Tests for the tagged result shape."""

    def test_success_wire_shape(self) -> None:
        """Success results carry status, code, message and data."""
        result = ServiceResult.ok({"id": "p1"}, "Product created successfully", 201)
        assert result.to_dict() == {
            "status": "success",
            "statusCode": 201,
            "message": "Product created successfully",
            "data": {"id": "p1"},
        }

    def test_error_from_exception(self) -> None:
        """Errors carry their code and details."""
        result = ServiceResult.from_error(NotFoundError("Product", "p1"))
        assert result.success is False
        assert result.status_code == 404
        assert result.message == "Product not found"
        assert result.data == {
            "error_code": "NOT_FOUND",
            "details": {"entity_type": "Product", "entity_id": "p1"},
        }

    def test_retryable_conflict_flagged(self) -> None:
        """Database conflicts tell callers to retry."""
        result = ServiceResult.from_error(ConflictError("taken", retryable=True))
        assert result.data == {"error_code": "CONFLICT", "retryable": True}


class TestProductWrites:
    """Tests for product writes through the service."""

    def test_create(self, service: CatalogService, product_payload: Payload, activity: Any) -> None:
        """Creating returns the full product with 201 and records activity."""
        result = service.create_product(product_payload(title="Birch Desk"))
        assert result.success
        assert result.status_code == 201
        assert result.message == "Product created successfully"
        assert result.data["title"] == "Birch Desk"
        assert result.data["final_price_gross"] == 21.6
        assert result.data["tax"]["rate"] == 20.0
        assert activity.event_types == ["product.created"]
        assert activity.events[0].product_id == result.data["id"]

    def test_create_failure_writes_nothing(
        self, service: CatalogService, session: Session, product_payload: Payload, activity: Any
    ) -> None:
        """A failed create is a tagged error and leaves no row behind."""
        result = service.create_product(product_payload(images=[]))
        assert result.status == "error"
        assert result.status_code == 400
        assert result.data["error_code"] == "VALIDATION_ERROR"
        assert product_count(session) == 0
        assert activity.events == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"regular_price_nett": "NaN"},
            {"regular_price_nett": float("nan")},
            {"purchase_price_nett": "Infinity"},
            {"weight": float("inf")},
            {"weight_unit": ["kg"]},
            {"lead_time": "5.5"},
            {"custom_options": [{"option_name": "Size", "sort_order": "first"}]},
            {"services": [{"title": "Assembly", "price": "free"}]},
            {"categories": "furniture"},
        ],
    )
    def test_malformed_payload_is_validation_error(
        self, service: CatalogService, session: Session, product_payload: Payload, overrides: dict[str, Any]
    ) -> None:
        """Malformed fields are tagged 400 errors, never raw exceptions."""
        result = service.create_product(product_payload(**overrides))
        assert result.status_code == 400
        assert result.data["error_code"] == "VALIDATION_ERROR"
        assert result.data["details"]["errors"]
        assert product_count(session) == 0

    def test_concurrent_sku_is_retryable_conflict(
        self,
        service: CatalogService,
        session: Session,
        make_product: Callable[..., dict[str, Any]],
        product_payload: Payload,
        activity: Any,
    ) -> None:
        """A sku committed by another writer after the uniqueness check is a retryable conflict."""
        first = make_product(title="First Desk")
        with (
            patch.object(IdentifierGenerator, "generate_unique_sku", return_value=first["sku"]),
            patch.object(CatalogAssembler, "_check_conflicts", return_value=None),
        ):
            result = service.create_product(product_payload(title="Second Desk", services=[{"title": "Delivery"}]))

        assert result.status_code == 400
        assert result.data["error_code"] == "CONFLICT"
        assert result.data["retryable"] is True
        assert session.execute(select(Product.title)).scalars().all() == ["First Desk"]
        assert session.execute(select(func.count()).select_from(ProductService)).scalar_one() == 0
        assert session.execute(select(func.count()).select_from(ProductCategory)).scalar_one() == 1
        assert activity.event_types == ["product.created"]

    def test_upload_failure_is_dependency_failure(
        self,
        service: CatalogService,
        session: Session,
        product_payload: Payload,
        image_store: Any,
        upload: Callable[[str], ImageUpload],
    ) -> None:
        """Image store failures report 500 and roll back."""
        image_store.fail = True
        result = service.create_product(product_payload(images=None), [upload("front.jpg")])
        assert result.status_code == 500
        assert result.data["error_code"] == "DEPENDENCY_FAILURE"
        assert product_count(session) == 0

    def test_activity_failure_is_not_fatal(
        self, service: CatalogService, product_payload: Payload, activity: Any
    ) -> None:
        """A broken activity sink does not fail the write."""
        activity.fail = True
        assert service.create_product(product_payload()).success

    def test_edit(self, service: CatalogService, make_product: Callable[..., dict[str, Any]], activity: Any) -> None:
        """Edits return the updated product and record changed fields."""
        created = make_product()
        result = service.edit_product(created["id"], {"regular_price_nett": 30})
        assert result.message == "Product updated successfully"
        assert result.data["final_price_nett"] == 27.0
        assert activity.events[-1].changed_fields == ("regular_price_nett",)
        assert activity.events[-1].prices_rederived is True

    def test_edit_unknown(self, service: CatalogService, refs: Any) -> None:
        """Unknown products are a 404."""
        result = service.edit_product("00000000-0000-0000-0000-000000000000", {"title": "X"})
        assert result.status_code == 404

    def test_edit_conflict_rolls_back(
        self, service: CatalogService, make_product: Callable[..., dict[str, Any]]
    ) -> None:
        """A conflicting edit changes nothing."""
        first = make_product(title="First")
        make_product(title="Second")
        result = service.edit_product(first["id"], {"title": "Second", "short_description": "x"})
        assert result.data["error_code"] == "CONFLICT"
        assert service.get_product(first["id"]).data["short_description"] is None

    def test_duplicate(
        self, service: CatalogService, make_product: Callable[..., dict[str, Any]], activity: Any
    ) -> None:
        """Duplicates report what was copied."""
        source = make_product(services=[{"title": "Assembly"}])
        result = service.duplicate_product(source["id"])
        assert result.status_code == 201
        summary = result.data["duplication_summary"]
        assert summary["source_product_id"] == source["id"]
        assert summary["services"] == 1
        assert summary["categories"] == 1
        assert summary["skipped"] == []
        assert result.data["is_published"] is False
        assert activity.event_types[-1] == "product.duplicated"

    def test_lifecycle(
        self, service: CatalogService, make_product: Callable[..., dict[str, Any]], activity: Any
    ) -> None:
        """Transitions return the product and record status events."""
        product_id = make_product()["id"]
        assert service.publish_product(product_id).data["is_published"] is True
        archived = service.archive_product(product_id)
        assert archived.message == "Product archived successfully"
        assert archived.data["status"] == "archived"
        assert service.unarchive_product(product_id).data["is_active"] is True
        assert service.unpublish_product(product_id).success
        actions = [e.action for e in activity.events if e.event_type == "product.status_changed"]
        assert actions == ["publish", "archive", "unarchive", "unpublish"]

    def test_invalid_transition(self, service: CatalogService, make_product: Callable[..., dict[str, Any]]) -> None:
        """Guarded transitions are tagged 400 errors."""
        result = service.unarchive_product(make_product()["id"])
        assert result.status_code == 400
        assert result.data["error_code"] == "INVALID_STATE"
        assert result.message == "Product is not archived"


class TestOptionOperations:
    """Tests for custom option operations through the service."""

    def test_create_list_update_delete(
        self, service: CatalogService, make_product: Callable[..., dict[str, Any]], activity: Any
    ) -> None:
        """Options can be managed end to end."""
        product_id = make_product()["id"]
        created = service.create_options(
            product_id, [{"option_name": "Size", "option_values": [{"option_value": "S"}, {"option_value": "L"}]}]
        )
        assert created.status_code == 201
        option_id = created.data[0]["id"]

        listed = service.list_options(product_id)
        assert [o["option_name"] for o in listed.data] == ["Size"]

        updated = service.update_option(option_id, {"help_text": "Choose a size"})
        assert updated.data["help_text"] == "Choose a size"

        deleted = service.delete_option(option_id)
        assert deleted.message == "Custom option deleted successfully"
        assert service.list_options(product_id).data == []
        assert [e.action for e in activity.events if e.event_type == "product.options_changed"] == [
            "create",
            "update",
            "delete",
        ]

    def test_replace(self, service: CatalogService, make_product: Callable[..., dict[str, Any]]) -> None:
        """Replacing returns the new option set."""
        product_id = make_product(custom_options=[{"option_name": "Size"}])["id"]
        result = service.replace_options(product_id, [{"option_name": "Finish"}, {"option_name": "Engraving"}])
        assert [o["option_name"] for o in result.data] == ["Finish", "Engraving"]

    def test_delete_unknown(self, service: CatalogService) -> None:
        """Unknown options are a 404."""
        assert service.delete_option("00000000-0000-0000-0000-000000000000").status_code == 404

    def test_upload_value_image(
        self,
        service: CatalogService,
        make_product: Callable[..., dict[str, Any]],
        upload: Callable[[str], ImageUpload],
    ) -> None:
        """Value images are uploaded and returned."""
        product = make_product(custom_options=[{"option_name": "Color", "option_values": [{"option_value": "red"}]}])
        option = product["custom_options"][0]
        result = service.upload_option_value_image(option["id"], option["values"][0]["id"], upload("red.png"))
        assert result.message == "Option value image uploaded successfully"
        assert result.data["image_url"].endswith("red.png")


class TestReads:
    """Tests for read operations through the service."""

    def test_list_products(self, service: CatalogService, make_product: Callable[..., dict[str, Any]]) -> None:
        """Admin listing is wrapped in a success result."""
        make_product()
        result = service.list_products(ProductFilter(), PaginationParams())
        assert result.message == "Products retrieved successfully"
        assert result.data["pagination"]["total_count"] == 1

    def test_get_product_malformed_id(self, service: CatalogService) -> None:
        """Malformed ids are validation errors."""
        result = service.get_product("abc")
        assert result.status_code == 400
        assert result.message == "Invalid product_id format"

    def test_product_by_slug_not_found(self, service: CatalogService, refs: Any) -> None:
        """Unknown slugs are a 404."""
        result = service.product_by_slug("missing")
        assert result.status_code == 404
        assert result.message == "Product not found"

    def test_quote_price(self, service: CatalogService, make_product: Callable[..., dict[str, Any]]) -> None:
        """Quotes without options return the final price."""
        product = make_product(is_published=True)
        result = service.quote_price(product["slug"], [])
        assert result.message == "Price calculated successfully"
        assert result.data["price_nett"] == 18.0
        assert result.data["price_gross"] == 21.6

    def test_storage_failure_is_dependency_failure(self, service: CatalogService) -> None:
        """Database errors during a read report 500."""
        down = OperationalError("SELECT", {}, Exception("connection lost"))
        with patch.object(service.queries, "list_all", side_effect=down):
            result = service.list_products(ProductFilter(), PaginationParams())
        assert result.status_code == 500
        assert result.message == "Database operation failed"
        assert result.data["error_code"] == "DEPENDENCY_FAILURE"

    def test_detail_storage_failure(
        self, service: CatalogService, make_product: Callable[..., dict[str, Any]]
    ) -> None:
        """Database errors while loading a product report 500."""
        product_id = make_product()["id"]
        down = OperationalError("SELECT", {}, Exception("connection lost"))
        with patch.object(service.queries, "get_by_id", side_effect=down):
            result = service.get_product(product_id)
        assert result.status_code == 500
        assert result.data["error_code"] == "DEPENDENCY_FAILURE"
