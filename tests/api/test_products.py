"""Tests for product administration endpoints."""

import json
from collections.abc import Callable
from typing import Any

from fastapi.testclient import TestClient

CreateProduct = Callable[..., dict[str, Any]]
UNKNOWN_ID = "00000000-0000-0000-0000-000000000000"


class TestCreateProduct:
    """Tests for POST /products."""

    def test_create_with_hosted_image(
        self, client: TestClient, product_payload: Callable[..., dict[str, Any]]
    ) -> None:
        """Products are created from a JSON form field."""
        response = client.post("/products", data={"payload": json.dumps(product_payload(title="Maple Desk"))})
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "success"
        assert body["statusCode"] == 201
        assert body["message"] == "Product created successfully"
        assert body["data"]["slug"] == "maple-desk"
        assert body["data"]["final_price_gross"] == 21.6

    def test_create_with_uploaded_images(
        self,
        client: TestClient,
        product_payload: Callable[..., dict[str, Any]],
        image_store: Any,
    ) -> None:
        """Uploaded files are stored and the first becomes main."""
        response = client.post(
            "/products",
            data={"payload": json.dumps(product_payload(images=None))},
            files=[
                ("images", ("front.jpg", b"front-bytes", "image/jpeg")),
                ("images", ("side.jpg", b"side-bytes", "image/jpeg")),
            ],
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert [u["filename"] for u in image_store.uploads] == ["front.jpg", "side.jpg"]
        assert data["main_image_url"].endswith("front.jpg")
        assert data["images"][0]["size_bytes"] == len(b"front-bytes")

    def test_payload_must_be_json_object(self, client: TestClient) -> None:
        """Malformed payloads are a 400."""
        response = client.post("/products", data={"payload": "[1, 2]"})
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "payload must be a JSON object"
        assert body["data"]["error_code"] == "VALIDATION_ERROR"

    def test_payload_required(self, client: TestClient) -> None:
        """A missing payload field is a tagged 400."""
        response = client.post("/products")
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request parameters"

    def test_validation_error(self, client: TestClient, product_payload: Callable[..., dict[str, Any]]) -> None:
        """Catalog validation errors keep their message."""
        response = client.post("/products", data={"payload": json.dumps(product_payload(images=[]))})
        assert response.status_code == 400
        assert response.json()["message"] == "At least one image is required."

    def test_conflict(
        self,
        client: TestClient,
        create_product: CreateProduct,
        product_payload: Callable[..., dict[str, Any]],
    ) -> None:
        """Duplicate titles are a 400 conflict."""
        create_product(title="Unique Desk")
        response = client.post("/products", data={"payload": json.dumps(product_payload(title="Unique Desk"))})
        assert response.status_code == 400
        assert response.json()["data"]["error_code"] == "CONFLICT"


class TestReadProducts:
    """Tests for GET /products and GET /products/{id}."""

    def test_list(self, client: TestClient, create_product: CreateProduct) -> None:
        """Admin listing paginates over every status."""
        for _ in range(3):
            create_product()
        response = client.get("/products", params={"limit": 2})
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["products"]) == 2
        assert data["pagination"]["total_count"] == 3
        assert data["pagination"]["has_more"] is True

    def test_list_rejects_bad_limit(self, client: TestClient) -> None:
        """Out-of-range parameters are a tagged 400."""
        response = client.get("/products", params={"limit": 0})
        assert response.status_code == 400
        assert response.json()["data"]["details"][0]["field"] == "limit"

    def test_get(self, client: TestClient, create_product: CreateProduct) -> None:
        """One product with its children."""
        created = create_product()
        response = client.get(f"/products/{created['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["id"] == created["id"]

    def test_get_unknown(self, client: TestClient) -> None:
        """Unknown products are a 404 tagged result."""
        response = client.get(f"/products/{UNKNOWN_ID}")
        assert response.status_code == 404
        body = response.json()
        assert body["status"] == "error"
        assert body["statusCode"] == 404
        assert body["data"]["error_code"] == "NOT_FOUND"


class TestEditProduct:
    """Tests for PATCH /products/{id}."""

    def test_edit(self, client: TestClient, create_product: CreateProduct) -> None:
        """Partial updates change only the given fields."""
        created = create_product()
        response = client.patch(
            f"/products/{created['id']}", data={"payload": json.dumps({"title": "Renamed Desk"})}
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["slug"] == "renamed-desk"
        assert data["final_price_nett"] == created["final_price_nett"]

    def test_append_images(self, client: TestClient, create_product: CreateProduct) -> None:
        """New images are appended after the stored ones."""
        created = create_product()
        response = client.patch(
            f"/products/{created['id']}",
            files=[("new_images", ("extra.jpg", b"extra", "image/jpeg"))],
        )
        assert response.status_code == 200
        images = response.json()["data"]["images"]
        assert len(images) == 2
        assert images[0]["url"] == created["images"][0]["url"]

    def test_nothing_to_update(self, client: TestClient, create_product: CreateProduct) -> None:
        """An empty edit is rejected."""
        created = create_product()
        response = client.patch(f"/products/{created['id']}")
        assert response.status_code == 400
        assert response.json()["message"] == "Nothing to update"


class TestDuplicateAndLifecycle:
    """Tests for duplication and lifecycle endpoints."""

    def test_duplicate(self, client: TestClient, create_product: CreateProduct) -> None:
        """Duplicates are created with a summary."""
        created = create_product()
        response = client.post(f"/products/{created['id']}/duplicate")
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["id"] != created["id"]
        assert data["duplication_summary"]["source_product_id"] == created["id"]
        assert data["barcode"] == data["ean"]

    def test_duplicate_with_overrides(self, client: TestClient, create_product: CreateProduct) -> None:
        """Overrides set the title and badges of the copy."""
        created = create_product()
        response = client.post(
            f"/products/{created['id']}/duplicate", json={"title": "Desk Twin", "is_on_sale": True}
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["title"] == "Desk Twin"
        assert data["is_on_sale"] is True

    def test_duplicate_rejects_unknown_overrides(self, client: TestClient, create_product: CreateProduct) -> None:
        """Only known overrides are accepted."""
        created = create_product()
        response = client.post(f"/products/{created['id']}/duplicate", json={"sku": "123"})
        assert response.status_code == 400

    def test_lifecycle(self, client: TestClient, create_product: CreateProduct) -> None:
        """Publish, archive and unarchive in sequence."""
        product_id = create_product()["id"]
        assert client.post(f"/products/{product_id}/publish").json()["data"]["is_published"] is True
        archived = client.post(f"/products/{product_id}/archive").json()["data"]
        assert archived["status"] == "archived"
        assert archived["is_active"] is False
        assert client.post(f"/products/{product_id}/unarchive").status_code == 200
        assert client.post(f"/products/{product_id}/unpublish").status_code == 200

    def test_invalid_transition(self, client: TestClient, create_product: CreateProduct) -> None:
        """Guarded transitions are a 400."""
        product_id = create_product()["id"]
        response = client.post(f"/products/{product_id}/unpublish")
        assert response.status_code == 400
        assert response.json()["data"]["error_code"] == "INVALID_STATE"


class TestOptionEndpoints:
    """Tests for custom option endpoints."""

    SIZE = {"option_name": "Size", "option_values": [{"option_value": "S"}, {"option_value": "L", "price_modifier": 4}]}

    def test_option_crud(self, client: TestClient, create_product: CreateProduct) -> None:
        """Options are created, listed, patched and deleted."""
        product_id = create_product()["id"]

        created = client.post(f"/products/{product_id}/options", json={"options": [self.SIZE]})
        assert created.status_code == 201
        option = created.json()["data"][0]
        assert [v["option_value"] for v in option["values"]] == ["S", "L"]

        listed = client.get(f"/products/{product_id}/options")
        assert [o["id"] for o in listed.json()["data"]] == [option["id"]]

        patched = client.patch(f"/options/{option['id']}", json={"is_required": True})
        assert patched.status_code == 200
        assert patched.json()["data"]["is_required"] is True

        deleted = client.delete(f"/options/{option['id']}")
        assert deleted.status_code == 200
        assert client.get(f"/products/{product_id}/options").json()["data"] == []

    def test_replace(self, client: TestClient, create_product: CreateProduct) -> None:
        """PUT replaces the whole option list."""
        product_id = create_product(custom_options=[self.SIZE])["id"]
        response = client.put(
            f"/products/{product_id}/options", json={"options": [{"option_name": "Finish"}]}
        )
        assert response.status_code == 200
        assert [o["option_name"] for o in response.json()["data"]] == ["Finish"]

    def test_invalid_option(self, client: TestClient, create_product: CreateProduct) -> None:
        """Invalid options are a 400."""
        product_id = create_product()["id"]
        response = client.post(f"/products/{product_id}/options", json={"options": [{"option_type": "text"}]})
        assert response.status_code == 400
        assert response.json()["data"]["error_code"] == "VALIDATION_ERROR"

    def test_invalid_option_value_names_position(self, client: TestClient, create_product: CreateProduct) -> None:
        """Errors inside option values name the option and value."""
        product_id = create_product()["id"]
        value = {"option_value": "S", "price_modifier": "cheap"}
        body = {"options": [{"option_name": "Size", "option_values": [value]}]}
        response = client.post(f"/products/{product_id}/options", json=body)
        assert response.status_code == 400
        details = response.json()["data"]["details"]
        assert details[0]["message"] == "Option #1 value #1: price_modifier must be a number"
        assert client.get(f"/products/{product_id}/options").json()["data"] == []

    def test_patch_rejects_malformed_fields(self, client: TestClient, create_product: CreateProduct) -> None:
        """Patches are typed; wrong types and unknown fields are a 400."""
        product = create_product(custom_options=[self.SIZE])
        option_id = product["custom_options"][0]["id"]

        response = client.patch(f"/options/{option_id}", json={"sort_order": "first"})
        assert response.status_code == 400
        assert response.json()["data"]["details"][0]["message"] == "sort_order must be an integer"

        response = client.patch(f"/options/{option_id}", json={"option_kind": "select"})
        assert response.status_code == 400
        assert response.json()["data"]["error_code"] == "VALIDATION_ERROR"

    def test_malformed_option_id(self, client: TestClient) -> None:
        """Option ids in the path must be UUIDs."""
        response = client.delete("/options/not-a-uuid")
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid option_id format"

    def test_unknown_option(self, client: TestClient) -> None:
        """Unknown options are a 404."""
        assert client.delete(f"/options/{UNKNOWN_ID}").status_code == 404

    def test_upload_value_image(self, client: TestClient, create_product: CreateProduct, image_store: Any) -> None:
        """Value images are uploaded as files."""
        product = create_product(custom_options=[self.SIZE])
        option = product["custom_options"][0]
        value_id = option["values"][0]["id"]
        response = client.post(
            f"/options/{option['id']}/values/{value_id}/image",
            files={"image": ("small.png", b"png-bytes", "image/png")},
        )
        assert response.status_code == 200
        assert response.json()["data"]["image_url"].endswith("small.png")
        assert image_store.uploads[-1]["namespace"] == f"custom-options/{option['id']}/values"
