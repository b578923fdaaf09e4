"""Shared fixtures for API tests."""

import json
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.api.dependencies import get_activity, get_db, get_store
from app.main import app


@pytest.fixture
def client(session: Session, refs: Any, image_store: Any, activity: Any) -> Iterator[TestClient]:
    """Test client wired to the test database, image store and activity log."""

    def override_db() -> Iterator[Session]:
        yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_store] = lambda: image_store
    app.dependency_overrides[get_activity] = lambda: activity
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def create_product(
    client: TestClient, product_payload: Callable[..., dict[str, Any]]
) -> Callable[..., dict[str, Any]]:
    """Create a product over HTTP and return its data."""

    def create(**overrides: Any) -> dict[str, Any]:
        response = client.post("/products", data={"payload": json.dumps(product_payload(**overrides))})
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return create
