"""Shared fixtures for catalog tests.

Tests run against an in-memory SQLite database. pysqlite's own
transaction handling is switched off so that SAVEPOINTs (used when a
product is duplicated) behave like they do on PostgreSQL.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from itertools import count
from typing import Any

import pytest
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from app.application.catalog_service import CatalogService
from app.catalog import models  # noqa: F401  (registers tables on Base.metadata)
from app.catalog.assembler import CatalogAssembler
from app.catalog.models import Category, Company, Tax
from app.domain.base import DomainEvent
from app.domain.value_objects import ImageUpload
from app.infrastructure.database import Base, json_dumps
from app.infrastructure.image_store import ImageUploadError


# ============================================================================
# Test Doubles
# ============================================================================


class FakeImageStore:
    """Image store that keeps uploads in memory."""

    def __init__(self) -> None:
        self.uploads: list[dict[str, Any]] = []
        self.fail = False

    def upload(
        self,
        content: bytes,
        filename: str,
        namespace: str,
        visibility: str = "public-read",
    ) -> str:
        if self.fail:
            raise ImageUploadError(filename, "object store unavailable", 503)
        self.uploads.append(
            {"filename": filename, "namespace": namespace, "visibility": visibility, "size": len(content)}
        )
        return f"https://cdn.test/{namespace}/{len(self.uploads)}-{filename}"


class RecordingActivityLogger:
    """Activity logger that keeps events for assertions."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []
        self.fail = False

    def record(self, event: DomainEvent) -> None:
        if self.fail:
            raise RuntimeError("activity sink down")
        self.events.append(event)

    @property
    def event_types(self) -> list[str]:
        return [e.event_type for e in self.events]


@dataclass
class CatalogRefs:
    """Reference rows seeded for every test."""

    tax: Tax
    zero_tax: Tax
    inactive_tax: Tax
    company: Company
    other_company: Company
    categories: list[Category] = field(default_factory=list)
    inactive_category: Category | None = None


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite engine with the catalog schema."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        json_serializer=json_dumps,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection: Any) -> None:
        connection.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    """Database session."""
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def refs(session: Session) -> CatalogRefs:
    """Seed taxes, companies and categories."""
    refs = CatalogRefs(
        tax=Tax(name="VAT 20%", rate=20),
        zero_tax=Tax(name="Exempt", rate=0),
        inactive_tax=Tax(name="Old VAT", rate=19, is_inactive=True),
        company=Company(business_name="Nordwood GmbH", market_name="Nordwood"),
        other_company=Company(business_name="Lumen AG", market_name="Lumen"),
        categories=[
            Category(name="Furniture", slug="furniture", sort_order=1),
            Category(name="Desks", slug="desks", sort_order=2),
            Category(name="Office", slug="office", sort_order=3),
        ],
        inactive_category=Category(name="Retired", slug="retired", is_active=False),
    )
    session.add_all(
        [
            refs.tax,
            refs.zero_tax,
            refs.inactive_tax,
            refs.company,
            refs.other_company,
            *refs.categories,
            refs.inactive_category,
        ]
    )
    session.commit()
    return refs


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def image_store() -> FakeImageStore:
    """In-memory image store."""
    return FakeImageStore()


@pytest.fixture
def activity() -> RecordingActivityLogger:
    """Recording activity logger."""
    return RecordingActivityLogger()


@pytest.fixture
def assembler(session: Session, image_store: FakeImageStore) -> CatalogAssembler:
    """Catalog assembler bound to the test session."""
    return CatalogAssembler(session, image_store)


@pytest.fixture
def service(session: Session, image_store: FakeImageStore, activity: RecordingActivityLogger) -> CatalogService:
    """Catalog service bound to the test session."""
    return CatalogService(session, image_store, activity, request_id="test-request")


# ============================================================================
# Payload Factories
# ============================================================================


@pytest.fixture
def product_payload(refs: CatalogRefs) -> Callable[..., dict[str, Any]]:
    """Build a valid create payload; keyword arguments override fields."""
    sequence = count(1)

    def build(**overrides: Any) -> dict[str, Any]:
        n = next(sequence)
        payload = {
            "title": f"Oak Desk {n}",
            "description": "Solid oak writing desk",
            "weight": 12.5,
            "weight_unit": "kg",
            "measures_unit": "cm",
            "unit_type": "pcs",
            "purchase_price_nett": 10,
            "regular_price_nett": 20,
            "discount_percentage_nett": 10,
            "tax_id": refs.tax.id,
            "company_id": refs.company.id,
            "categories": [refs.categories[0].id],
            "images": [f"https://cdn.test/products/desk-{n}.jpg"],
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def make_product(
    service: CatalogService,
    product_payload: Callable[..., dict[str, Any]],
) -> Callable[..., dict[str, Any]]:
    """Create a product through the service and return its data."""

    def create(uploads: list[ImageUpload] | None = None, **overrides: Any) -> dict[str, Any]:
        result = service.create_product(product_payload(**overrides), uploads)
        assert result.success, result.message
        return result.data

    return create


@pytest.fixture
def upload() -> Callable[[str], ImageUpload]:
    """Build an in-memory image upload."""

    def build(filename: str = "photo.jpg") -> ImageUpload:
        return ImageUpload(content=b"\x89PNG-fake-bytes", filename=filename, content_type="image/jpeg")

    return build
