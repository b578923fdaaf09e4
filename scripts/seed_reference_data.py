#!/usr/bin/env python3
"""Seed reference data script.

Creates the taxes, companies and categories products refer to, so a
fresh development database can accept product writes.

Usage:
    python scripts/seed_reference_data.py
    python scripts/seed_reference_data.py --create-tables
"""

import argparse
import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.catalog.models import Category, Company, Tax
from app.infrastructure.database import Base, get_engine, get_session_factory, unit_of_work

TAXES = [("Standard VAT", Decimal("20.00")), ("Reduced VAT", Decimal("5.00")), ("Zero rate", Decimal("0.00"))]

COMPANIES = [("Northwood Furniture Ltd", "Northwood"), ("Oak & Iron Workshop", "Oak & Iron")]

# (name, slug, parent slug)
CATEGORIES = [
    ("Furniture", "furniture", None),
    ("Desks", "desks", "furniture"),
    ("Chairs", "chairs", "furniture"),
    ("Tables", "tables", "furniture"),
    ("Lighting", "lighting", None),
    ("Rugs", "rugs", None),
]


def create_tables() -> None:
    """Create database tables if they don't exist."""
    Base.metadata.create_all(get_engine())


def seed(session: Session) -> dict[str, int]:
    """Insert missing reference rows.

    Args:
        session: Database session.

    Returns:
        Number of rows created per table.
    """
    created = {"taxes": 0, "companies": 0, "categories": 0}

    existing_taxes = set(session.execute(select(Tax.name)).scalars())
    for name, rate in TAXES:
        if name not in existing_taxes:
            session.add(Tax(name=name, rate=rate))
            created["taxes"] += 1

    existing_companies = set(session.execute(select(Company.business_name)).scalars())
    for business_name, market_name in COMPANIES:
        if business_name not in existing_companies:
            session.add(Company(business_name=business_name, market_name=market_name))
            created["companies"] += 1

    by_slug = {c.slug: c for c in session.execute(select(Category)).scalars()}
    for sort_order, (name, slug, parent_slug) in enumerate(CATEGORIES):
        if slug in by_slug:
            continue
        parent = by_slug.get(parent_slug) if parent_slug else None
        category = Category(
            name=name,
            slug=slug,
            sort_order=sort_order,
            parent_id=parent.id if parent else None,
        )
        session.add(category)
        # Parents need their generated id before children reference it
        session.flush()
        by_slug[slug] = category
        created["categories"] += 1

    return created


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed taxes, companies and categories",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables before seeding (development only, use alembic otherwise)",
    )
    args = parser.parse_args()

    print("=" * 60)
    print("Catalog Reference Data Seeder")
    print("=" * 60)

    if args.create_tables:
        print("Creating database tables...")
        create_tables()
        print("Tables ready.")
        print()

    session = get_session_factory()()
    try:
        with unit_of_work(session):
            created = seed(session)
    finally:
        session.close()

    print(f"  Taxes created: {created['taxes']}")
    print(f"  Companies created: {created['companies']}")
    print(f"  Categories created: {created['categories']}")
    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
