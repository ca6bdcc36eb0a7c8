#!/usr/bin/env python3
"""Seed catalog script.

Creates a demo characteristic taxonomy (sections, groups, values) and a
handful of medical-equipment products with assignments.

Usage:
    python scripts/seed_catalog.py
    python scripts/seed_catalog.py --create-tables
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.catalog.assignments import AssignmentInput
from app.catalog.models import Product
from app.catalog.service import CatalogService
from app.infrastructure.database import Base, async_session_factory, engine

TAXONOMY: dict[str, dict[str, list[tuple[str, str | None]]]] = {
    "Dimensions": {
        "Seat width": [("40 cm", None), ("45 cm", None), ("50 cm", None)],
        "Frame color": [("Black", "#000000"), ("Silver", "#C0C0C0"), ("Blue", "#1E5AA8")],
    },
    "Mobility": {
        "Wheel type": [("Solid", None), ("Pneumatic", None)],
        "Folding": [("Yes", None), ("No", None)],
    },
}

PRODUCTS = [
    ("Wheelchair Comfort 100", "WC-100", 45000, 12, ["45 cm", "Black", "Solid", "Yes"]),
    ("Wheelchair Active 200", "WC-200", 72000, 3, ["40 cm", "Blue", "Pneumatic", "Yes"]),
    ("Rollator Light", "RL-010", 18500, 0, ["Silver", "Solid", "Yes"]),
]


async def create_tables() -> None:
    """Create database tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed() -> dict:
    """Seed taxonomy and products.

    Returns:
        Seeding result with counts.
    """
    async with async_session_factory() as session:
        service = CatalogService(session)
        value_ids: dict[str, int] = {}
        groups = 0

        for section_name, group_specs in TAXONOMY.items():
            section = await service.create_group(section_name)
            groups += 1
            for group_name, values in group_specs.items():
                group = await service.create_group(group_name, parent_id=section.id)
                groups += 1
                for text, color in values:
                    value = await service.create_value(group.id, text, color_hex=color)
                    value_ids[text] = value.id

        for name, sku, price, stock, characteristics in PRODUCTS:
            async with service.uow.atomic():
                product = await service.products.save(
                    Product(name=name, sku=sku, price_cents=price, stock_quantity=stock)
                )
            await service.set_assignments(
                "product",
                product.id,
                [AssignmentInput(value_id=value_ids[text]) for text in characteristics],
            )

        await session.commit()
        return {"groups": groups, "values": len(value_ids), "products": len(PRODUCTS)}


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed the demo catalog")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables from the models instead of relying on migrations",
    )
    args = parser.parse_args()

    print("=" * 60)
    print("Catalog Seeder")
    print("=" * 60)

    if args.create_tables:
        print("Creating database tables...")
        await create_tables()
        print("Tables ready.")
        print()

    result = await seed()
    print(f"  ✓ Groups: {result['groups']}")
    print(f"  ✓ Values: {result['values']}")
    print(f"  ✓ Products: {result['products']}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
