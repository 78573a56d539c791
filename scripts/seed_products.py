"""
Seed script to load catalog prices from a JSON file.
Run: python scripts/seed_products.py products.json

The file is a list of {"id": ..., "name": ..., "price": ...} objects.
Existing products are updated in place.
"""

import asyncio
import json
import sys
import os
from decimal import Decimal

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import get_db_context, init_db
from app.models.product import Product


async def seed_products(path: str) -> None:
    with open(path, encoding="utf-8") as fh:
        rows = json.load(fh)

    await init_db()

    async with get_db_context() as db:
        for row in rows:
            product = await db.get(Product, str(row["id"]))
            if product is None:
                product = Product(id=str(row["id"]))
                db.add(product)
            product.name = row["name"]
            product.price = Decimal(str(row["price"]))
            product.active = row.get("active", True)
            print(f"  {product.id}: {product.name} @ {product.price}")

    print(f"Seeded {len(rows)} products")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python scripts/seed_products.py <products.json>")
        sys.exit(1)
    asyncio.run(seed_products(sys.argv[1]))
