"""
Catalog Service - authoritative prices for checkout line items.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import MissingFields
from app.models.product import Product
from app.schemas.checkout import LineItem

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class PricedLine:
    """A cart line with the price the server will charge for it."""

    product_id: Optional[str]
    name: str
    unit_price: Decimal
    quantity: int
    image: Optional[str] = None
    from_catalog: bool = False

    @property
    def total(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(CENT)


class CatalogService:
    """Re-resolves client-supplied line items against the product table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_products(self, product_ids: List[str]) -> Dict[str, Product]:
        if not product_ids:
            return {}
        result = await self.db.execute(
            select(Product).where(Product.id.in_(product_ids))
        )
        return {p.id: p for p in result.scalars().all()}

    async def reprice(self, items: List[LineItem]) -> List[PricedLine]:
        """
        Price each line from the catalog.

        Active catalog products override the client's price and name. Lines
        whose product is unknown keep the client values and are logged.
        """
        for item in items:
            if item.quantity is None or item.quantity < 1:
                raise MissingFields(
                    "Each item needs a quantity of at least 1",
                    {"productId": item.product_id, "quantity": item.quantity},
                )

        ids = [item.product_id for item in items if item.product_id]
        products = await self.get_products(ids)

        lines = []
        for item in items:
            product = products.get(item.product_id) if item.product_id else None
            if product is not None and product.active:
                if Decimal(item.price) != product.price:
                    logger.warning(
                        f"Client price {item.price} for {product.id} replaced by catalog price {product.price}"
                    )
                lines.append(PricedLine(
                    product_id=product.id,
                    name=product.name,
                    unit_price=product.price,
                    quantity=item.quantity,
                    image=item.image,
                    from_catalog=True,
                ))
            else:
                logger.warning(f"Product {item.product_id} not in active catalog, using client price {item.price}")
                lines.append(PricedLine(
                    product_id=item.product_id,
                    name=item.name or "",
                    unit_price=Decimal(item.price),
                    quantity=item.quantity,
                    image=item.image,
                ))

        return lines

    @staticmethod
    def subtotal(lines: List[PricedLine]) -> Decimal:
        return sum((line.total for line in lines), Decimal("0"))
