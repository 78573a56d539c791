"""
Order Service - cross-checks, order materialization and order queries.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    AmountMismatch,
    CheckoutError,
    DuplicateOrder,
    MissingFields,
    ReferenceMismatch,
)
from app.fsm.states import OrderStatus, can_transition
from app.models.customer import Customer
from app.models.order import Order, OrderItem
from app.schemas.checkout import OrderTotals
from app.services.catalog_service import PricedLine
from app.services.gateway_client import GatewayVerdict

logger = logging.getLogger(__name__)


def check_reference(client_tx_ref: Optional[str], verdict: GatewayVerdict) -> None:
    """The gateway must report the reference the client paid under."""
    if client_tx_ref and verdict.tx_ref and verdict.tx_ref != client_tx_ref:
        logger.warning(
            f"tx_ref mismatch between client and gateway: {client_tx_ref} != {verdict.tx_ref}"
        )
        raise ReferenceMismatch(
            "tx_ref mismatch",
            {"clientTxRef": client_tx_ref, "gatewayTxRef": verdict.tx_ref},
        )


def check_amount(
    declared_total: Optional[Decimal],
    verdict: GatewayVerdict,
    tolerance: Optional[Decimal] = None,
) -> Decimal:
    """
    Compare the client total with what the gateway charged.

    Returns the total to record on the order. Without a declared total the
    gateway amount is used as is.
    """
    tolerance = tolerance if tolerance is not None else settings.amount_tolerance
    if declared_total is None:
        return verdict.amount

    if abs(Decimal(declared_total) - verdict.amount) > tolerance:
        logger.error(f"Amount mismatch: expected {declared_total} got {verdict.amount}")
        raise AmountMismatch(
            "Amount mismatch between client order totals and gateway",
            {"expectedTotal": float(declared_total), "gatewayAmount": float(verdict.amount)},
        )
    return Decimal(declared_total)


def check_cart_total(
    totals: OrderTotals,
    catalog_subtotal: Decimal,
    tolerance: Optional[Decimal] = None,
) -> Decimal:
    """
    Recompute the cart total from catalog-priced lines.

    The client's subtotal and total must agree with the recomputed values.
    Returns the total the gateway is expected to have charged.
    """
    tolerance = tolerance if tolerance is not None else settings.amount_tolerance

    if totals.subtotal is not None and abs(Decimal(totals.subtotal) - catalog_subtotal) > tolerance:
        logger.error(f"Subtotal mismatch: client {totals.subtotal} catalog {catalog_subtotal}")
        raise AmountMismatch(
            "Cart subtotal does not match catalog prices",
            {"declaredSubtotal": float(totals.subtotal), "catalogSubtotal": float(catalog_subtotal)},
        )

    # Coupon discounts are computed by the storefront and taken as declared
    expected = catalog_subtotal - Decimal(totals.discount_amount or 0) + Decimal(totals.shipping_cost or 0)
    if totals.total is None:
        return expected

    if abs(Decimal(totals.total) - expected) > tolerance:
        logger.error(f"Cart total mismatch: client {totals.total} catalog {expected}")
        raise AmountMismatch(
            "Cart total does not match catalog prices",
            {"declaredTotal": float(totals.total), "catalogTotal": float(expected)},
        )
    return Decimal(totals.total)


class OrderService:
    """Service for creating and querying orders."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def materialize(
        self,
        customer: Customer,
        lines: List[PricedLine],
        totals: OrderTotals,
        total_price: Decimal,
        verdict: GatewayVerdict,
        tx_ref: str,
        coupon: Optional[str] = None,
    ) -> Order:
        """
        Persist a paid order for a verified checkout.

        Raises DuplicateOrder when another request already wrote the order
        for this tx_ref. The session must be rolled back by the caller.
        """
        order = Order(
            tx_ref=tx_ref,
            status=OrderStatus.PAID.value,
            customer_id=customer.id,
            coupon=coupon or None,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount or Decimal("0"),
            shipping_cost=totals.shipping_cost or Decimal("0"),
            total_price=total_price,
            currency=verdict.currency or settings.default_currency,
            payment_reference=tx_ref,
            payment_transaction_id=verdict.transaction_id,
            payment_method="flutterwave",
            shipping_address=self._format_address(customer),
        )
        order.items = self.build_lines(lines)
        self.db.add(order)

        try:
            await self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Order for {tx_ref} already exists: {e.orig}")
            raise DuplicateOrder(tx_ref) from e

        logger.info(f"Order {order.id} created for {tx_ref}: {total_price}")
        return order

    @staticmethod
    def build_lines(lines: List[PricedLine]) -> List[OrderItem]:
        """Order items in cart order, each totalled as price x quantity."""
        items = []
        for position, line in enumerate(lines):
            if line.quantity < 1:
                raise MissingFields(
                    "Each item needs a quantity of at least 1",
                    {"productId": line.product_id, "quantity": line.quantity},
                )
            items.append(OrderItem(
                position=position,
                product_id=line.product_id,
                name=line.name,
                image=line.image,
                unit_price=line.unit_price,
                quantity=line.quantity,
                total_price=line.total,
            ))
        return items

    async def mark_paid(self, tx_ref: str, verdict: GatewayVerdict) -> Optional[Order]:
        """Mark an order created before payment as paid, if there is one."""
        order = await self.get_order_by_reference(tx_ref)
        if order is None:
            return None

        if order.status == OrderStatus.PENDING.value:
            order.status = OrderStatus.PAID.value
        order.payment_reference = tx_ref
        order.payment_transaction_id = verdict.transaction_id or order.payment_transaction_id
        order.payment_method = "flutterwave"
        await self.db.flush()
        logger.info(f"Order {order.id} marked paid from gateway event")
        return order

    @staticmethod
    def _format_address(customer: Customer) -> str:
        parts = [
            customer.address,
            customer.city,
            customer.state,
            customer.postal_code,
            customer.country,
        ]
        return ", ".join(p for p in parts if p)

    # Order queries

    async def get_order(self, order_id: uuid.UUID) -> Optional[Order]:
        """Get order by ID."""
        return await self.db.get(Order, order_id)

    async def get_order_by_reference(self, tx_ref: str) -> Optional[Order]:
        result = await self.db.execute(
            select(Order).where(Order.tx_ref == tx_ref)
        )
        return result.scalar_one_or_none()

    async def list_customer_orders(self, customer_id: uuid.UUID) -> List[Order]:
        """Orders of one customer, newest first."""
        result = await self.db.execute(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Order]:
        query = select(Order).order_by(Order.created_at.desc()).limit(limit).offset(offset)
        if status is not None:
            query = query.where(Order.status == status.value)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_status(self, order: Order, new_status: OrderStatus) -> Order:
        """Move an order along its lifecycle."""
        current = OrderStatus(order.status)
        if not can_transition(current, new_status):
            raise CheckoutError(
                f"Cannot move order from {current.value} to {new_status.value}",
                {"orderId": str(order.id)},
                status_code=409,
            )
        order.status = new_status.value
        await self.db.flush()
        logger.info(f"Order {order.id} status: {current.value} -> {new_status.value}")
        return order

    async def stats(self) -> Dict[str, Any]:
        """Revenue and order counts for the admin dashboard."""
        revenue_statuses = [
            OrderStatus.PAID.value,
            OrderStatus.PROCESSING.value,
            OrderStatus.SHIPPED.value,
            OrderStatus.DELIVERED.value,
        ]
        revenue = await self.db.scalar(
            select(func.coalesce(func.sum(Order.total_price), 0))
            .where(Order.status.in_(revenue_statuses))
        )
        order_count = await self.db.scalar(select(func.count(Order.id)))
        pending_count = await self.db.scalar(
            select(func.count(Order.id))
            .where(Order.status.in_([OrderStatus.PENDING.value, OrderStatus.PAID.value]))
        )
        return {
            "revenue": float(revenue or 0),
            "orderCount": int(order_count or 0),
            "pendingOrderCount": int(pending_count or 0),
        }
