"""
Idempotency Guard - detects checkouts that were already verified.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.order import Order
from app.models.transaction import Transaction

logger = logging.getLogger(__name__)


class IdempotencyGuard:
    """Looks up prior transactions and orders for a checkout."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_transaction(
        self,
        tx_ref: Optional[str],
        transaction_id: Optional[str],
    ) -> Optional[Transaction]:
        """Find a transaction by tx_ref, falling back to the gateway id."""
        if tx_ref:
            result = await self.db.execute(
                select(Transaction).where(Transaction.tx_ref == tx_ref)
            )
            txn = result.scalar_one_or_none()
            if txn:
                return txn

        if transaction_id:
            result = await self.db.execute(
                select(Transaction)
                .where(Transaction.gateway_transaction_id == str(transaction_id))
                .order_by(Transaction.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

        return None

    async def find_replay(self, txn: Optional[Transaction]) -> Optional[Order]:
        """
        Return the order of an already successful transaction.

        None means the pipeline has to run: either there is no transaction,
        it is not successful yet, or its order was never written.
        """
        if txn is None or not txn.is_successful:
            return None

        order = None
        if txn.order_id:
            order = await self.db.get(Order, txn.order_id, populate_existing=True)
        if order is None:
            order = await self.find_order_by_reference(txn.tx_ref)

        if order is None:
            logger.warning(f"Transaction {txn.tx_ref} is successful but has no order")
        return order

    async def find_order_by_reference(self, tx_ref: str) -> Optional[Order]:
        """Get the order created for a tx_ref."""
        result = await self.db.execute(
            select(Order).where(Order.tx_ref == tx_ref)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
