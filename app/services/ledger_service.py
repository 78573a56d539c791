"""
Ledger Service - transaction records for every payment attempt.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.fsm.states import TransactionStatus
from app.models.customer import Customer
from app.models.order import Order
from app.models.transaction import Transaction
from app.services.gateway_client import GatewayVerdict

logger = logging.getLogger(__name__)


class LedgerService:
    """Upserts transaction rows keyed by tx_ref."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_pending(
        self,
        existing: Optional[Transaction],
        tx_ref: str,
        transaction_id: Optional[str],
        amount: Optional[Decimal],
        checkout_payload: Optional[dict],
        currency: Optional[str] = None,
    ) -> Transaction:
        """
        Record that a verification request arrived.

        Stores the checkout payload so the attempt can be resumed if the
        process dies after the gateway confirms. Never downgrades a row that
        already has a verdict.
        """
        txn = existing
        if txn is None:
            txn = Transaction(
                tx_ref=tx_ref,
                amount=amount or Decimal("0"),
                currency=currency or settings.default_currency,
                status=TransactionStatus.PENDING.value,
            )
            self.db.add(txn)

        if transaction_id:
            txn.gateway_transaction_id = str(transaction_id)
        if checkout_payload is not None:
            txn.checkout_payload = checkout_payload
        await self.mark_attempt(txn)
        return txn

    async def mark_attempt(self, txn: Transaction) -> Transaction:
        """Count one more verification attempt for reconciliation limits."""
        txn.verify_attempts = (txn.verify_attempts or 0) + 1
        await self.db.flush()
        return txn

    async def record_verdict(
        self,
        existing: Optional[Transaction],
        verdict: GatewayVerdict,
        fallback_tx_ref: Optional[str],
        customer: Optional[Customer] = None,
        checkout_payload: Optional[dict] = None,
        status: Optional[TransactionStatus] = None,
    ) -> Transaction:
        """
        Create or update the transaction with the gateway's verdict.

        `status` overrides the status derived from the verdict.
        """
        if status is None:
            status = TransactionStatus.SUCCESSFUL if verdict.confirmed else TransactionStatus.FAILED

        txn = existing
        if txn is None:
            txn = Transaction(tx_ref=verdict.tx_ref or fallback_tx_ref)
            self.db.add(txn)

        txn.status = status.value
        txn.gateway_transaction_id = verdict.transaction_id or txn.gateway_transaction_id
        txn.gateway_data = verdict.raw
        txn.amount = verdict.amount
        txn.currency = verdict.currency or txn.currency or settings.default_currency
        if checkout_payload is not None and txn.checkout_payload is None:
            txn.checkout_payload = checkout_payload
        if customer is not None:
            txn.customer_id = customer.id

        await self.db.flush()
        logger.info(f"Transaction {txn.tx_ref} marked {txn.status}", extra={"tx_ref": txn.tx_ref})
        return txn

    async def link_order(self, txn: Transaction, order: Order) -> Transaction:
        """Point the transaction at the order it paid for."""
        txn.order_id = order.id
        await self.db.flush()
        return txn

    async def get_by_reference(self, tx_ref: str) -> Optional[Transaction]:
        result = await self.db.execute(
            select(Transaction).where(Transaction.tx_ref == tx_ref)
        )
        return result.scalar_one_or_none()

    async def list_stale_pending(
        self,
        older_than_minutes: Optional[int] = None,
        max_attempts: Optional[int] = None,
        limit: int = 50,
    ) -> List[Transaction]:
        """Pending transactions with a stored checkout that nobody finished."""
        minutes = older_than_minutes if older_than_minutes is not None else settings.reconcile_after_minutes
        attempts = max_attempts if max_attempts is not None else settings.reconcile_max_attempts
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=minutes)

        result = await self.db.execute(
            select(Transaction)
            .where(
                Transaction.status == TransactionStatus.PENDING.value,
                Transaction.checkout_payload.is_not(None),
                Transaction.verify_attempts < attempts,
                Transaction.updated_at <= cutoff,
            )
            .order_by(Transaction.updated_at)
            .limit(limit)
        )
        return list(result.scalars().all())
