"""
Reconciliation Service - finishes checkouts whose client never came back.

A pending transaction carries the checkout request it was created for. If
the gateway confirmed the charge but the order was never written (client
closed the tab, process died mid-request), re-running the pipeline from the
stored request creates it.
"""

import logging
from typing import Dict

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import CheckoutError
from app.schemas.checkout import VerifyPaymentRequest
from app.services.checkout_service import CheckoutService
from app.services.gateway_client import FlutterwaveClient
from app.services.ledger_service import LedgerService
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Re-runs stale pending checkouts."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: FlutterwaveClient,
        notifier: NotificationService,
    ):
        self.db = db
        self.checkout = CheckoutService(db, gateway)
        self.ledger = LedgerService(db)
        self.notifier = notifier

    async def reconcile_pending(self, limit: int = 50) -> Dict[str, int]:
        """
        Resume every stale pending transaction once.

        Returns counters: completed (order now exists), failed (gateway said
        not successful), errors (checkout error, left for the next run).
        """
        stale = await self.ledger.list_stale_pending(limit=limit)
        # Copy out before any rollback expires the rows
        jobs = [(txn.tx_ref, dict(txn.checkout_payload)) for txn in stale]

        counts = {"completed": 0, "failed": 0, "errors": 0}
        for tx_ref, payload in jobs:
            try:
                request = VerifyPaymentRequest.model_validate(payload)
                result = await self.checkout.verify_payment(request)
                await self.db.commit()
            except CheckoutError as e:
                await self.db.rollback()
                counts["errors"] += 1
                logger.warning(
                    f"Reconciliation of {tx_ref} failed: {e.error_code} {e.message}",
                    extra={"tx_ref": tx_ref},
                )
                continue

            if result.success:
                counts["completed"] += 1
                await self.notifier.send_all(result.notifications)
            else:
                counts["failed"] += 1

        logger.info(f"Reconciled {len(jobs)} pending transactions: {counts}")
        return counts
