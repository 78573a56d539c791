"""
Pending Transaction Reconciliation Worker.

Runs every 15 minutes to finish checkouts that were paid but never completed.
"""

import logging
from app.workers.celery_app import celery_app
from app.database import get_db_context

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def reconcile_pending_transactions(self):
    """Re-verify stale pending transactions and create their orders."""
    import asyncio

    async def run():
        async with get_db_context() as db:
            from app.services.gateway_client import FlutterwaveClient
            from app.services.notification_service import NotificationService
            from app.services.reconciliation_service import ReconciliationService

            service = ReconciliationService(db, FlutterwaveClient(), NotificationService())
            return await service.reconcile_pending()

    try:
        counts = asyncio.run(run())
        logger.info(f"Reconciliation run finished: {counts}")
        return {"success": True, **counts}
    except Exception as e:
        logger.error(f"Reconciliation run failed: {e}")
        self.retry(exc=e, countdown=60)
