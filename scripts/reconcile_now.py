"""
Run one reconciliation pass for pending transactions without waiting for beat.
Run: python scripts/reconcile_now.py
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import get_db_context
from app.logging_config import configure_logging
from app.services.gateway_client import FlutterwaveClient
from app.services.notification_service import NotificationService
from app.services.reconciliation_service import ReconciliationService


async def reconcile():
    async with get_db_context() as db:
        service = ReconciliationService(db, FlutterwaveClient(), NotificationService())
        counts = await service.reconcile_pending()
        print(f"Completed: {counts['completed']}, failed: {counts['failed']}, errors: {counts['errors']}")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(reconcile())
