"""
Flutterwave Webhook Handler.
Checks the shared secret hash and re-verifies every event with the gateway.
"""

import hmac
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_checkout_service
from app.config import settings
from app.database import get_db
from app.exceptions import CheckoutError
from app.services.checkout_service import CheckoutService
from app.services.notification_service import NotificationService, get_notification_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/flutterwave")
async def flutterwave_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    service: CheckoutService = Depends(get_checkout_service),
    notifier: NotificationService = Depends(get_notification_service),
):
    """
    Handle Flutterwave charge events.

    The event body is never trusted: identifiers are taken from it and the
    transaction is verified again through the API before anything is written.
    """
    signature = request.headers.get("verif-hash", "")
    if not verify_flutterwave_hash(signature):
        logger.error("Invalid Flutterwave webhook hash")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    data = payload.get("data") or {}
    transaction_id = data.get("id") or data.get("transaction_id") or payload.get("id")
    tx_ref = data.get("tx_ref") or payload.get("tx_ref") or payload.get("txRef")

    if not transaction_id and not tx_ref:
        logger.warning(f"Flutterwave webhook missing identifiers: {payload.get('event')}")
        raise HTTPException(status_code=400, detail="missing identifiers")

    logger.info(f"Flutterwave webhook received: {payload.get('event')} ref={tx_ref}")

    try:
        result = await service.handle_gateway_event(
            str(transaction_id) if transaction_id else None,
            tx_ref,
        )
    except CheckoutError:
        raise
    except Exception as e:
        logger.error(f"Error processing Flutterwave webhook: {e}", exc_info=True)
        await db.rollback()
        # Return 200 to prevent excessive retries; reconciliation picks it up
        return {"status": "error", "message": str(e)}

    if result.notifications:
        background_tasks.add_task(notifier.send_all, result.notifications)

    return {"status": "ok", "success": result.success}


def verify_flutterwave_hash(signature: str) -> bool:
    """Compare the `verif-hash` header with the configured secret hash."""
    if not settings.flutterwave_webhook_hash:
        logger.warning("Flutterwave webhook hash not configured")
        return not settings.is_production

    return hmac.compare_digest(settings.flutterwave_webhook_hash, signature or "")
