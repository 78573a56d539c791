"""
Checkout API - payment verification endpoint called by the storefront
after the Flutterwave inline checkout closes.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from app.api.deps import get_checkout_service
from app.schemas.checkout import VerifyPaymentRequest
from app.services.checkout_service import CheckoutService
from app.services.notification_service import NotificationService, get_notification_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/verify-payment")
@router.post("/verify_payment", include_in_schema=False)
async def verify_payment(
    request: VerifyPaymentRequest,
    background_tasks: BackgroundTasks,
    service: CheckoutService = Depends(get_checkout_service),
    notifier: NotificationService = Depends(get_notification_service),
):
    """
    Verify a payment and create its order.

    Answers 200 for a verified or replayed checkout and for a payment the
    gateway did not approve (`success: false`). Caller errors are 400,
    gateway problems 502. Retrying with the same txRef is safe.
    """
    result = await service.verify_payment(request)

    # Emails go out after the response, once the session has committed
    if result.notifications:
        background_tasks.add_task(notifier.send_all, result.notifications)

    return result.to_response()
