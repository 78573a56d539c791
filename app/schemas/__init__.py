"""Request schemas for the checkout API."""

from app.schemas.checkout import (
    CustomerInfo,
    LineItem,
    OrderPayload,
    OrderTotals,
    VerifyPaymentRequest,
)

__all__ = [
    "CustomerInfo",
    "LineItem",
    "OrderPayload",
    "OrderTotals",
    "VerifyPaymentRequest",
]
