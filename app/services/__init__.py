"""Services package."""

from app.services.account_service import AccountService
from app.services.catalog_service import CatalogService
from app.services.checkout_service import CheckoutService, CheckoutResult
from app.services.gateway_client import FlutterwaveClient, GatewayVerdict, get_gateway_client
from app.services.idempotency import IdempotencyGuard
from app.services.ledger_service import LedgerService
from app.services.notification_service import NotificationService, get_notification_service
from app.services.order_service import OrderService
from app.services.reconciliation_service import ReconciliationService

__all__ = [
    "AccountService",
    "CatalogService",
    "CheckoutService",
    "CheckoutResult",
    "FlutterwaveClient",
    "GatewayVerdict",
    "get_gateway_client",
    "IdempotencyGuard",
    "LedgerService",
    "NotificationService",
    "get_notification_service",
    "OrderService",
    "ReconciliationService",
]
