"""
Checkout Service - payment verification and order creation.

Flow for one verification request:

1. Idempotency check (already successful -> return the existing order)
2. Record a pending transaction and commit it
3. Verify with Flutterwave
4. Cross-check reference and amounts
5. Provision the customer, mark the transaction, write the order

Step 5 runs in a single database transaction, committed by the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    AmountMismatch,
    DuplicateOrder,
    MissingFields,
    PersistenceFailure,
    ReferenceMismatch,
)
from app.fsm.states import TransactionStatus
from app.models.order import Order
from app.models.transaction import Transaction
from app.schemas.checkout import VerifyPaymentRequest
from app.services.account_service import AccountService
from app.services.catalog_service import CatalogService
from app.services.gateway_client import FlutterwaveClient, GatewayVerdict
from app.services.idempotency import IdempotencyGuard
from app.services.ledger_service import LedgerService
from app.services.notification_service import (
    MailJob,
    order_confirmation_email,
    welcome_emails,
)
from app.services.order_service import (
    OrderService,
    check_amount,
    check_cart_total,
    check_reference,
)

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    """Outcome of a verification request."""

    success: bool
    message: str
    order: Optional[Order] = None
    transaction: Optional[Transaction] = None
    gateway: Optional[Dict[str, Any]] = None
    replay: bool = False
    notifications: List[MailJob] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.order is not None or self.success:
            body["order"] = self.order.to_dict() if self.order else None
        if self.transaction is not None:
            body["transaction"] = self.transaction.to_dict()
        if self.gateway is not None:
            body["gateway"] = self.gateway
        return body


class CheckoutService:
    """Orchestrates verification of a client-initiated checkout."""

    def __init__(self, db: AsyncSession, gateway: FlutterwaveClient):
        self.db = db
        self.gateway = gateway
        self.guard = IdempotencyGuard(db)
        self.ledger = LedgerService(db)
        self.accounts = AccountService(db)
        self.catalog = CatalogService(db)
        self.orders = OrderService(db)

    async def verify_payment(self, request: VerifyPaymentRequest) -> CheckoutResult:
        """Verify a checkout with the gateway and materialize its order."""
        self._validate(request)

        existing = await self.guard.find_transaction(request.tx_ref, request.transaction_id)
        replay = await self.guard.find_replay(existing)
        if replay is not None:
            logger.info(
                f"Checkout {existing.tx_ref} already verified, returning order {replay.id}",
                extra={"tx_ref": existing.tx_ref},
            )
            return CheckoutResult(
                success=True,
                message="Already verified",
                order=replay,
                transaction=existing,
                replay=True,
            )

        checkout_payload = request.to_storage()
        tx_ref = request.tx_ref or (existing.tx_ref if existing else None)
        if tx_ref:
            existing = await self._record_pending(existing, tx_ref, request, checkout_payload)

        if request.transaction_id:
            verdict = await self.gateway.verify(request.transaction_id)
        else:
            verdict = await self.gateway.verify_by_reference(request.tx_ref)

        if existing is None and verdict.tx_ref:
            # First sighting of this checkout under its gateway reference
            existing = await self.guard.find_transaction(verdict.tx_ref, None)
            replay = await self.guard.find_replay(existing)
            if replay is not None:
                return CheckoutResult(
                    success=True,
                    message="Already verified",
                    order=replay,
                    transaction=existing,
                    replay=True,
                )

        if not verdict.confirmed:
            txn = await self.ledger.record_verdict(
                existing,
                verdict,
                fallback_tx_ref=tx_ref or self._fallback_reference(verdict),
                checkout_payload=checkout_payload,
            )
            logger.info(
                f"Payment {txn.tx_ref} not successful: {verdict.status}",
                extra={"tx_ref": txn.tx_ref},
            )
            return CheckoutResult(
                success=False,
                message="Payment not successful",
                transaction=txn,
                gateway=verdict.raw,
            )

        return await self._materialize(request, verdict, existing, checkout_payload)

    async def handle_gateway_event(
        self,
        transaction_id: Optional[str],
        tx_ref: Optional[str],
    ) -> CheckoutResult:
        """
        Apply a gateway notification for a transaction.

        If the checkout request was stored when the client called in, the
        full pipeline is resumed from it. Otherwise only the ledger is
        updated and an existing order for the reference is marked paid.
        """
        existing = await self.guard.find_transaction(tx_ref, transaction_id)

        if existing is not None and existing.status == TransactionStatus.REVIEW.value:
            logger.warning(
                f"Gateway event for {existing.tx_ref} ignored, transaction is held for review",
                extra={"tx_ref": existing.tx_ref},
            )
            return CheckoutResult(
                success=False,
                message="Transaction held for review",
                transaction=existing,
            )

        if existing is not None and existing.checkout_payload:
            request = VerifyPaymentRequest.model_validate(existing.checkout_payload)
            if transaction_id:
                request.transaction_id = str(transaction_id)
            return await self.verify_payment(request)

        if transaction_id:
            verdict = await self.gateway.verify(str(transaction_id))
        else:
            verdict = await self.gateway.verify_by_reference(tx_ref)

        if existing is None and verdict.tx_ref and verdict.tx_ref != tx_ref:
            existing = await self.guard.find_transaction(verdict.tx_ref, None)

        txn = await self.ledger.record_verdict(
            existing,
            verdict,
            fallback_tx_ref=tx_ref or self._fallback_reference(verdict),
        )

        order = None
        if verdict.confirmed:
            order = await self.orders.mark_paid(txn.tx_ref, verdict)
            if order is not None and txn.order_id is None:
                await self.ledger.link_order(txn, order)

        return CheckoutResult(
            success=verdict.confirmed,
            message="Transaction updated",
            order=order,
            transaction=txn,
            gateway=verdict.raw,
        )

    async def _materialize(
        self,
        request: VerifyPaymentRequest,
        verdict: GatewayVerdict,
        existing: Optional[Transaction],
        checkout_payload: Dict[str, Any],
    ) -> CheckoutResult:
        tx_ref = request.tx_ref or verdict.tx_ref or self._fallback_reference(verdict)
        payload = request.order

        try:
            check_reference(request.tx_ref, verdict)
            lines = await self.catalog.reprice(payload.items)
            expected_total = check_cart_total(payload.totals, self.catalog.subtotal(lines))
            total_price = check_amount(expected_total, verdict)
        except (AmountMismatch, ReferenceMismatch) as e:
            await self._hold_for_review(existing, verdict, tx_ref, checkout_payload, e)
            raise

        try:
            customer, created, password = await self.accounts.provision(payload.customer)
            txn = await self.ledger.record_verdict(
                existing,
                verdict,
                fallback_tx_ref=tx_ref,
                customer=customer,
                checkout_payload=checkout_payload,
            )
            order = await self.orders.materialize(
                customer=customer,
                lines=lines,
                totals=payload.totals,
                total_price=total_price,
                verdict=verdict,
                tx_ref=tx_ref,
                coupon=payload.coupon,
            )
            await self.ledger.link_order(txn, order)
        except DuplicateOrder:
            await self.db.rollback()
            return await self._replay_after_conflict(tx_ref)
        except IntegrityError as e:
            # Any other unique row written first by a concurrent request
            logger.warning(
                f"Constraint conflict persisting checkout {tx_ref}: {e.orig}",
                extra={"tx_ref": tx_ref},
            )
            await self.db.rollback()
            return await self._replay_after_conflict(tx_ref)
        except SQLAlchemyError as e:
            logger.error(
                f"Persisting checkout {tx_ref} failed: {e}",
                exc_info=True,
                extra={"tx_ref": tx_ref},
            )
            raise PersistenceFailure(
                "Payment was confirmed but the order could not be saved",
                {"txRef": tx_ref},
            ) from e

        order_data = order.to_dict()
        notifications: List[MailJob] = []
        if created:
            notifications.extend(
                welcome_emails(customer.email, customer.name, str(customer.id), password)
            )
        notifications.append(order_confirmation_email(customer.email, customer.name, order_data))

        logger.info(
            f"Checkout {tx_ref} verified: order {order.id} for {customer.email}",
            extra={"tx_ref": tx_ref, "order_id": str(order.id)},
        )
        return CheckoutResult(
            success=True,
            message="Payment verified, user (created/updated), transaction and order created",
            order=order,
            transaction=txn,
            gateway=verdict.raw,
            notifications=notifications,
        )

    async def _record_pending(
        self,
        existing: Optional[Transaction],
        tx_ref: str,
        request: VerifyPaymentRequest,
        checkout_payload: Dict[str, Any],
    ) -> Transaction:
        """Persist the pending attempt before calling the gateway."""
        declared_total = request.order.totals.total if request.order else None
        try:
            txn = await self.ledger.record_pending(
                existing,
                tx_ref,
                request.transaction_id,
                declared_total,
                checkout_payload,
            )
            await self.db.commit()
            return txn
        except IntegrityError:
            # A concurrent request inserted the same tx_ref first
            await self.db.rollback()
            txn = await self.ledger.get_by_reference(tx_ref)
            if txn is None:
                raise
            return txn

    async def _hold_for_review(
        self,
        existing: Optional[Transaction],
        verdict: GatewayVerdict,
        tx_ref: str,
        checkout_payload: Dict[str, Any],
        error: Exception,
    ) -> None:
        """
        Keep the gateway verdict of a charge that failed the cross-checks.

        The row leaves the pending state so reconciliation does not verify
        it again; a corrected retry under the same tx_ref can still complete.
        """
        txn = await self.ledger.record_verdict(
            existing,
            verdict,
            fallback_tx_ref=tx_ref,
            checkout_payload=checkout_payload,
            status=TransactionStatus.REVIEW,
        )
        await self.db.commit()
        logger.error(
            f"Checkout {txn.tx_ref} held for review: {error}",
            extra={"tx_ref": txn.tx_ref, "gateway_transaction_id": verdict.transaction_id},
        )

    async def _replay_after_conflict(self, tx_ref: str) -> CheckoutResult:
        """Another request wrote the order first; answer with its result."""
        order = await self.guard.find_order_by_reference(tx_ref)
        if order is None:
            raise PersistenceFailure(
                "Order could not be saved",
                {"txRef": tx_ref},
            )
        txn = await self.ledger.get_by_reference(tx_ref)
        logger.info(
            f"Concurrent checkout for {tx_ref}, returning order {order.id}",
            extra={"tx_ref": tx_ref, "order_id": str(order.id)},
        )
        return CheckoutResult(
            success=True,
            message="Already verified",
            order=order,
            transaction=txn,
            replay=True,
        )

    @staticmethod
    def _fallback_reference(verdict: GatewayVerdict) -> str:
        return f"flw-{verdict.transaction_id}"

    @staticmethod
    def _validate(request: VerifyPaymentRequest) -> None:
        if not request.transaction_id and not request.tx_ref:
            raise MissingFields("transactionId or txRef required")

        payload = request.order
        if payload is None or not payload.items:
            raise MissingFields("Order payload with items is required")

        customer = payload.customer
        if not (customer.email and customer.email.strip()) or not (customer.name and customer.name.strip()):
            raise MissingFields("Customer name and email are required in order payload")
