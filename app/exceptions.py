"""
Checkout exception hierarchy.

Every error the verification pipeline can report to a client carries a stable
error code and the HTTP status the API layer answers with.
"""

from typing import Any, Dict, Optional


class CheckoutError(Exception):
    """Base exception for all checkout pipeline errors."""

    error_code = "checkout:error"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class MissingFields(CheckoutError):
    """Request lacks identifiers, items or customer contact details."""

    error_code = "checkout:missing_fields"
    status_code = 400


class GatewayUnreachable(CheckoutError):
    """
    Gateway could not be reached.

    Covers connection errors, timeouts and 5xx answers. The pipeline fails
    closed: no order is created and the transaction stays pending.
    """

    error_code = "gateway:unreachable"
    status_code = 502


class GatewayRejected(CheckoutError):
    """Gateway answered with a non-OK status or an unsuccessful envelope."""

    error_code = "gateway:rejected"
    status_code = 502


class AmountMismatch(CheckoutError):
    """Client-declared totals disagree with the gateway or the catalog."""

    error_code = "checkout:amount_mismatch"
    status_code = 400


class ReferenceMismatch(CheckoutError):
    """Client tx_ref differs from the reference the gateway reports."""

    error_code = "checkout:reference_mismatch"
    status_code = 400


class PersistenceFailure(CheckoutError):
    """A database write failed while materializing the checkout."""

    error_code = "checkout:persistence_failure"
    status_code = 500


class DuplicateOrder(CheckoutError):
    """
    An order already exists for this tx_ref.

    Raised when the unique constraint on orders.tx_ref fires; the
    orchestrator answers it as an idempotent replay.
    """

    error_code = "checkout:duplicate_order"
    status_code = 409

    def __init__(self, tx_ref: str):
        super().__init__(f"Order already exists for {tx_ref}", {"tx_ref": tx_ref})
        self.tx_ref = tx_ref
