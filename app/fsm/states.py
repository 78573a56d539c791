"""
State definitions for transactions and orders.
Order status changes are restricted to the transitions listed below.
"""

from enum import Enum
from typing import Dict, FrozenSet


class TransactionStatus(str, Enum):
    """
    Lifecycle of one payment attempt.
    At most one transaction per tx_ref reaches SUCCESSFUL.
    """

    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    CANCELLED = "cancelled"
    # Charge confirmed but the amount or reference did not match the checkout
    REVIEW = "review"


class OrderStatus(str, Enum):
    """Lifecycle of a confirmed purchase."""

    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class GatewayStatus(str, Enum):
    """Values of `data.status` in a Flutterwave verify response."""

    SUCCESSFUL = "successful"
    FAILED = "failed"
    PENDING = "pending"
    CANCELLED = "cancelled"


ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Check whether an order may move from `current` to `new`."""
    if current == new:
        return True
    return new in ORDER_TRANSITIONS[current]
