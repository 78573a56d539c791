"""FSM package for transaction and order status management."""

from app.fsm.states import (
    GatewayStatus,
    OrderStatus,
    TransactionStatus,
    can_transition,
)

__all__ = ["GatewayStatus", "OrderStatus", "TransactionStatus", "can_transition"]
