"""Transaction model - one row per payment attempt, kept for audit."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import String, DateTime, ForeignKey, Numeric, Integer, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.fsm.states import TransactionStatus


class Transaction(Base):
    """
    Payment attempt keyed by tx_ref.
    tx_ref is unique so at most one row can reach `successful` per checkout.
    Rows are updated in place and never deleted.
    """

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Client-generated checkout reference (idempotency key)
    tx_ref: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    # Flutterwave transaction id, authoritative once known
    gateway_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        default=Decimal("0"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(String(3), default="NGN", nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=TransactionStatus.PENDING.value,
        nullable=False,
        index=True,
    )

    gateway: Mapped[str] = mapped_column(String(50), default="flutterwave", nullable=False)

    # Raw gateway `data` block
    gateway_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON(none_as_null=True), nullable=True)

    # Checkout request as received, so a pending attempt can be resumed
    checkout_payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON(none_as_null=True), nullable=True)

    verify_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
    )

    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.tx_ref} status={self.status}>"

    @property
    def is_successful(self) -> bool:
        return self.status == TransactionStatus.SUCCESSFUL.value

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "txRef": self.tx_ref,
            "transactionId": self.gateway_transaction_id,
            "amount": float(self.amount or 0),
            "currency": self.currency,
            "status": self.status,
            "gateway": self.gateway,
            "order": str(self.order_id) if self.order_id else None,
            "user": str(self.customer_id) if self.customer_id else None,
        }
