"""Order models - confirmed purchases and their line items."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Numeric, Integer, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.fsm.states import OrderStatus


class Order(Base):
    """
    Order created after a successful gateway verification.
    tx_ref is unique: a second insert for the same checkout fails at the
    database and is answered as a replay of the first order.
    """

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    tx_ref: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=OrderStatus.PENDING.value,
        nullable=False,
        index=True,
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    coupon: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Totals
    subtotal: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="NGN", nullable=False)

    # Payment sub-record
    payment_reference: Mapped[str] = mapped_column(String(255), nullable=False)
    payment_transaction_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[str] = mapped_column(String(50), default="flutterwave", nullable=False)

    # Shipping snapshot at time of purchase
    shipping_address: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    customer: Mapped["Customer"] = relationship(back_populates="orders", lazy="joined")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.position",
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
        return f"<Order {self.tx_ref} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "txRef": self.tx_ref,
            "status": self.status,
            "customer": str(self.customer_id),
            "coupon": self.coupon,
            "products": [item.to_dict() for item in self.items],
            "subtotal": float(self.subtotal) if self.subtotal is not None else None,
            "discountAmount": float(self.discount_amount or 0),
            "shippingCost": float(self.shipping_cost or 0),
            "totalPrice": float(self.total_price),
            "currency": self.currency,
            "payment": {
                "reference": self.payment_reference,
                "transactionId": self.payment_transaction_id,
                "method": self.payment_method,
            },
            "shippingAddress": self.shipping_address,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class OrderItem(Base):
    """One product line of an order. Owned by the order."""

    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Position within the cart, keeps line order stable
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Catalog product id as sent by the storefront (opaque string)
    product_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    image: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")

    def to_dict(self) -> dict:
        return {
            "product": self.product_id,
            "name": self.name,
            "image": self.image,
            "price": float(self.unit_price),
            "quantity": self.quantity,
            "totalPrice": float(self.total_price),
        }
