"""Models package for database models."""

from app.models.customer import Customer
from app.models.order import Order, OrderItem
from app.models.product import Product
from app.models.transaction import Transaction

__all__ = [
    "Customer",
    "Order",
    "OrderItem",
    "Product",
    "Transaction",
]
