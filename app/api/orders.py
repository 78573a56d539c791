"""
Orders API - read access to confirmed orders for the rest of the storefront.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.order_service import OrderService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/orders/reference/{tx_ref}")
async def get_order_by_reference(
    tx_ref: str,
    db: AsyncSession = Depends(get_db),
):
    """Look up the order paid under a checkout reference."""
    order = await OrderService(db).get_order_by_reference(tx_ref)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"success": True, "order": order.to_dict()}


@router.get("/orders/{order_id}")
async def get_order(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    order = await OrderService(db).get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"success": True, "order": order.to_dict()}


@router.get("/customers/{customer_id}/orders")
async def list_customer_orders(
    customer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """All orders of a customer, newest first."""
    orders = await OrderService(db).list_customer_orders(customer_id)
    return {
        "success": True,
        "count": len(orders),
        "orders": [order.to_dict() for order in orders],
    }
