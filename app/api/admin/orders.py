"""
Admin Order Endpoints.
Order listing, dashboard counters and status changes.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_admin_user
from app.database import get_db
from app.fsm.states import OrderStatus
from app.services.order_service import OrderService

router = APIRouter()
logger = logging.getLogger(__name__)


class UpdateOrderStatusRequest(BaseModel):
    """Request body for changing an order's status."""
    status: OrderStatus


@router.get("/orders")
async def list_orders(
    status: Optional[OrderStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _: str = Depends(get_admin_user),
):
    """List orders, newest first, optionally filtered by status."""
    orders = await OrderService(db).list_orders(status=status, limit=limit, offset=offset)
    return {
        "status": "success",
        "count": len(orders),
        "orders": [order.to_dict() for order in orders],
    }


@router.get("/orders/stats")
async def order_stats(
    db: AsyncSession = Depends(get_db),
    _: str = Depends(get_admin_user),
):
    """Revenue, order count and pending order count."""
    stats = await OrderService(db).stats()
    return {"status": "success", **stats}


@router.patch("/orders/{order_id}")
async def update_order_status(
    order_id: uuid.UUID,
    request: UpdateOrderStatusRequest,
    db: AsyncSession = Depends(get_db),
    _: str = Depends(get_admin_user),
):
    """Move an order to a new status. Invalid transitions answer 409."""
    service = OrderService(db)
    order = await service.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    order = await service.update_status(order, request.status)
    logger.info(f"Admin set order {order.id} to {order.status}")
    return {"status": "success", "order": order.to_dict()}
