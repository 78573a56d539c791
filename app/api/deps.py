import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.services.checkout_service import CheckoutService
from app.services.gateway_client import FlutterwaveClient, get_gateway_client


async def get_admin_user(
    x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
) -> str:
    """
    Validate the Admin Key from the `X-Admin-Key` header.
    Returns the key if valid, raises 401 otherwise.
    """
    key = x_admin_key
    valid_key = settings.admin_api_key

    if not key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Admin Key",
        )

    if not valid_key or not hmac.compare_digest(key.encode(), valid_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Admin Key",
        )

    return key


def get_checkout_service(
    db: AsyncSession = Depends(get_db),
    gateway: FlutterwaveClient = Depends(get_gateway_client),
) -> CheckoutService:
    """Checkout service bound to the request's session."""
    return CheckoutService(db, gateway)
