"""
Tests for CheckoutService races between concurrent requests.

Each test finishes a checkout in one session, then replays the same request
in a second session whose pre-checks ran before the first one committed.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Customer, Order, Transaction
from app.schemas.checkout import VerifyPaymentRequest
from app.services.checkout_service import CheckoutService
from tests.factories import checkout_body


async def count(db, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


async def complete_first_checkout(db, gateway):
    gateway.add(1001, tx_ref="A1", amount=5000)
    result = await CheckoutService(db, gateway.client).verify_payment(
        VerifyPaymentRequest.model_validate(checkout_body())
    )
    await db.commit()
    assert result.success is True
    return result.order.id


@pytest.mark.asyncio
async def test_parallel_new_customer_checkout_returns_first_order(db, test_engine, gateway):
    """Both requests saw no account and no order for the new email."""
    order_id = await complete_first_checkout(db, gateway)

    session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as other:
        service = CheckoutService(other, gateway.client)
        real_lookup = service.accounts.get_by_email
        lookups = []

        async def stale_first_lookup(email):
            lookups.append(email)
            if len(lookups) == 1:
                return None
            return await real_lookup(email)

        with patch.object(service.guard, "find_replay", AsyncMock(return_value=None)), \
                patch.object(service.accounts, "get_by_email", stale_first_lookup):
            result = await service.verify_payment(
                VerifyPaymentRequest.model_validate(checkout_body())
            )
        await other.commit()

        assert result.success is True
        assert result.replay is True
        assert result.message == "Already verified"
        assert result.order.id == order_id
        assert result.notifications == []

        assert await count(other, Customer) == 1
        assert await count(other, Order) == 1
        txn = (await other.execute(select(Transaction))).scalar_one()
        assert txn.status == "successful"
        assert txn.order_id == order_id


@pytest.mark.asyncio
async def test_constraint_conflict_falls_back_to_existing_order(db, test_engine, gateway):
    """Any unique conflict while persisting answers with the stored order."""
    order_id = await complete_first_checkout(db, gateway)

    session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as other:
        service = CheckoutService(other, gateway.client)
        conflict = IntegrityError(
            "INSERT INTO customers", {}, Exception("UNIQUE constraint failed: customers.email")
        )

        with patch.object(service.guard, "find_replay", AsyncMock(return_value=None)), \
                patch.object(service.accounts, "provision", AsyncMock(side_effect=conflict)):
            result = await service.verify_payment(
                VerifyPaymentRequest.model_validate(checkout_body())
            )

        assert result.success is True
        assert result.replay is True
        assert result.order.id == order_id
        assert await count(other, Order) == 1
