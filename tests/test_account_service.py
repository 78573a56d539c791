"""
Tests for AccountService.
"""

import re
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from app.models.customer import Customer
from app.schemas.checkout import CustomerInfo
from app.services.account_service import (
    AccountService,
    generate_password,
    hash_password,
    normalize_email,
    verify_password,
)


def test_normalize_email():
    assert normalize_email("  Ada@Example.COM ") == "ada@example.com"
    assert normalize_email(None) == ""


def test_generate_password_format():
    """First name token, one special character, then digits."""
    for _ in range(20):
        password = generate_password("Ada Obi")
        match = re.fullmatch(r"Ada([@!&^#])(\d+)", password)
        assert match is not None
        assert 0 <= int(match.group(2)) < 3_000_000


def test_generate_password_without_name():
    assert generate_password("").startswith("user")


def test_hash_and_verify():
    password_hash = hash_password("Ada#123", rounds=4)

    assert password_hash != "Ada#123"
    assert verify_password("Ada#123", password_hash)
    assert not verify_password("Ada#124", password_hash)


@pytest.mark.asyncio
async def test_provision_new_customer(db):
    service = AccountService(db)
    contact = CustomerInfo(
        email="Ada@Example.com",
        name=" Ada Obi ",
        phone=8030000000,
        postalCode=100001,
    )

    customer, created, password = await service.provision(contact)

    assert created is True
    assert customer.id is not None
    assert customer.email == "ada@example.com"
    assert customer.name == "Ada Obi"
    assert customer.phone == "8030000000"
    assert customer.postal_code == "100001"
    assert customer.country == "Nigeria"
    assert customer.is_guest is True
    assert verify_password(password, customer.password_hash)

    result = await db.execute(select(Customer).where(Customer.email == "ada@example.com"))
    assert result.scalar_one().id == customer.id


@pytest.mark.asyncio
async def test_provision_existing_customer(db):
    """Existing accounts are reused and their contact details overwritten."""
    service = AccountService(db)
    first, _, _ = await service.provision(CustomerInfo(email="ada@example.com", name="Ada", city="Abuja"))
    original_hash = first.password_hash

    second, created, password = await service.provision(
        CustomerInfo(email="ADA@example.com", name="Ada Obi", city="Lagos", country="Ghana")
    )

    assert created is False
    assert password is None
    assert second.id == first.id
    assert second.name == "Ada Obi"
    assert second.city == "Lagos"
    assert second.country == "Ghana"
    assert second.password_hash == original_hash


@pytest.mark.asyncio
async def test_get_by_email_is_case_insensitive(db):
    service = AccountService(db)
    customer, _, _ = await service.provision(CustomerInfo(email="ada@example.com", name="Ada"))

    found = await service.get_by_email("ADA@EXAMPLE.COM ")

    assert found is not None
    assert found.id == customer.id


@pytest.mark.asyncio
async def test_provision_when_account_created_concurrently(db):
    """The lookup missed an account another request committed in between."""
    existing = Customer(email="ada@example.com", name="Ada", password_hash="$2b$04$existinghash")
    db.add(existing)
    await db.commit()

    service = AccountService(db)
    real_lookup = service.get_by_email
    lookups = []

    async def stale_first_lookup(email):
        lookups.append(email)
        if len(lookups) == 1:
            return None
        return await real_lookup(email)

    with patch.object(service, "get_by_email", stale_first_lookup):
        customer, created, password = await service.provision(
            CustomerInfo(email="ada@example.com", name="Ada Obi", city="Lagos")
        )

    assert created is False
    assert password is None
    assert customer.id == existing.id
    assert customer.name == "Ada Obi"
    assert customer.city == "Lagos"
    assert customer.password_hash == "$2b$04$existinghash"
    assert len(lookups) == 2

    await db.commit()
    count = await db.scalar(select(func.count()).select_from(Customer))
    assert count == 1
