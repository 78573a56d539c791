"""
Account Service - guest account provisioning at checkout.
"""

import asyncio
import logging
import random
from typing import Optional, Tuple

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.customer import Customer
from app.schemas.checkout import CustomerInfo

logger = logging.getLogger(__name__)

SPECIAL_CHARS = ["@", "!", "&", "^", "#"]
PASSWORD_SUFFIX_MAX = 3_000_000


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def generate_password(name: Optional[str] = "") -> str:
    """First name token + special char + random number, e.g. `Ada#104233`."""
    tokens = (name or "").split()
    first = tokens[0] if tokens else "user"
    return f"{first}{random.choice(SPECIAL_CHARS)}{random.randint(0, PASSWORD_SUFFIX_MAX - 1)}"


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.password_hash_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class AccountService:
    """Service for finding or creating the customer behind a checkout."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[Customer]:
        """Get customer by email (case-insensitive)."""
        result = await self.db.execute(
            select(Customer).where(Customer.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def provision(self, contact: CustomerInfo) -> Tuple[Customer, bool, Optional[str]]:
        """
        Find or create the account for checkout contact details.

        Returns (customer, created, plaintext password). The password is only
        returned for new accounts so it can be emailed once; it is never stored.
        Existing accounts get their contact fields overwritten (last write wins).
        """
        email = normalize_email(contact.email)
        customer = await self.get_by_email(email)

        if customer:
            self._apply_contact(customer, contact)
            await self.db.flush()
            logger.info(f"Updated contact details for {email}")
            return customer, False, None

        password = generate_password(contact.name)
        # bcrypt is CPU bound, keep it off the event loop
        password_hash = await asyncio.to_thread(hash_password, password)

        customer = Customer(
            email=email,
            name=(contact.name or "").strip(),
            password_hash=password_hash,
            is_guest=True,
            country=settings.default_country,
        )
        self._apply_contact(customer, contact)

        try:
            async with self.db.begin_nested():
                self.db.add(customer)
        except IntegrityError:
            # A concurrent checkout created the account first
            customer = await self.get_by_email(email)
            if customer is None:
                raise
            self._apply_contact(customer, contact)
            await self.db.flush()
            logger.info(f"Guest account {email} created concurrently, reusing it")
            return customer, False, None

        logger.info(f"Created guest account: {email}")
        return customer, True, password

    @staticmethod
    def _apply_contact(customer: Customer, contact: CustomerInfo) -> None:
        """Blank incoming values keep what is stored."""
        if contact.name and contact.name.strip():
            customer.name = contact.name.strip()
        for field in ("phone", "address", "city", "state", "postal_code", "country"):
            value = getattr(contact, field)
            if value is not None and str(value).strip():
                setattr(customer, field, str(value).strip())
