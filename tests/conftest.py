"""
Pytest configuration and fixtures.
"""

from typing import AsyncGenerator, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers tables on Base.metadata
from app.config import settings
from app.database import Base, get_db
from app.main import app as fastapi_app
from app.services.gateway_client import FlutterwaveClient, get_gateway_client
from app.services.notification_service import (
    MailJob,
    NotificationService,
    get_notification_service,
)

# Use in-memory SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


class FakeFlutterwave:
    """In-memory stand-in for the Flutterwave verify endpoints."""

    def __init__(self):
        self.transactions = {}
        self.requests: List[httpx.Request] = []
        self.fail_with = None

    def add(self, transaction_id, tx_ref="A1", amount=5000, status="successful", currency="NGN"):
        self.transactions[str(transaction_id)] = {
            "id": int(transaction_id),
            "tx_ref": tx_ref,
            "flw_ref": f"FLW-MOCK-{transaction_id}",
            "amount": amount,
            "charged_amount": amount,
            "currency": currency,
            "status": status,
            "payment_type": "card",
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.fail_with == "timeout":
            raise httpx.ConnectTimeout("timed out", request=request)
        if isinstance(self.fail_with, int):
            return httpx.Response(self.fail_with, text="upstream error")

        if request.url.path.endswith("/verify_by_reference"):
            tx_ref = request.url.params.get("tx_ref")
            data = next(
                (t for t in self.transactions.values() if t["tx_ref"] == tx_ref),
                None,
            )
        else:
            data = self.transactions.get(request.url.path.split("/")[-2])

        if data is None:
            return httpx.Response(
                400,
                json={"status": "error", "message": "No transaction was found for this id", "data": None},
            )
        return httpx.Response(
            200,
            json={"status": "success", "message": "Transaction fetched successfully", "data": data},
        )

    @property
    def client(self) -> FlutterwaveClient:
        return FlutterwaveClient(
            secret_key="FLWSECK_TEST-abc",
            base_url="https://flw.test",
            timeout=5,
            transport=httpx.MockTransport(self.handler),
        )


class RecordingNotifier(NotificationService):
    """Notifier that keeps queued emails instead of sending them."""

    def __init__(self):
        super().__init__()
        self.sent: List[MailJob] = []

    async def send_all(self, jobs) -> int:
        jobs = list(jobs)
        self.sent.extend(jobs)
        return len(jobs)


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Cheap bcrypt rounds keep account tests fast."""
    monkeypatch.setattr(settings, "password_hash_rounds", 4)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create async engine for tests."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest correctly
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for a test."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def gateway() -> FakeFlutterwave:
    return FakeFlutterwave()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def client(db, gateway, notifier) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client against the app, sharing the test session."""

    async def override_get_db():
        try:
            yield db
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_gateway_client] = lambda: gateway.client
    fastapi_app.dependency_overrides[get_notification_service] = lambda: notifier

    transport = httpx.ASGITransport(app=fastapi_app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()
