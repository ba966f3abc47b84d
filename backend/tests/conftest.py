"""Pytest configuration and fixtures for DairyLedger tests.

Each test gets a fresh in-memory SQLite database (aiosqlite) with the full
schema, an AsyncSession bound to it, and an httpx client whose `get_db`
dependency yields that same session. Redis and the scheduler are off.
"""

import os

os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dairyledger.database import Base, get_db
from dairyledger.main import app
from dairyledger.models import *  # noqa: F401,F403
from dairyledger.models.daily_record import DailyRecord
from dairyledger.services.customers import create_customer
from dairyledger.services.schedule import recompute_schedule

# Fixed "today" used throughout; chosen away from month ends.
TODAY = date(2026, 3, 14)

COW = "milk-cow"
BUFFALO = "milk-buffalo"
FULL_CREAM = "sub-full-cream"
TONED = "sub-toned"


def morning_schedule(quantity: float = 2, price: float = 60.0) -> list[dict]:
    return [
        {
            "slot": "morning",
            "items": [
                {
                    "milk_type_id": COW,
                    "subcategory_id": FULL_CREAM,
                    "quantity": quantity,
                    "price_per_unit": price,
                }
            ],
        }
    ]


def two_slot_schedule() -> list[dict]:
    return [
        {
            "slot": "morning",
            "items": [
                {"milk_type_id": COW, "subcategory_id": FULL_CREAM, "quantity": 2, "price_per_unit": 60.0},
            ],
        },
        {
            "slot": "evening",
            "items": [
                {"milk_type_id": BUFFALO, "subcategory_id": TONED, "quantity": 1, "price_per_unit": 70.0},
            ],
        },
    ]


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine with SAVEPOINT support."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests."""
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest.fixture
def make_customer(db_session: AsyncSession):
    """Factory: create a customer through the service (no backfill by default)."""
    counter = {"n": 0}

    async def _make(
        name: str | None = None,
        schedule: list[dict] | None = None,
        joined_date: date = TODAY,
        credit_balance: float = 0.0,
        today: date = TODAY,
        **extra,
    ):
        counter["n"] += 1
        data = {
            "name": name or f"Customer {counter['n']}",
            "phone": extra.pop("phone", f"98000000{counter['n']:02d}"),
            "address": "12 Dairy Lane",
            "joined_date": joined_date,
            "delivery_schedule": morning_schedule() if schedule is None else schedule,
            "credit_balance": credit_balance,
            **extra,
        }
        customer, _ = await create_customer(db_session, data, today=today)
        return customer

    return _make


@pytest.fixture
def make_record(db_session: AsyncSession):
    """Factory: write a DailyRecord directly with a given daily amount."""

    async def _make(customer, on: date, quantity: float = 2, price: float = 60.0):
        slots, total_quantity, total_amount = recompute_schedule(morning_schedule(quantity, price))
        record = DailyRecord(
            customer=customer,
            record_date=on,
            slots=slots,
            total_daily_quantity=total_quantity,
            total_daily_price=total_amount,
        )
        db_session.add(record)
        await db_session.flush()
        return record

    return _make


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "cache: Cache tests")
