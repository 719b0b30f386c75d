"""Shared fixtures: a fresh SQLite database per test, API clients and a fake gateway."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from libs.auth.dependencies import get_current_user, get_optional_user
from libs.auth.models import AuthUser
from libs.db.base import Base
from libs.db.session import get_async_db
from services.store_service import models as _store_models  # noqa: F401
from services.store_service.app.main import create_app
from services.store_service.gateways import (
    PaymentGateway,
    get_payment_gateway,
    get_paypal_gateway,
    get_stripe_gateway,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool
from tests.factories import FakeGateway

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine():
    """
    Engine with every store table created.

    Defaults to in-memory SQLite; StaticPool keeps the single connection alive
    so all sessions see the same database for the duration of the test. Set
    TEST_DATABASE_URL to run against a real Postgres database instead.
    """
    if TEST_DATABASE_URL:
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
    else:
        engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Payment gateway
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture
def customer_user() -> AuthUser:
    return AuthUser(user_id="customer-auth-id", email="shopper@test.com")


@pytest.fixture
def admin_user() -> AuthUser:
    return AuthUser(user_id="admin-auth-id", email="admin@test.com", role="admin")


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _store_client(
    db_session: AsyncSession,
    gateway: PaymentGateway,
    user: Optional[AuthUser] = None,
) -> AsyncGenerator[AsyncClient, None]:
    """A fresh app wired to the test session, the fake gateway and ``user``."""
    app = create_app()

    async def _db():
        yield db_session

    app.dependency_overrides[get_async_db] = _db
    for dependency in (get_payment_gateway, get_stripe_gateway, get_paypal_gateway):
        app.dependency_overrides[dependency] = lambda: gateway

    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_optional_user] = lambda: user

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def guest_client(db_session, fake_gateway) -> AsyncGenerator[AsyncClient, None]:
    """Anonymous caller (webhooks, guest carts, donations)."""
    async with _store_client(db_session, fake_gateway) as ac:
        yield ac


@pytest_asyncio.fixture
async def customer_client(
    db_session, fake_gateway, customer_user
) -> AsyncGenerator[AsyncClient, None]:
    async with _store_client(db_session, fake_gateway, customer_user) as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(
    db_session, fake_gateway, admin_user
) -> AsyncGenerator[AsyncClient, None]:
    async with _store_client(db_session, fake_gateway, admin_user) as ac:
        yield ac
