"""Shared test fixtures.

The suite runs against an in-memory SQLite database (aiosqlite) and no
Redis, so it needs no external services.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

os.environ["ORBIT_DATABASE_URL"] = TEST_DATABASE_URL
os.environ["ORBIT_RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["ORBIT_RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["ORBIT_RAZORPAY_WEBHOOK_SECRET"] = "rzp_webhook_secret"
os.environ["ORBIT_JWT_SECRET"] = "orbit-test-secret-with-at-least-32-bytes"
os.environ["ORBIT_LOG_FORMAT"] = "console"

from orbit.config import get_settings  # noqa: E402

get_settings.cache_clear()

from orbit.database import close_db, get_engine, get_session, init_db  # noqa: E402
from orbit.db.base import Base  # noqa: E402
from orbit.db.models import Post, User  # noqa: E402
from orbit.missions.catalog import seed_mission_templates  # noqa: E402


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """A session on a fresh in-memory database with the mission catalog seeded."""
    await init_db(TEST_DATABASE_URL)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async for session in get_session():
        await seed_mission_templates(session)
        yield session
        break

    await close_db()


@pytest_asyncio.fixture
async def make_user(db: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory: persist a user and return it."""
    counter = 0

    async def _make(username: str | None = None, stars_balance: int = 0, **fields: object) -> User:
        nonlocal counter
        counter += 1
        user = User(
            username=username or f"pilot{counter}",
            display_name=(username or f"pilot{counter}").title(),
            stars_balance=0,
            **fields,
        )
        db.add(user)
        await db.flush()
        if stars_balance:
            # Opening balances go through the ledger like everything else
            from orbit.economy.wallet_service import adjust_balance

            await adjust_balance(db, user.id, stars_balance, "purchase", reference="test-seed")
        await db.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def make_post(db: AsyncSession) -> Callable[..., Awaitable[Post]]:
    async def _make(author: User, title: str = "Hello orbit", **fields: object) -> Post:
        post = Post(author_id=author.id, title=title, **fields)
        db.add(post)
        await db.commit()
        return post

    return _make


@pytest.fixture
def redis_mock() -> AsyncMock:
    """Stand-in for the Redis client used for notification fan-out."""
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def app(db: AsyncSession) -> FastAPI:
    """A fresh application bound to the test database. Tests may set dependency overrides on it."""
    from orbit.main import create_app

    return create_app()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app, sharing the test database."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Bearer headers for a user, signed the way the auth service signs them."""
    from orbit.auth.jwt import create_access_token

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.membership_tier)}"}

    return _headers


class FakeGateway:
    """Stands in for the Razorpay client: hands out sequential order ids and records each order."""

    key_id = "rzp_test_key"

    def __init__(self) -> None:
        self.orders: list[dict[str, Any]] = []

    async def create_order(self, amount_minor_units: int, receipt: str, notes: dict[str, Any]) -> dict[str, Any]:
        order = {
            "id": f"order_{len(self.orders) + 1:04d}",
            "amount": amount_minor_units,
            "currency": "INR",
            "receipt": receipt,
            "notes": notes,
        }
        self.orders.append(order)
        return order


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
