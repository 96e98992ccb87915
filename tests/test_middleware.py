"""Middleware tests: request ID, rate limiting, CORS, error shape."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient


class _FakePipeline:
    def __init__(self, store: dict[str, int]) -> None:
        self._store = store
        self._key = ""

    def incr(self, key: str) -> _FakePipeline:
        self._key = key
        self._store[key] = self._store.get(key, 0) + 1
        return self

    def expire(self, key: str, seconds: int) -> _FakePipeline:
        return self

    async def execute(self) -> list[Any]:
        return [self._store[self._key], True]


class _FakeRedis:
    """Just enough of a Redis client for the fixed-window counter."""

    def __init__(self) -> None:
        self.store: dict[str, int] = {}

    def pipeline(self) -> _FakePipeline:
        return _FakePipeline(self.store)


@pytest.fixture
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> _FakeRedis:
    redis = _FakeRedis()
    monkeypatch.setattr("orbit.middleware.rate_limit.get_redis_or_none", lambda: redis)
    return redis


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_no_redis_means_no_rate_limit(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(client: AsyncClient, fake_redis: _FakeRedis) -> None:
    """101st request in a window returns 429 with Retry-After."""
    for _ in range(100):
        response = await client.get("/version")
    assert response.headers["x-ratelimit-remaining"] == "0"

    response = await client.get("/version")
    assert response.status_code == 429
    assert response.headers["retry-after"] == "60"
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_webhook_exempt_from_rate_limit(client: AsyncClient, fake_redis: _FakeRedis) -> None:
    for _ in range(105):
        response = await client.post("/api/v1/billing/webhook", content=b"{}")
        assert response.status_code == 400  # missing signature, never 429
    assert fake_redis.store == {}


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}
