"""Middleware behaviour: request context, rate limiting and error handling."""

from __future__ import annotations

from collections import Counter

import pytest
from httpx import ASGITransport, AsyncClient

from hibilog.config import get_settings
from hibilog.main import create_app
from hibilog.middleware import rate_limit


class FakePipeline:
    def __init__(self, counts: Counter) -> None:
        self.counts = counts
        self.key: str | None = None

    def incr(self, key: str) -> FakePipeline:
        self.key = key
        return self

    def expire(self, key: str, seconds: int) -> FakePipeline:
        return self

    async def execute(self) -> list[object]:
        self.counts[self.key] += 1
        return [self.counts[self.key], True]


class FakeRedis:
    def __init__(self) -> None:
        self.counts: Counter = Counter()

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self.counts)


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 32


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_no_rate_limit_without_redis(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(monkeypatch) -> None:
    monkeypatch.setenv("HIBILOG_RATE_LIMIT_REQUESTS", "3")
    get_settings.cache_clear()
    fake = FakeRedis()
    monkeypatch.setattr(rate_limit, "get_redis", lambda: fake)
    try:
        app = create_app()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            responses = [await ac.get("/version") for _ in range(4)]
            health = [await ac.get("/health") for _ in range(5)]
    finally:
        get_settings.cache_clear()

    assert [r.status_code for r in responses] == [200, 200, 200, 429]
    assert responses[0].headers["x-ratelimit-remaining"] == "2"
    assert responses[3].headers["retry-after"] == "60"
    assert all(r.status_code == 200 for r in health)


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/api/v1/pet",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_unhandled_error_returns_json(app, memory_repo, auth_headers) -> None:
    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    memory_repo.list_for_user = broken
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/api/v1/memories", headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
