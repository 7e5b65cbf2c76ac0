"""Tests for the Redis-backed local storage and its in-process fallback."""

from __future__ import annotations

import json
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from trailcatalog import storage as storage_module
from trailcatalog.storage import LIKED_TRAILS_KEY, LocalStorage


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class _StubRedis:
    def __init__(self, *, fail_ping: bool = False) -> None:
        self.fail_ping = fail_ping
        self.fail_get = False
        self.values: dict[str, str] = {}
        self.closed = False

    async def ping(self) -> bool:
        if self.fail_ping:
            raise RedisConnectionError("connection refused")
        return True

    async def get(self, key: str) -> str | None:
        if self.fail_get:
            raise RedisConnectionError("connection reset")
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.values[key] = value

    async def aclose(self) -> None:
        self.closed = True


class _StubRedisFactory:
    def __init__(self, *clients: _StubRedis) -> None:
        self.clients = list(clients)
        self.urls: list[str] = []

    def from_url(self, url: str, **kwargs: Any) -> _StubRedis:
        self.urls.append(url)
        return self.clients.pop(0)


@pytest.mark.asyncio
async def test_storage_without_redis_url_keeps_values_in_process() -> None:
    storage = LocalStorage(None)

    assert await storage.get_json(LIKED_TRAILS_KEY) is None
    await storage.set_json(LIKED_TRAILS_KEY, ["a", "b"])

    assert await storage.get_json(LIKED_TRAILS_KEY) == ["a", "b"]
    assert await storage.get_redis() is None


@pytest.mark.asyncio
async def test_values_round_trip_through_redis(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _StubRedis()
    factory = _StubRedisFactory(client)
    monkeypatch.setattr(storage_module, "Redis", factory)
    storage = LocalStorage("redis://cache:6379/0")

    await storage.set_json(LIKED_TRAILS_KEY, ["t1"])

    assert json.loads(client.values["trailcatalog:storage:likedTrails"]) == ["t1"]
    fresh = LocalStorage("redis://cache:6379/0")
    monkeypatch.setattr(storage_module, "Redis", _StubRedisFactory(client))
    assert await fresh.get_json(LIKED_TRAILS_KEY) == ["t1"]
    assert factory.urls == ["redis://cache:6379/0"]

    await storage.close()
    assert client.closed


@pytest.mark.asyncio
async def test_failed_ping_disables_redis_until_cooldown(monkeypatch: pytest.MonkeyPatch) -> None:
    clock = _FakeClock()
    healthy = _StubRedis()
    factory = _StubRedisFactory(_StubRedis(fail_ping=True), healthy)
    monkeypatch.setattr(storage_module, "Redis", factory)
    storage = LocalStorage("redis://cache:6379/0", retry_backoff_seconds=30.0, clock=clock)

    await storage.set_json(LIKED_TRAILS_KEY, ["t1"])
    assert await storage.get_json(LIKED_TRAILS_KEY) == ["t1"]
    assert len(factory.urls) == 1

    clock.now = 29.0
    assert await storage.get_redis() is None
    assert len(factory.urls) == 1

    clock.now = 31.0
    assert await storage.get_redis() is healthy


@pytest.mark.asyncio
async def test_read_failure_falls_back_to_local_value(monkeypatch: pytest.MonkeyPatch) -> None:
    client = _StubRedis()
    monkeypatch.setattr(storage_module, "Redis", _StubRedisFactory(client))
    storage = LocalStorage("redis://cache:6379/0", clock=_FakeClock())

    await storage.set_json(LIKED_TRAILS_KEY, ["t2"])
    client.fail_get = True

    assert await storage.get_json(LIKED_TRAILS_KEY) == ["t2"]
    assert await storage.get_redis() is None
