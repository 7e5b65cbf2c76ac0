"""Local persistent key-value storage for small JSON blobs.

Redis is preferred when reachable. When the connection fails the storage keeps
working from an in-process dictionary and only retries Redis after the
configured cooldown, so a missing Redis never breaks a like toggle.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

logger = logging.getLogger(__name__)

LIKED_TRAILS_KEY = "likedTrails"

_KEY_PREFIX = "trailcatalog:storage"


def _is_redis_connection_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` represents a Redis connection failure."""

    if isinstance(exc, (RedisConnectionError, RedisTimeoutError, OSError)):
        return True

    error_type = type(exc)
    return error_type.__name__ == "ConnectionError" and error_type.__module__.startswith("redis")


class LocalStorage:
    """``get_json`` / ``set_json`` over Redis with an in-process fallback.

    Values are stored without a TTL. Writes always land in the in-process
    dictionary as well, which keeps reads consistent while Redis flaps.
    """

    def __init__(
        self,
        redis_url: str | None,
        *,
        retry_backoff_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._redis_url = redis_url
        self._retry_backoff_seconds = retry_backoff_seconds
        self._clock = clock
        self._redis: Redis | None = None
        self._client_lock = asyncio.Lock()
        self._disabled_until: float | None = None
        self._local: dict[str, Any] = {}

    @staticmethod
    def _redis_key(key: str) -> str:
        return f"{_KEY_PREFIX}:{key}"

    def _disable_redis(self, exc: BaseException) -> None:
        self._redis = None
        self._disabled_until = self._clock() + self._retry_backoff_seconds
        logger.warning(
            "Redis connection failed: %s. Using in-process storage for %.0f seconds.",
            exc,
            self._retry_backoff_seconds,
        )

    async def get_redis(self) -> Redis | None:
        """Return a connected Redis client, or ``None`` while Redis is unavailable."""

        if not self._redis_url:
            return None

        if self._disabled_until is not None and self._clock() < self._disabled_until:
            logger.debug("Redis disabled after previous failure; skipping attempt.")
            return None

        async with self._client_lock:
            # Another waiter may have connected or failed while we queued.
            if self._redis is not None:
                return self._redis
            if self._disabled_until is not None and self._clock() < self._disabled_until:
                return None

            client = Redis.from_url(self._redis_url, decode_responses=True, encoding="utf-8")
            try:
                await client.ping()
            except Exception as exc:  # type: ignore[broad-except]
                if _is_redis_connection_error(exc):
                    self._disable_redis(exc)
                    await client.aclose()
                    return None
                raise

            self._redis = client
            self._disabled_until = None
            logger.info("Redis connection established successfully")
            return client

    async def get_json(self, key: str) -> Any | None:
        redis = await self.get_redis()
        if redis is not None:
            try:
                payload = await redis.get(self._redis_key(key))
            except Exception as exc:  # type: ignore[broad-except]
                if not _is_redis_connection_error(exc):
                    raise
                self._disable_redis(exc)
            else:
                if payload is not None:
                    try:
                        value = json.loads(payload)
                    except json.JSONDecodeError:
                        logger.debug("Discarding undecodable storage value for %s", key)
                        return self._local.get(key)
                    self._local[key] = value
                    return value
        return self._local.get(key)

    async def set_json(self, key: str, value: Any) -> None:
        self._local[key] = value
        redis = await self.get_redis()
        if redis is None:
            return
        try:
            await redis.set(self._redis_key(key), json.dumps(value, default=str))
        except Exception as exc:  # type: ignore[broad-except]
            if not _is_redis_connection_error(exc):
                raise
            self._disable_redis(exc)

    async def close(self) -> None:
        """Close the Redis connection and clear the cooldown."""

        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
        self._disabled_until = None


__all__ = ["LIKED_TRAILS_KEY", "LocalStorage"]
