"""Bounded retry with exponential backoff for fallible coroutines."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from trailcatalog.errors import TransientStoreError, is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")

AsyncOperation = Callable[[], Awaitable[T]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for one logical operation.

    ``max_retries`` counts retries, not attempts: a policy with three retries
    makes at most four attempts. Delays and timeouts are in seconds.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    timeout: float | None = 12.0
    is_transient: Callable[[BaseException], bool] = field(default=is_transient)

    def delay_for(self, attempt: int) -> float:
        """Backoff applied after the failed attempt number ``attempt`` (0-based)."""

        return self.base_delay * (2**attempt)


class RetryScheduler:
    """Run an operation until it succeeds, fails permanently or runs out of retries.

    Each attempt is raced against ``policy.timeout``; a timeout is reported as a
    :class:`TransientStoreError`. ``sleep`` is injectable so tests can observe
    the backoff schedule without waiting for it.
    """

    def __init__(self, *, sleep: Sleep = asyncio.sleep) -> None:
        self._sleep = sleep

    async def _attempt(self, operation: AsyncOperation[T], timeout: float | None) -> T:
        if timeout is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout)
        except asyncio.TimeoutError as exc:
            raise TransientStoreError(f"Operation timed out after {timeout:g}s") from exc

    async def run(self, operation: AsyncOperation[T], policy: RetryPolicy, *, label: str = "") -> T:
        attempt = 0
        while True:
            try:
                return await self._attempt(operation, policy.timeout)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if not policy.is_transient(exc):
                    raise
                if attempt >= policy.max_retries:
                    logger.warning(
                        "%s failed after %d attempts: %s", label or "operation", attempt + 1, exc
                    )
                    raise
                delay = policy.delay_for(attempt)
                attempt += 1
                logger.info(
                    "%s failed with transient error (%s); retry %d/%d in %.1fs",
                    label or "operation",
                    exc,
                    attempt,
                    policy.max_retries,
                    delay,
                )
                await self._sleep(delay)


__all__ = ["RetryPolicy", "RetryScheduler"]
