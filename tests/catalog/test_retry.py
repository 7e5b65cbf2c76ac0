"""Tests for the bounded retry scheduler."""

from __future__ import annotations

import asyncio

import pytest

from trailcatalog.errors import PermanentStoreError, TransientStoreError, is_transient
from trailcatalog.services.retry import RetryPolicy, RetryScheduler

from tests.catalog.support.in_memory_store import RecordingSleep


class _FlakyOperation:
    """Fail with the queued errors, then succeed."""

    def __init__(self, *errors: BaseException) -> None:
        self._errors = list(errors)
        self.attempts = 0

    async def __call__(self) -> str:
        self.attempts += 1
        if self._errors:
            raise self._errors.pop(0)
        return "ok"


@pytest.mark.asyncio
async def test_two_transient_failures_then_success_uses_exponential_delays(
    scheduler: RetryScheduler, recording_sleep: RecordingSleep
) -> None:
    operation = _FlakyOperation(TransientStoreError("unavailable"), TransientStoreError("unavailable"))

    result = await scheduler.run(operation, RetryPolicy(max_retries=3, base_delay=1.0))

    assert result == "ok"
    assert operation.attempts == 3
    assert recording_sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_permanent_failure_is_not_retried(
    scheduler: RetryScheduler, recording_sleep: RecordingSleep
) -> None:
    operation = _FlakyOperation(PermanentStoreError("permission denied"))

    with pytest.raises(PermanentStoreError):
        await scheduler.run(operation, RetryPolicy())

    assert operation.attempts == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_exhausted_retries_raise_last_error(
    scheduler: RetryScheduler, recording_sleep: RecordingSleep
) -> None:
    errors = [TransientStoreError(f"unavailable #{index}") for index in range(5)]
    operation = _FlakyOperation(*errors)

    with pytest.raises(TransientStoreError, match="unavailable #3"):
        await scheduler.run(operation, RetryPolicy(max_retries=3, base_delay=1.0))

    assert operation.attempts == 4
    assert recording_sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_transient(
    scheduler: RetryScheduler, recording_sleep: RecordingSleep
) -> None:
    attempts = {"count": 0}

    async def operation() -> str:
        attempts["count"] += 1
        if attempts["count"] == 1:
            await asyncio.sleep(10)
        return "ok"

    result = await scheduler.run(operation, RetryPolicy(max_retries=1, timeout=0.01))

    assert result == "ok"
    assert attempts["count"] == 2
    assert recording_sleep.delays == [1.0]


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (TransientStoreError("x"), True),
        (PermanentStoreError("x"), False),
        (asyncio.TimeoutError(), True),
        (RuntimeError("Target ID already exists"), True),
        (RuntimeError("Service Unavailable"), True),
        (RuntimeError("Deadline timeout exceeded"), True),
        (ValueError("malformed query"), False),
    ],
)
def test_is_transient_classification(error: BaseException, expected: bool) -> None:
    assert is_transient(error) is expected
