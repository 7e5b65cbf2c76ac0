"""Tests for fresh-then-fallback query execution."""

from __future__ import annotations

import asyncio

import pytest

from trailcatalog.errors import PermanentStoreError, TransientStoreError
from trailcatalog.schemas.trail_guide import EMPTY_CACHE_WARNING, CatalogSource
from trailcatalog.services.retry import RetryPolicy, RetryScheduler
from trailcatalog.services.source_fallback import SourceFallbackFetch
from trailcatalog.stores.base import public_guides_query
from trailcatalog.stores.snapshot import SnapshotDocumentStore

from tests.catalog.support.in_memory_store import (
    FailingSnapshot,
    InMemoryDocumentStore,
    RecordingSleep,
    make_guide,
)


@pytest.mark.asyncio
async def test_fresh_read_is_written_through_and_served_when_offline(
    remote: InMemoryDocumentStore,
    snapshot: SnapshotDocumentStore,
    scheduler: RetryScheduler,
    policy: RetryPolicy,
) -> None:
    remote.add(make_guide("a"))
    remote.add(make_guide("b"))
    fetcher = SourceFallbackFetch(remote, snapshot, scheduler=scheduler, policy=policy)
    query = public_guides_query(remote.collection)

    fresh = await fetcher.fetch(query)
    remote.failures.append(TransientStoreError("unavailable"))
    cached = await fetcher.fetch(query)

    assert fresh.source is CatalogSource.FRESH
    assert cached.source is CatalogSource.FALLBACK
    assert cached.warning is None
    assert sorted(record.id for record in cached.records) == ["a", "b"]


@pytest.mark.asyncio
async def test_empty_fallback_is_degraded_success(
    remote: InMemoryDocumentStore,
    snapshot: SnapshotDocumentStore,
    scheduler: RetryScheduler,
    recording_sleep: RecordingSleep,
    policy: RetryPolicy,
) -> None:
    remote.failures.append(TransientStoreError("unavailable"))
    fetcher = SourceFallbackFetch(remote, snapshot, scheduler=scheduler, policy=policy)

    result = await fetcher.fetch(public_guides_query(remote.collection))

    assert result.records == []
    assert result.source is CatalogSource.FALLBACK
    assert result.warning == EMPTY_CACHE_WARNING
    assert result.is_degraded
    # The fallback is part of the same attempt, not a retry.
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_permanent_failure_on_both_paths_propagates_without_retry(
    remote: InMemoryDocumentStore,
    scheduler: RetryScheduler,
    recording_sleep: RecordingSleep,
    policy: RetryPolicy,
) -> None:
    remote.failures.append(PermanentStoreError("permission denied"))
    fallback = FailingSnapshot(RuntimeError("snapshot unavailable"))
    fetcher = SourceFallbackFetch(remote, fallback, scheduler=scheduler, policy=policy)

    with pytest.raises(PermanentStoreError, match="permission denied"):
        await fetcher.fetch(public_guides_query(remote.collection))

    assert len(remote.query_calls) == 1
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_transient_failure_on_both_paths_is_retried(
    remote: InMemoryDocumentStore,
    scheduler: RetryScheduler,
    recording_sleep: RecordingSleep,
    policy: RetryPolicy,
) -> None:
    remote.add(make_guide("a"))
    remote.failures.extend([TransientStoreError("unavailable"), TransientStoreError("unavailable")])
    fallback = FailingSnapshot(RuntimeError("snapshot unavailable"))
    fetcher = SourceFallbackFetch(remote, fallback, scheduler=scheduler, policy=policy)

    result = await fetcher.fetch(public_guides_query(remote.collection))

    assert result.source is CatalogSource.FRESH
    assert [record.id for record in result.records] == ["a"]
    assert len(remote.query_calls) == 3
    assert recording_sleep.delays == [1.0, 2.0]
    assert len(fallback.saved) == 1


@pytest.mark.asyncio
async def test_stalled_fresh_read_times_out_into_fallback(
    remote: InMemoryDocumentStore,
    snapshot: SnapshotDocumentStore,
    scheduler: RetryScheduler,
) -> None:
    query = public_guides_query(remote.collection)
    await snapshot.save(query, [make_guide("cached")])
    remote.call_gates.append(asyncio.Event())  # never released
    fetcher = SourceFallbackFetch(
        remote, snapshot, scheduler=scheduler, policy=RetryPolicy(timeout=0.05)
    )

    result = await fetcher.fetch(query)

    assert result.source is CatalogSource.FALLBACK
    assert [record.id for record in result.records] == ["cached"]


@pytest.mark.asyncio
async def test_malformed_documents_are_skipped(
    remote: InMemoryDocumentStore,
    snapshot: SnapshotDocumentStore,
    scheduler: RetryScheduler,
    policy: RetryPolicy,
) -> None:
    remote.add(make_guide("good"))
    remote.add(make_guide("bad", metadata={"photoCount": "many"}))
    fetcher = SourceFallbackFetch(remote, snapshot, scheduler=scheduler, policy=policy)

    result = await fetcher.fetch(public_guides_query(remote.collection))

    assert [record.id for record in result.records] == ["good"]
