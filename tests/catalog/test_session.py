"""Tests for the session load sequence and catalog views."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from trailcatalog.errors import PermanentStoreError, TransientStoreError
from trailcatalog.schemas.trail_guide import (
    CatalogSource,
    DistanceRangeId,
    FilterSpec,
    SortField,
)
from trailcatalog.services.filtering import resolve_sort
from trailcatalog.services.retry import RetryPolicy, RetryScheduler
from trailcatalog.services.session import LAST_GOOD_WARNING, CatalogSession
from trailcatalog.storage import LocalStorage
from trailcatalog.stores.base import public_guides_query

from tests.catalog.support.in_memory_store import (
    FailingSnapshot,
    InMemoryDocumentStore,
    RecordingSleep,
    make_guide,
)


def _seed(remote: InMemoryDocumentStore, count: int) -> None:
    for index in range(count):
        remote.add(make_guide(f"t{index:02d}", metadata={"totalDistance": 1000 * (index + 1)}))


@pytest.mark.asyncio
async def test_load_reports_each_phase_and_issues_one_public_query(
    catalog_session: CatalogSession, remote: InMemoryDocumentStore
) -> None:
    _seed(remote, 8)
    remote.add(make_guide("mine", userId="u1", isPublic=False))
    catalog_session.sign_in("u1")

    report = await catalog_session.load()

    assert [phase.name for phase in report.phases] == ["stats", "catalog", "user"]
    assert all(phase.succeeded for phase in report.phases)
    assert [phase.count for phase in report.phases] == [8, 8, 1]
    assert report.phases[0].source is CatalogSource.FRESH
    assert not report.offline_suspected
    public_queries = [
        query for query in remote.query_calls if query == public_guides_query(remote.collection)
    ]
    assert len(public_queries) == 1


@pytest.mark.asyncio
async def test_first_page_is_ready_after_load(
    catalog_session: CatalogSession, remote: InMemoryDocumentStore
) -> None:
    _seed(remote, 8)

    await catalog_session.load()
    page = catalog_session.next_page()

    assert catalog_session.window.displayed_count == 8
    assert [record.id for record in page.items] == ["t06", "t07"]
    assert not page.has_more


@pytest.mark.asyncio
async def test_offline_load_with_empty_snapshot_is_flagged(
    catalog_session: CatalogSession, remote: InMemoryDocumentStore
) -> None:
    remote.failures = [PermanentStoreError("permission denied")]

    report = await catalog_session.load()

    assert all(phase.succeeded for phase in report.phases[:2])
    assert report.phases[0].source is CatalogSource.FALLBACK
    assert report.phases[0].warning == "empty_cache"
    assert report.total_items == 0
    assert report.offline_suspected


def _session_without_snapshot(
    remote: InMemoryDocumentStore, scheduler: RetryScheduler, policy: RetryPolicy
) -> CatalogSession:
    """Session whose local snapshot cannot be read."""

    return CatalogSession(
        store=remote,
        snapshot=FailingSnapshot(OperationalError("SELECT", {}, Exception("disk I/O error"))),
        storage=LocalStorage(None),
        collection=remote.collection,
        policy=policy,
        scheduler=scheduler,
        phase_timeout=5.0,
    )


@pytest.mark.asyncio
async def test_failed_phase_is_reported_without_stopping_later_phases(
    remote: InMemoryDocumentStore,
    scheduler: RetryScheduler,
    policy: RetryPolicy,
    recording_sleep: RecordingSleep,
) -> None:
    _seed(remote, 2)
    session = _session_without_snapshot(remote, scheduler, policy)
    session.sign_in("u1")
    await session.get_catalog()
    # The user query fails on every attempt; the public catalog is already cached.
    remote.failures = [TransientStoreError("unavailable") for _ in range(4)]

    report = await session.load()

    user = report.phases[2]
    assert not user.succeeded
    assert user.error_category == "transient"
    assert report.phases[1].count == 2
    assert recording_sleep.delays == [1.0, 2.0, 4.0]
    await session.close()


@pytest.mark.asyncio
async def test_last_good_catalog_is_served_when_refresh_fails(
    remote: InMemoryDocumentStore, scheduler: RetryScheduler, policy: RetryPolicy
) -> None:
    _seed(remote, 3)
    session = _session_without_snapshot(remote, scheduler, policy)
    await session.init()
    first = await session.apply_view()
    assert first.warning is None

    remote.failures = [PermanentStoreError("permission denied")]
    page = await session.refresh()

    assert page.warning == LAST_GOOD_WARNING
    assert page.total == 3
    await session.close()


@pytest.mark.asyncio
async def test_apply_view_filters_sorts_and_restarts_pagination(
    catalog_session: CatalogSession, remote: InMemoryDocumentStore
) -> None:
    _seed(remote, 10)
    await catalog_session.apply_view()
    catalog_session.next_page()

    page = await catalog_session.apply_view(
        FilterSpec(distance_range_id=DistanceRangeId.LONG), resolve_sort("distance_desc")
    )

    assert page.is_first
    distances = [record.metadata.total_distance for record in page.items]
    assert distances == [9000, 8000, 7000, 6000, 5000]
    assert page.total == 5
    assert not page.has_more
    assert catalog_session.sort.field is SortField.TOTAL_DISTANCE


@pytest.mark.asyncio
async def test_reset_clears_view_and_cache(
    catalog_session: CatalogSession, remote: InMemoryDocumentStore
) -> None:
    _seed(remote, 2)
    await catalog_session.apply_view(FilterSpec(query="t01"))

    catalog_session.reset()

    assert catalog_session.cache.entry is None
    assert catalog_session.filters == FilterSpec()
    assert catalog_session.window.total == 0
    page = await catalog_session.apply_view()
    assert page.total == 2
    assert len(remote.query_calls) == 2


@pytest.mark.asyncio
async def test_user_stats_are_empty_when_signed_out(catalog_session: CatalogSession) -> None:
    stats = await catalog_session.user_stats()

    assert stats.total_routes == 0
    assert stats.source is None
