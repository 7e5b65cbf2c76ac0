"""Shared fixtures for the catalog pipeline tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from trailcatalog.db.connection import create_engine, create_session_factory, init_db
from trailcatalog.services.retry import RetryPolicy, RetryScheduler
from trailcatalog.services.session import CatalogSession
from trailcatalog.storage import LocalStorage
from trailcatalog.stores.snapshot import SnapshotDocumentStore

from tests.catalog.support.in_memory_store import InMemoryDocumentStore, RecordingSleep


@pytest_asyncio.fixture
async def snapshot() -> AsyncIterator[SnapshotDocumentStore]:
    """Provide a snapshot store backed by an in-memory SQLite database."""
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield SnapshotDocumentStore(create_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def remote() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def scheduler(recording_sleep: RecordingSleep) -> RetryScheduler:
    return RetryScheduler(sleep=recording_sleep)


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, base_delay=1.0, timeout=1.0)


@pytest.fixture
def storage() -> LocalStorage:
    """Storage without Redis; values live in the in-process dictionary."""
    return LocalStorage(None)


@pytest_asyncio.fixture
async def catalog_session(
    remote: InMemoryDocumentStore,
    snapshot: SnapshotDocumentStore,
    storage: LocalStorage,
    scheduler: RetryScheduler,
    policy: RetryPolicy,
) -> AsyncIterator[CatalogSession]:
    session = CatalogSession(
        store=remote,
        snapshot=snapshot,
        storage=storage,
        collection=remote.collection,
        policy=policy,
        scheduler=scheduler,
        batch_size=6,
        phase_timeout=5.0,
        share_base_url="https://trails.example.org",
    )
    await session.init()
    yield session
    await session.close()
