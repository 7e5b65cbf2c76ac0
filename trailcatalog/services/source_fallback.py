"""Fresh-then-fallback query execution."""

from __future__ import annotations

import asyncio
import dataclasses
import logging

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from trailcatalog.errors import TransientStoreError
from trailcatalog.schemas.trail_guide import (
    EMPTY_CACHE_WARNING,
    CatalogSource,
    FetchResult,
    TrailGuideRecord,
)
from trailcatalog.services.retry import RetryPolicy, RetryScheduler
from trailcatalog.stores.base import Document, QuerySource, StoreQuery
from trailcatalog.stores.snapshot import SnapshotDocumentStore

logger = logging.getLogger(__name__)


def to_records(documents: list[Document]) -> list[TrailGuideRecord]:
    """Validate raw documents, skipping any that do not describe a guide."""

    records: list[TrailGuideRecord] = []
    for document in documents:
        try:
            records.append(TrailGuideRecord.model_validate(document))
        except ValidationError as exc:
            logger.warning("Skipping malformed trail guide %s: %s", document.get("id"), exc)
    return records


class SourceFallbackFetch:
    """Answer a query from the fresh source, or from the snapshot when that fails.

    The fallback is a single alternate path inside one attempt. The retry
    scheduler wraps the whole fresh-then-fallback attempt and only re-runs it
    when both paths failed and the fresh failure is transient. ``policy.timeout``
    bounds each source read individually, so a stalled fresh read still leaves
    time for the snapshot.
    """

    def __init__(
        self,
        fresh: QuerySource,
        fallback: SnapshotDocumentStore,
        *,
        scheduler: RetryScheduler | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._fresh = fresh
        self._fallback = fallback
        self._scheduler = scheduler or RetryScheduler()
        self._policy = policy or RetryPolicy()

    async def _read(self, source: QuerySource, query: StoreQuery) -> list[Document]:
        timeout = self._policy.timeout
        if timeout is None:
            return await source.run_query(query)
        try:
            return await asyncio.wait_for(source.run_query(query), timeout)
        except asyncio.TimeoutError as exc:
            raise TransientStoreError(
                f"Read of {query.cache_key()} timed out after {timeout:g}s"
            ) from exc

    async def _write_through(self, query: StoreQuery, documents: list[Document]) -> None:
        try:
            await self._fallback.save(query, documents)
        except SQLAlchemyError as exc:
            logger.warning("Could not update local snapshot for %s: %s", query.cache_key(), exc)

    async def _attempt(self, query: StoreQuery) -> FetchResult:
        try:
            documents = await self._read(self._fresh, query)
        except Exception as fresh_error:
            logger.warning(
                "Fresh read failed for %s (%s); trying local snapshot",
                query.cache_key(),
                fresh_error,
            )
            try:
                documents = await self._read(self._fallback, query)
            except Exception as fallback_error:
                # The fresh error decides whether the attempt is retried.
                logger.warning(
                    "Local snapshot read failed for %s: %s", query.cache_key(), fallback_error
                )
                raise fresh_error from fallback_error

            warning = None if documents else EMPTY_CACHE_WARNING
            if warning:
                logger.warning("Local snapshot has no results for %s", query.cache_key())
            return FetchResult(
                records=to_records(documents), source=CatalogSource.FALLBACK, warning=warning
            )

        await self._write_through(query, documents)
        return FetchResult(records=to_records(documents), source=CatalogSource.FRESH)

    async def fetch(self, query: StoreQuery) -> FetchResult:
        # Per-read timeouts are applied in ``_read``; the attempt as a whole is
        # bounded by the caller's phase budget.
        policy = dataclasses.replace(self._policy, timeout=None)
        return await self._scheduler.run(
            lambda: self._attempt(query), policy, label=query.cache_key()
        )


__all__ = ["SourceFallbackFetch", "to_records"]
