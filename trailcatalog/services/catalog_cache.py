"""Session-scoped single-flight cache of the public catalog."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from trailcatalog.schemas.trail_guide import CatalogCacheEntry, TrailGuideRecord
from trailcatalog.services.source_fallback import SourceFallbackFetch
from trailcatalog.stores.base import StoreQuery

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogCache:
    """Share one catalog fetch between every consumer of a load cycle.

    The first caller starts the fetch; callers arriving before it resolves await
    the same task. The resolved entry is kept until :meth:`invalidate`. Each
    fetch is stamped with a generation number and a fetch that resolves after
    an invalidation is discarded instead of overwriting newer state.
    """

    def __init__(
        self,
        fetcher: SourceFallbackFetch,
        query: StoreQuery,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._fetcher = fetcher
        self._query = query
        self._clock = clock
        self._entry: CatalogCacheEntry | None = None
        self._last_good: CatalogCacheEntry | None = None
        self._inflight: asyncio.Task[CatalogCacheEntry] | None = None
        self._generation = 0

    @property
    def entry(self) -> CatalogCacheEntry | None:
        return self._entry

    @property
    def last_good(self) -> CatalogCacheEntry | None:
        """Entry that was current before the most recent invalidation."""

        return self._last_good

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_loading(self) -> bool:
        return self._inflight is not None

    async def _load(self, generation: int) -> CatalogCacheEntry:
        try:
            result = await self._fetcher.fetch(self._query)
        finally:
            if self._generation == generation:
                self._inflight = None

        entry = CatalogCacheEntry(
            records=result.records,
            source=result.source,
            fetched_at=self._clock(),
            generation=generation,
            warning=result.warning,
        )
        if generation != self._generation:
            logger.info(
                "Discarding catalog fetch generation %d; cache is at generation %d",
                generation,
                self._generation,
            )
            return entry

        self._entry = entry
        logger.info(
            "Catalog cached: %d records from %s source (generation %d)",
            len(entry.records),
            entry.source.value,
            generation,
        )
        return entry

    async def get_entry(self) -> CatalogCacheEntry:
        if self._entry is not None:
            return self._entry

        if self._inflight is None:
            self._generation += 1
            self._inflight = asyncio.ensure_future(self._load(self._generation))

        # Shielded so one caller timing out does not cancel the fetch the other
        # callers are waiting on.
        return await asyncio.shield(self._inflight)

    async def get_catalog(self) -> list[TrailGuideRecord]:
        entry = await self.get_entry()
        return entry.records

    def invalidate(self) -> None:
        """Drop the cached entry; the next request starts a new fetch."""

        if self._entry is not None:
            self._last_good = self._entry
        self._entry = None
        if self._inflight is not None:
            # The running fetch keeps going but will not be applied.
            self._generation += 1
            self._inflight = None

    def find(self, trail_id: str) -> TrailGuideRecord | None:
        """Return the record with ``trail_id`` from the catalog currently on display.

        After a failed refresh that is the last good entry.
        """

        entry = self._entry or self._last_good
        if entry is None:
            return None
        for record in entry.records:
            if record.id == trail_id:
                return record
        return None


__all__ = ["CatalogCache"]
