"""Session-scoped orchestration of the catalog pipeline.

One :class:`CatalogSession` owns every piece of mutable client state: the
catalog cache, the pagination window of the active view, the liked-id set and
the signed-in user. Construct it explicitly and pass it to whatever needs it;
``init()`` loads persisted state and ``reset()`` returns it to a fresh load
cycle.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from trailcatalog.errors import CatalogError, DocumentNotFoundError, ErrorCategory, categorize
from trailcatalog.schemas.trail_guide import (
    CatalogCacheEntry,
    CatalogPage,
    CommunityStats,
    FilterSpec,
    LikeOutcome,
    LoadReport,
    PhaseReport,
    ShareLink,
    SortSpec,
    TrailGuideRecord,
    UserStats,
)
from trailcatalog.services import stats as stats_service
from trailcatalog.services.catalog_cache import CatalogCache
from trailcatalog.services.filtering import filter_and_sort
from trailcatalog.services.likes import LikeState, MutationCoordinator
from trailcatalog.services.pagination import Batch, PaginationWindow
from trailcatalog.services.retry import RetryPolicy, RetryScheduler
from trailcatalog.services.sharing import build_share_link
from trailcatalog.services.source_fallback import SourceFallbackFetch
from trailcatalog.services.views import GuideViewer
from trailcatalog.storage import LocalStorage
from trailcatalog.stores.base import DocumentStore, public_guides_query, user_guides_query
from trailcatalog.stores.snapshot import SnapshotDocumentStore

logger = logging.getLogger(__name__)

# Attached to catalog results served from the previous entry after a failed refresh.
LAST_GOOD_WARNING = "last_good"


class CatalogSession:
    def __init__(
        self,
        *,
        store: DocumentStore,
        snapshot: SnapshotDocumentStore,
        storage: LocalStorage,
        collection: str,
        policy: RetryPolicy | None = None,
        scheduler: RetryScheduler | None = None,
        batch_size: int = 6,
        phase_timeout: float = 15.0,
        share_base_url: str = "http://localhost:8000",
    ) -> None:
        self._store = store
        self._storage = storage
        self._phase_timeout = phase_timeout
        self._share_base_url = share_base_url
        self._collection = collection

        self._fetcher = SourceFallbackFetch(store, snapshot, scheduler=scheduler, policy=policy)
        self.cache = CatalogCache(self._fetcher, public_guides_query(collection))
        self.likes = LikeState(storage)
        self.mutations = MutationCoordinator(
            store=store, cache=self.cache, likes=self.likes, collection=collection
        )
        self.viewer = GuideViewer(store, collection=collection)
        self.window = PaginationWindow(batch_size=batch_size)

        self.filters = FilterSpec()
        self.sort = SortSpec()
        self.user_id: str | None = None
        self.user_email: str | None = None
        self._active_warning: str | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init(self) -> None:
        """Load persisted like state; safe to call more than once."""

        await self.likes.load()
        self._initialized = True
        logger.info("Catalog session initialised with %d liked trails", len(self.likes.liked_ids))

    def reset(self) -> None:
        """Start a new load cycle: drop the cached catalog and the active view."""

        self.cache.invalidate()
        self.window.reset([])
        self.filters = FilterSpec()
        self.sort = SortSpec()
        self._active_warning = None

    def sign_in(self, user_id: str, email: str | None = None) -> None:
        self.user_id = user_id
        self.user_email = email

    def sign_out(self) -> None:
        self.user_id = None
        self.user_email = None

    async def close(self) -> None:
        self.reset()
        await self._storage.close()

    # -- Catalog --------------------------------------------------------------

    async def get_catalog(self) -> CatalogCacheEntry:
        """Return the cached catalog, or the last good one if a refetch fails."""

        try:
            return await self.cache.get_entry()
        except CatalogError as exc:
            last_good = self.cache.last_good
            if last_good is None:
                raise
            logger.warning(
                "Catalog refresh failed (%s); serving %d records from the previous load",
                exc,
                len(last_good.records),
            )
            return last_good.model_copy(update={"warning": LAST_GOOD_WARNING})

    async def community_stats(self) -> CommunityStats:
        entry = await self.get_catalog()
        return stats_service.community_stats(entry.records)

    async def user_stats(self) -> UserStats:
        if not self.user_id:
            return UserStats()
        result = await self._fetcher.fetch(user_guides_query(self._collection, self.user_id))
        return stats_service.user_stats(result)

    def _page(self, batch: Batch) -> CatalogPage:
        return CatalogPage(
            items=batch.items,
            is_first=batch.is_first,
            displayed_count=self.window.displayed_count,
            total=self.window.total,
            remaining=self.window.remaining,
            warning=self._active_warning,
        )

    async def apply_view(
        self, filters: FilterSpec | None = None, sort: SortSpec | None = None
    ) -> CatalogPage:
        """Filter and sort the catalog, restart pagination and return the first batch."""

        if filters is not None:
            self.filters = filters
        if sort is not None:
            self.sort = sort

        entry = await self.get_catalog()
        self._active_warning = entry.warning
        self.window.reset(filter_and_sort(entry.records, self.filters, self.sort))
        return self._page(self.window.next_batch())

    def next_page(self) -> CatalogPage:
        return self._page(self.window.next_batch())

    async def refresh(self) -> CatalogPage:
        self.cache.invalidate()
        return await self.apply_view()

    # -- Load sequence --------------------------------------------------------

    async def _run_phase(
        self, name: str, phase: Callable[[], Awaitable[PhaseReport]]
    ) -> PhaseReport:
        try:
            return await asyncio.wait_for(phase(), self._phase_timeout)
        except asyncio.TimeoutError:
            logger.warning("Load phase %s exceeded %.0fs", name, self._phase_timeout)
            return PhaseReport(
                name=name,
                succeeded=False,
                error_category=ErrorCategory.TRANSIENT.value,
                error=f"Timed out after {self._phase_timeout:g}s",
            )
        except CatalogError as exc:
            logger.warning("Load phase %s failed: %s", name, exc)
            return PhaseReport(
                name=name,
                succeeded=False,
                error_category=categorize(exc).value,
                error=exc.message,
            )
        except Exception as exc:
            logger.exception("Load phase %s failed unexpectedly", name)
            return PhaseReport(
                name=name,
                succeeded=False,
                error_category=categorize(exc).value,
                error=str(exc),
            )

    async def _stats_phase(self) -> PhaseReport:
        entry = await self.get_catalog()
        return PhaseReport(
            name="stats",
            succeeded=True,
            count=stats_service.community_stats(entry.records).public_guides,
            source=entry.source,
            warning=entry.warning,
        )

    async def _catalog_phase(self) -> PhaseReport:
        page = await self.apply_view()
        return PhaseReport(
            name="catalog",
            succeeded=True,
            count=page.total,
            source=self.cache.entry.source if self.cache.entry else None,
            warning=page.warning,
        )

    async def _user_phase(self) -> PhaseReport:
        stats = await self.user_stats()
        return PhaseReport(
            name="user",
            succeeded=True,
            count=stats.total_routes,
            source=stats.source,
            warning=stats.warning,
        )

    async def load(self) -> LoadReport:
        """Run stats, catalog and per-user phases one after another.

        The catalog phase reuses the entry fetched by the stats phase, so a
        load cycle issues a single public catalog query.
        """

        report = LoadReport()
        for name, phase in (
            ("stats", self._stats_phase),
            ("catalog", self._catalog_phase),
            ("user", self._user_phase),
        ):
            report.phases.append(await self._run_phase(name, phase))

        if report.offline_suspected:
            logger.warning("Unable to load data. Check your connection.")
        return report

    # -- Guides ---------------------------------------------------------------

    async def toggle_like(self, trail_id: str) -> LikeOutcome:
        return await self.mutations.toggle_like(trail_id, self.user_id)

    async def open_guide(self, trail_id: str) -> TrailGuideRecord:
        return await self.viewer.open_guide(trail_id, self.user_id)

    async def share_link(self, trail_id: str) -> ShareLink:
        record = self.cache.find(trail_id)
        if record is None:
            document = await self._store.get_document(self._collection, trail_id)
            if document is None:
                raise DocumentNotFoundError("Trail guide not found", detail=trail_id)
            record = TrailGuideRecord.model_validate(document)
        return build_share_link(record, self._share_base_url)


__all__ = ["CatalogSession", "LAST_GOOD_WARNING"]
