"""Optimistic like/unlike with rollback.

Workflow of :meth:`MutationCoordinator.toggle_like`:
* optimistic phase: flip the local liked-id set and adjust the cached record's
  ``community.likes``/``likedBy`` synchronously, before any I/O;
* remote phase: one atomic write: increment ``community.likes`` by the signed
  delta and add or remove the user id in ``community.likedBy``;
* commit or rollback: keep the optimistic state on success, otherwise restore
  the record and the liked-id set and raise :class:`LikeRollbackError`.

Toggles of the same trail are not serialized. A second toggle issued while the
first is still writing builds on the first one's optimistic state, and a rollback
of the first restores the state captured before it started.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from trailcatalog.errors import AuthenticationRequiredError, LikeRollbackError
from trailcatalog.schemas.trail_guide import LikeOutcome, MutationState, TrailGuideRecord
from trailcatalog.services.catalog_cache import CatalogCache
from trailcatalog.storage import LIKED_TRAILS_KEY, LocalStorage
from trailcatalog.stores.base import DocumentStore

logger = logging.getLogger(__name__)

LIKES_FIELD = "community.likes"
LIKED_BY_FIELD = "community.likedBy"


@dataclass(eq=False)
class PendingLike:
    """One in-flight toggle; compared by identity so overlapping toggles never clash."""

    delta: int


class LikeState:
    """Persisted set of liked trail ids plus the toggles still awaiting the store."""

    def __init__(self, storage: LocalStorage) -> None:
        self._storage = storage
        self._liked: set[str] = set()
        self.pending: dict[str, PendingLike] = {}

    async def load(self) -> None:
        stored = await self._storage.get_json(LIKED_TRAILS_KEY)
        self._liked = {str(item) for item in stored} if isinstance(stored, list) else set()

    async def persist(self) -> None:
        await self._storage.set_json(LIKED_TRAILS_KEY, sorted(self._liked))

    def is_liked(self, trail_id: str) -> bool:
        return trail_id in self._liked

    def set_liked(self, trail_id: str, liked: bool) -> None:
        if liked:
            self._liked.add(trail_id)
        else:
            self._liked.discard(trail_id)

    @property
    def liked_ids(self) -> frozenset[str]:
        return frozenset(self._liked)

    def begin(self, trail_id: str, delta: int) -> PendingLike:
        mutation = PendingLike(delta)
        self.pending[trail_id] = mutation
        return mutation

    def finish(self, trail_id: str, mutation: PendingLike) -> None:
        """Forget ``mutation`` unless a newer toggle of the same trail replaced it."""

        if self.pending.get(trail_id) is mutation:
            del self.pending[trail_id]

    def mutation_state(self, trail_id: str) -> MutationState:
        return MutationState.OPTIMISTIC if trail_id in self.pending else MutationState.IDLE


@dataclass
class _Snapshot:
    liked: bool
    likes: int | None
    user_in_liked_by: bool


class MutationCoordinator:
    """Apply like toggles to the cached catalog and the remote store."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        cache: CatalogCache,
        likes: LikeState,
        collection: str,
    ) -> None:
        self._store = store
        self._cache = cache
        self._likes = likes
        self._collection = collection

    def _apply_optimistic(
        self, trail_id: str, user_id: str, record: TrailGuideRecord | None, delta: int
    ) -> _Snapshot:
        snapshot = _Snapshot(
            liked=self._likes.is_liked(trail_id),
            likes=record.community.likes if record else None,
            user_in_liked_by=bool(record and user_id in record.community.liked_by),
        )
        self._likes.set_liked(trail_id, delta > 0)
        if record is not None:
            record.community.likes = max(0, record.community.likes + delta)
            if delta > 0:
                record.community.liked_by.add(user_id)
            else:
                record.community.liked_by.discard(user_id)
        return snapshot

    def _rollback(
        self, trail_id: str, user_id: str, record: TrailGuideRecord | None, snapshot: _Snapshot
    ) -> None:
        self._likes.set_liked(trail_id, snapshot.liked)
        if record is not None and snapshot.likes is not None:
            record.community.likes = snapshot.likes
            if snapshot.user_in_liked_by:
                record.community.liked_by.add(user_id)
            else:
                record.community.liked_by.discard(user_id)

    async def _write(self, trail_id: str, user_id: str, delta: int) -> None:
        await self._likes.persist()
        membership = {LIKED_BY_FIELD: [user_id]}
        await self._store.apply_transforms(
            self._collection,
            trail_id,
            increments={LIKES_FIELD: delta},
            array_union=membership if delta > 0 else None,
            array_remove=membership if delta < 0 else None,
        )

    async def toggle_like(self, trail_id: str, user_id: str | None) -> LikeOutcome:
        if not user_id:
            raise AuthenticationRequiredError("Please sign in to like trails")

        delta = -1 if self._likes.is_liked(trail_id) else 1
        record = self._cache.find(trail_id)
        snapshot = self._apply_optimistic(trail_id, user_id, record, delta)
        mutation = self._likes.begin(trail_id, delta)

        try:
            await self._write(trail_id, user_id, delta)
        except Exception as exc:
            self._rollback(trail_id, user_id, record, snapshot)
            self._likes.finish(trail_id, mutation)
            try:
                await self._likes.persist()
            except Exception as persist_error:
                logger.warning(
                    "Could not store liked trails after rollback of %s: %s",
                    trail_id,
                    persist_error,
                )
            logger.warning("Like update for %s rolled back: %s", trail_id, exc)
            raise LikeRollbackError(
                trail_id, state=MutationState.ROLLED_BACK, detail=str(exc)
            ) from exc

        self._likes.finish(trail_id, mutation)
        logger.info("Like update for %s committed (delta %+d)", trail_id, delta)
        return LikeOutcome(
            trail_id=trail_id,
            liked=delta > 0,
            likes=record.community.likes if record else None,
            state=MutationState.COMMITTED,
        )


__all__ = ["LIKED_BY_FIELD", "LIKES_FIELD", "LikeState", "MutationCoordinator", "PendingLike"]
