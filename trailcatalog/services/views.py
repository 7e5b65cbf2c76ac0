"""Opening a single guide and bumping its view counter."""

from __future__ import annotations

import logging

from trailcatalog.errors import CatalogError, DocumentNotFoundError, PrivateGuideError
from trailcatalog.schemas.trail_guide import TrailGuideRecord
from trailcatalog.stores.base import DocumentStore

logger = logging.getLogger(__name__)

VIEWS_FIELD = "community.views"


def can_view(record: TrailGuideRecord, viewer_id: str | None) -> bool:
    return record.is_public or (viewer_id is not None and viewer_id == record.user_id)


def counts_as_view(record: TrailGuideRecord, viewer_id: str | None) -> bool:
    """Authors reading their own guide and private guides are not counted."""

    return record.is_public and viewer_id != record.user_id


class GuideViewer:
    def __init__(self, store: DocumentStore, *, collection: str) -> None:
        self._store = store
        self._collection = collection

    async def open_guide(self, trail_id: str, viewer_id: str | None) -> TrailGuideRecord:
        document = await self._store.get_document(self._collection, trail_id)
        if document is None:
            raise DocumentNotFoundError("Trail guide not found", detail=trail_id)

        record = TrailGuideRecord.model_validate(document)
        if not can_view(record, viewer_id):
            raise PrivateGuideError("This trail guide is private", detail=trail_id)

        if counts_as_view(record, viewer_id):
            await self._bump_views(record)
        return record

    async def _bump_views(self, record: TrailGuideRecord) -> None:
        # Fire-and-forget semantics: a failed bump never blocks opening the guide.
        try:
            await self._store.apply_transforms(
                self._collection, record.id, increments={VIEWS_FIELD: 1}
            )
        except CatalogError as exc:
            logger.warning("Failed to increment view count for %s: %s", record.id, exc)
            return
        record.community.views += 1


__all__ = ["GuideViewer", "VIEWS_FIELD", "can_view", "counts_as_view"]
