"""Local snapshot of previously fetched documents.

This is the "locally cached" source consulted when a fresh read fails. Every
successful fresh read is written through so the snapshot reflects the last
result the store produced for each query.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trailcatalog.db.connection import session_scope
from trailcatalog.db.models import CachedDocument
from trailcatalog.stores.base import Document, StoreQuery, evaluate_query, matches

logger = logging.getLogger(__name__)


def to_json_safe(value: Any) -> Any:
    """Convert store values into something the JSON column can persist."""

    if isinstance(value, Mapping):
        return {str(key): to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(to_json_safe(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [to_json_safe(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class SnapshotDocumentStore:
    """Answer :class:`StoreQuery` reads from the SQLAlchemy-backed snapshot."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _load_collection(self, session: AsyncSession, collection: str) -> list[Document]:
        rows = await session.scalars(
            select(CachedDocument).where(CachedDocument.collection == collection)
        )
        return [dict(row.payload, id=row.document_id) for row in rows]

    async def run_query(self, query: StoreQuery) -> list[Document]:
        """Evaluate ``query`` against the snapshot; an empty snapshot yields ``[]``."""

        async with session_scope(self._session_factory) as session:
            documents = await self._load_collection(session, query.collection)
        return evaluate_query(documents, query)

    async def save(self, query: StoreQuery, documents: Sequence[Document]) -> None:
        """Replace the snapshot's answer to ``query`` with ``documents``.

        Documents that previously matched ``query`` but are missing from the
        fresh result were deleted or unpublished upstream, so they are dropped.
        """

        fresh_ids = {str(document["id"]) for document in documents}
        async with session_scope(self._session_factory) as session:
            existing = await self._load_collection(session, query.collection)
            stale_ids = [
                document["id"]
                for document in existing
                if matches(document, query) and document["id"] not in fresh_ids
            ]
            if stale_ids:
                await session.execute(
                    delete(CachedDocument).where(
                        CachedDocument.collection == query.collection,
                        CachedDocument.document_id.in_(stale_ids),
                    )
                )

            for document in documents:
                payload = to_json_safe({k: v for k, v in document.items() if k != "id"})
                await session.merge(
                    CachedDocument(
                        collection=query.collection,
                        document_id=str(document["id"]),
                        payload=payload,
                    )
                )

        logger.debug(
            "Snapshot updated for %s: %d documents, %d removed",
            query.cache_key(),
            len(documents),
            len(stale_ids),
        )


__all__ = ["SnapshotDocumentStore", "to_json_safe"]
