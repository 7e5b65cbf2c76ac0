"""In-memory document store used to drive the catalog pipeline in tests."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from trailcatalog.stores.base import Document, StoreQuery, evaluate_query


def make_guide(guide_id: str, **overrides: Any) -> Document:
    """Return a public guide document with sensible defaults.

    Nested sections can be overridden partially, e.g.
    ``make_guide("a", metadata={"totalDistance": 1200})``.
    """

    document: Document = {
        "id": guide_id,
        "routeName": f"Route {guide_id}",
        "description": "",
        "userId": "author-1",
        "userEmail": "author@example.com",
        "generatedAt": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "isPublic": True,
        "accessibility": {
            "location": "Somewhere",
            "wheelchairAccess": "Fully accessible",
            "trailSurface": "Asphalt",
            "difficulty": "Easy",
        },
        "metadata": {"totalDistance": 1000, "photoCount": 0, "noteCount": 0, "locationCount": 10},
        "community": {"views": 0, "likes": 0, "likedBy": []},
    }
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(document.get(key), dict):
            document[key] = {**document[key], **value}
        else:
            document[key] = value
    return document


def _set_path(document: dict[str, Any], path: str, update: Any) -> None:
    parts = path.split(".")
    target = document
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = update(target.get(parts[-1]))


class InMemoryDocumentStore:
    """Document store double recording every call.

    ``failures`` are raised by successive ``run_query`` calls before any data is
    returned. ``call_gates`` hold one event per upcoming ``run_query`` call so a
    test can decide when each in-flight query completes.
    """

    def __init__(self, collection: str = "trail_guides", documents: Sequence[Document] = ()) -> None:
        self.collection = collection
        self.collections: dict[str, dict[str, Document]] = {collection: {}}
        for document in documents:
            self.add(document)
        self.query_calls: list[StoreQuery] = []
        self.get_calls: list[str] = []
        self.transform_calls: list[dict[str, Any]] = []
        self.failures: list[BaseException] = []
        self.call_gates: list[asyncio.Event] = []
        self.transform_error: BaseException | None = None

    def add(self, document: Document, collection: str | None = None) -> None:
        stored = copy.deepcopy(document)
        doc_id = stored.pop("id")
        self.collections.setdefault(collection or self.collection, {})[doc_id] = stored

    def document(self, doc_id: str, collection: str | None = None) -> Document:
        return self.collections[collection or self.collection][doc_id]

    async def run_query(self, query: StoreQuery) -> list[Document]:
        self.query_calls.append(query)
        if self.call_gates:
            await self.call_gates.pop(0).wait()
        if self.failures:
            raise self.failures.pop(0)
        documents = [
            dict(copy.deepcopy(payload), id=doc_id)
            for doc_id, payload in self.collections.get(query.collection, {}).items()
        ]
        return evaluate_query(documents, query)

    async def get_document(self, collection: str, doc_id: str) -> Document | None:
        self.get_calls.append(doc_id)
        payload = self.collections.get(collection, {}).get(doc_id)
        if payload is None:
            return None
        return dict(copy.deepcopy(payload), id=doc_id)

    async def apply_transforms(
        self,
        collection: str,
        doc_id: str,
        *,
        increments: Mapping[str, int] | None = None,
        array_union: Mapping[str, Sequence[Any]] | None = None,
        array_remove: Mapping[str, Sequence[Any]] | None = None,
    ) -> None:
        self.transform_calls.append(
            {
                "collection": collection,
                "doc_id": doc_id,
                "increments": dict(increments or {}),
                "array_union": {k: list(v) for k, v in (array_union or {}).items()},
                "array_remove": {k: list(v) for k, v in (array_remove or {}).items()},
            }
        )
        if self.transform_error is not None:
            raise self.transform_error

        document = self.collections[collection][doc_id]
        for path, amount in (increments or {}).items():
            _set_path(document, path, lambda current, amount=amount: (current or 0) + amount)
        for path, values in (array_union or {}).items():
            _set_path(
                document,
                path,
                lambda current, values=values: list(current or [])
                + [v for v in values if v not in (current or [])],
            )
        for path, values in (array_remove or {}).items():
            _set_path(
                document,
                path,
                lambda current, values=values: [v for v in (current or []) if v not in values],
            )


class FailingSnapshot:
    """Snapshot stand-in whose reads always fail."""

    def __init__(self, error: BaseException) -> None:
        self.error = error
        self.saved: list[tuple[StoreQuery, list[Document]]] = []

    async def run_query(self, query: StoreQuery) -> list[Document]:
        raise self.error

    async def save(self, query: StoreQuery, documents: Sequence[Document]) -> None:
        self.saved.append((query, list(documents)))


class RecordingSleep:
    """Replacement for :func:`asyncio.sleep` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


__all__ = ["FailingSnapshot", "InMemoryDocumentStore", "RecordingSleep", "make_guide"]
