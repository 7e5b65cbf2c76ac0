"""Document store boundary consumed by the catalog pipeline.

The remote store's transport and authentication are owned by the concrete
implementations; services only depend on :class:`DocumentStore` and describe
reads with :class:`StoreQuery` values so the same query can be replayed against
the fresh source and the local snapshot.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

Document = dict[str, Any]


@dataclass(frozen=True)
class FieldFilter:
    """Equality predicate on a dotted field path."""

    field_path: str
    value: Any


@dataclass(frozen=True)
class StoreQuery:
    collection: str
    filters: tuple[FieldFilter, ...] = field(default_factory=tuple)
    order_by: str | None = None
    descending: bool = False

    def cache_key(self) -> str:
        """Readable identifier of the query used in log messages."""

        parts = [self.collection]
        parts.extend(f"{item.field_path}={item.value!r}" for item in self.filters)
        if self.order_by:
            parts.append(f"order={self.order_by}:{'desc' if self.descending else 'asc'}")
        return "|".join(parts)


@runtime_checkable
class QuerySource(Protocol):
    """Anything that can answer a :class:`StoreQuery`."""

    async def run_query(self, query: StoreQuery) -> list[Document]:
        """Return every document matching ``query`` (each with an ``id`` key)."""


@runtime_checkable
class DocumentStore(QuerySource, Protocol):
    """Minimal surface of the remote document store."""

    async def get_document(self, collection: str, doc_id: str) -> Document | None:
        """Return a single document or ``None`` when it does not exist."""

    async def apply_transforms(
        self,
        collection: str,
        doc_id: str,
        *,
        increments: Mapping[str, int] | None = None,
        array_union: Mapping[str, Sequence[Any]] | None = None,
        array_remove: Mapping[str, Sequence[Any]] | None = None,
    ) -> None:
        """Apply server-side atomic transforms to an existing document."""


def public_guides_query(collection: str) -> StoreQuery:
    """All records where ``isPublic == true``."""

    return StoreQuery(collection=collection, filters=(FieldFilter("isPublic", True),))


def user_guides_query(collection: str, user_id: str) -> StoreQuery:
    """All records where ``userId == user_id`` ordered by ``generatedAt`` descending."""

    return StoreQuery(
        collection=collection,
        filters=(FieldFilter("userId", user_id),),
        order_by="generatedAt",
        descending=True,
    )


def resolve_field(document: Mapping[str, Any], field_path: str) -> Any:
    """Walk a dotted ``field_path`` through nested mappings."""

    current: Any = document
    for segment in field_path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
    return current


def matches(document: Mapping[str, Any], query: StoreQuery) -> bool:
    return all(resolve_field(document, item.field_path) == item.value for item in query.filters)


def _order_value(value: Any) -> tuple[int, Any]:
    # Missing values sort after present ones in ascending order.
    if value is None:
        return (1, 0)
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return (0, value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (0, value.timestamp())
    return (0, value)


def evaluate_query(documents: Sequence[Document], query: StoreQuery) -> list[Document]:
    """Apply ``query`` to already-loaded documents the way the store would."""

    selected = [document for document in documents if matches(document, query)]
    if query.order_by:
        present = [d for d in selected if resolve_field(d, query.order_by) is not None]
        missing = [d for d in selected if resolve_field(d, query.order_by) is None]
        present.sort(
            key=lambda d: _order_value(resolve_field(d, query.order_by or "")),
            reverse=query.descending,
        )
        selected = present + missing
    return selected


__all__ = [
    "Document",
    "DocumentStore",
    "FieldFilter",
    "QuerySource",
    "StoreQuery",
    "evaluate_query",
    "matches",
    "public_guides_query",
    "resolve_field",
    "user_guides_query",
]
