"""SQLAlchemy ORM models for the local catalog snapshot.

The snapshot mirrors the documents last returned by the remote store so a
query can still be answered when the store is unreachable. Payloads are kept
verbatim as JSON; query evaluation happens in Python against the decoded
documents.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class CachedDocument(Base):
    """A document copied from the remote store by a successful fresh read."""

    __tablename__ = "cached_documents"

    collection: Mapped[str] = mapped_column(String(255), primary_key=True)
    document_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
