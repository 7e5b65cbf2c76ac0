"""Categorized errors raised by the catalog pipeline.

Every error that crosses the boundary towards the presentation layer carries an
:class:`ErrorCategory` so the HTTP surface (or any other consumer) can decide
how to render it without inspecting exception types one by one.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from trailcatalog.schemas.trail_guide import MutationState

# Fragments that historically identified retryable document store failures when
# only an error message was available.
_TRANSIENT_MESSAGE_MARKERS: tuple[str, ...] = ("target id", "unavailable", "timeout")


class ErrorCategory(str, Enum):
    """Coarse buckets used to decide retry and rendering behaviour."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    NOT_FOUND = "not_found"
    AUTHENTICATION = "authentication"
    ROLLBACK = "rollback"


class CatalogError(Exception):
    """Base class for every failure surfaced by :mod:`trailcatalog`."""

    category: ErrorCategory = ErrorCategory.PERMANENT

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class TransientStoreError(CatalogError):
    """Timeout, ``unavailable`` or target-conflict responses from the store."""

    category = ErrorCategory.TRANSIENT


class PermanentStoreError(CatalogError):
    """Permission denied, malformed query and other non-retryable failures."""

    category = ErrorCategory.PERMANENT


class DocumentNotFoundError(PermanentStoreError):
    """The requested document does not exist in the store."""

    category = ErrorCategory.NOT_FOUND


class PrivateGuideError(PermanentStoreError):
    """The guide is private and the viewer is not its author."""


class AuthenticationRequiredError(CatalogError):
    """A social action was attempted without a signed-in user."""

    category = ErrorCategory.AUTHENTICATION


class LikeRollbackError(CatalogError):
    """Storing a like toggle failed and the optimistic change was reverted."""

    category = ErrorCategory.ROLLBACK

    def __init__(
        self,
        trail_id: str,
        *,
        state: MutationState = MutationState.ROLLED_BACK,
        detail: str | None = None,
    ) -> None:
        super().__init__("Failed to update like. Please try again.", detail=detail)
        self.trail_id = trail_id
        self.state = state


def is_transient(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` should be retried with backoff.

    Typed store errors decide for themselves; timeouts are always transient.
    Untyped exceptions fall back to the message heuristics the store has
    always produced for target conflicts and outages.
    """

    if isinstance(exc, CatalogError):
        return exc.category is ErrorCategory.TRANSIENT
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _TRANSIENT_MESSAGE_MARKERS)


def categorize(exc: BaseException) -> ErrorCategory:
    """Map any exception onto an :class:`ErrorCategory`."""

    if isinstance(exc, CatalogError):
        return exc.category
    if is_transient(exc):
        return ErrorCategory.TRANSIENT
    return ErrorCategory.PERMANENT


__all__ = [
    "AuthenticationRequiredError",
    "CatalogError",
    "DocumentNotFoundError",
    "ErrorCategory",
    "LikeRollbackError",
    "PermanentStoreError",
    "PrivateGuideError",
    "TransientStoreError",
    "categorize",
    "is_transient",
]
