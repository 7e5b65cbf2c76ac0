"""Incremental reveal of a filtered catalog view."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from trailcatalog.schemas.trail_guide import TrailGuideRecord


@dataclass(frozen=True)
class Batch:
    items: list[TrailGuideRecord]
    is_first: bool


class PaginationWindow:
    """Cursor revealing ``batch_size`` records at a time.

    ``displayed_count`` only grows until :meth:`reset`, and never exceeds the
    length of the base list. Call :meth:`reset` with the new list whenever the
    filter or sort changes.
    """

    def __init__(
        self, base_list: Sequence[TrailGuideRecord] = (), *, batch_size: int = 6
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.batch_size = batch_size
        self._base_list: list[TrailGuideRecord] = list(base_list)
        self._displayed_count = 0

    @property
    def displayed_count(self) -> int:
        return self._displayed_count

    @property
    def total(self) -> int:
        return len(self._base_list)

    @property
    def remaining(self) -> int:
        return self.total - self._displayed_count

    @property
    def has_more(self) -> bool:
        return self.remaining > 0

    def reset(self, base_list: Sequence[TrailGuideRecord] | None = None) -> None:
        if base_list is not None:
            self._base_list = list(base_list)
        self._displayed_count = 0

    def next_batch(self) -> Batch:
        """Reveal the next slice; at the end this returns nothing and changes nothing."""

        start = self._displayed_count
        end = min(start + self.batch_size, self.total)
        items = self._base_list[start:end]
        self._displayed_count = end
        return Batch(items=items, is_first=start == 0)


__all__ = ["Batch", "PaginationWindow"]
