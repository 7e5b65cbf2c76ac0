"""Pure filtering and sorting of catalog records.

Accessibility and surface filters classify free-text survey answers with fixed
substring tables. The tables are lossy: "assistance" counts as partial access
and blank or "unknown" answers count as not accessible.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from trailcatalog.schemas.trail_guide import (
    AccessibilityTier,
    DistanceRangeId,
    FilterSpec,
    SortDirection,
    SortField,
    SortSpec,
    SurfaceBucket,
    TrailGuideRecord,
)


@dataclass(frozen=True)
class DistanceRange:
    """Half-open ``[min_meters, max_meters)`` interval."""

    id: DistanceRangeId
    label: str
    min_meters: float
    max_meters: float

    def contains(self, distance: float) -> bool:
        return self.min_meters <= distance < self.max_meters


DISTANCE_RANGES: dict[DistanceRangeId, DistanceRange] = {
    DistanceRangeId.ANY: DistanceRange(DistanceRangeId.ANY, "Any Distance", 0, math.inf),
    DistanceRangeId.SHORT: DistanceRange(DistanceRangeId.SHORT, "Short (< 2km)", 0, 2000),
    DistanceRangeId.MEDIUM: DistanceRange(DistanceRangeId.MEDIUM, "Medium (2-5km)", 2000, 5000),
    DistanceRangeId.LONG: DistanceRange(DistanceRangeId.LONG, "Long (5-10km)", 5000, 10000),
    DistanceRangeId.VERY_LONG: DistanceRange(
        DistanceRangeId.VERY_LONG, "Very Long (> 10km)", 10000, math.inf
    ),
}


@dataclass(frozen=True)
class SortOption:
    id: str
    label: str
    spec: SortSpec


SORT_OPTIONS: dict[str, SortOption] = {
    option.id: option
    for option in (
        SortOption("newest", "Newest First", SortSpec(field=SortField.GENERATED_AT)),
        SortOption(
            "oldest",
            "Oldest First",
            SortSpec(field=SortField.GENERATED_AT, direction=SortDirection.ASC),
        ),
        SortOption(
            "distance_asc",
            "Shortest First",
            SortSpec(field=SortField.TOTAL_DISTANCE, direction=SortDirection.ASC),
        ),
        SortOption(
            "distance_desc",
            "Longest First",
            SortSpec(field=SortField.TOTAL_DISTANCE, direction=SortDirection.DESC),
        ),
        SortOption(
            "name_asc", "Name (A-Z)", SortSpec(field=SortField.NAME, direction=SortDirection.ASC)
        ),
        SortOption(
            "name_desc", "Name (Z-A)", SortSpec(field=SortField.NAME, direction=SortDirection.DESC)
        ),
    )
}
DEFAULT_SORT_ID = "newest"


def resolve_sort(sort_id: str | None) -> SortSpec:
    """Return the sort for a preset id; unknown ids fall back to newest first."""

    option = SORT_OPTIONS.get(sort_id or DEFAULT_SORT_ID, SORT_OPTIONS[DEFAULT_SORT_ID])
    return option.spec


# -- Accessibility ------------------------------------------------------------

_TIER_RULES: dict[AccessibilityTier, Callable[[str], bool]] = {
    AccessibilityTier.FULLY: lambda text: "fully" in text,
    AccessibilityTier.PARTIAL: lambda text: "partial" in text or "assistance" in text,
    AccessibilityTier.NOT: lambda text: "not accessible" in text or text in ("", "unknown"),
}


def _normalized(value: str | None) -> str:
    return (value or "").lower()


def matches_tier(record: TrailGuideRecord, tier: AccessibilityTier) -> bool:
    """Return whether the record's wheelchair answer falls in ``tier``."""

    return _TIER_RULES[tier](_normalized(record.accessibility.wheelchair_access))


def classify_tier(record: TrailGuideRecord) -> AccessibilityTier | None:
    """First tier whose rule matches, checked fully, partial, not."""

    text = _normalized(record.accessibility.wheelchair_access)
    for tier, rule in _TIER_RULES.items():
        if rule(text):
            return tier
    return None


# -- Surface ------------------------------------------------------------------

SURFACE_KEYWORDS: dict[SurfaceBucket, tuple[str, ...]] = {
    SurfaceBucket.PAVED: ("asphalt", "concrete", "wood"),
    SurfaceBucket.PACKED_GRAVEL: ("gravel", "stone"),
    SurfaceBucket.DIRT: ("grass", "dirt"),
    SurfaceBucket.MIXED: ("mixed",),
}


def matches_surface(record: TrailGuideRecord, bucket: SurfaceBucket) -> bool:
    text = _normalized(record.accessibility.trail_surface)
    return any(keyword in text for keyword in SURFACE_KEYWORDS[bucket])


def classify_surface(record: TrailGuideRecord) -> SurfaceBucket | None:
    for bucket in SURFACE_KEYWORDS:
        if matches_surface(record, bucket):
            return bucket
    return None


# -- Filtering ----------------------------------------------------------------


def _search_text(record: TrailGuideRecord) -> str:
    return " ".join(
        (
            record.route_name or "",
            record.description or "",
            record.accessibility.location or "",
            record.user_email or "",
        )
    ).lower()


def record_distance(record: TrailGuideRecord) -> float:
    return record.metadata.total_distance or 0


def passes(record: TrailGuideRecord, spec: FilterSpec) -> bool:
    """Return ``True`` when ``record`` satisfies every active filter in ``spec``."""

    if spec.query and spec.query.lower() not in _search_text(record):
        return False
    if spec.accessibility_tier is not None and not matches_tier(record, spec.accessibility_tier):
        return False
    if spec.distance_range_id is not DistanceRangeId.ANY:
        if not DISTANCE_RANGES[spec.distance_range_id].contains(record_distance(record)):
            return False
    if spec.surface_id is not None and not matches_surface(record, spec.surface_id):
        return False
    if spec.has_photos and record.metadata.photo_count <= 0:
        return False
    return True


def apply_filters(
    records: Sequence[TrailGuideRecord], spec: FilterSpec
) -> list[TrailGuideRecord]:
    return [record for record in records if passes(record, spec)]


# -- Sorting ------------------------------------------------------------------


def _epoch_ms(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp() * 1000


def sort_value(record: TrailGuideRecord, field: SortField) -> Any:
    """Comparable key for ``field``; ``None`` when the record has no value."""

    if field is SortField.GENERATED_AT:
        return _epoch_ms(record.generated_at) if record.generated_at else None
    if field is SortField.TOTAL_DISTANCE:
        return record.metadata.total_distance
    name = record.route_name
    return name.lower() if name else None


def apply_sort(records: Sequence[TrailGuideRecord], spec: SortSpec) -> list[TrailGuideRecord]:
    """Stable sort by ``spec``; records without a value always come last."""

    keyed = [(sort_value(record, spec.field), record) for record in records]
    present = [item for item in keyed if item[0] is not None]
    missing = [record for value, record in keyed if value is None]
    # sorted() is stable with reverse=True as well, so ties keep input order.
    present.sort(key=lambda item: item[0], reverse=spec.direction is SortDirection.DESC)
    return [record for _, record in present] + missing


def filter_and_sort(
    records: Sequence[TrailGuideRecord], filters: FilterSpec, sort: SortSpec
) -> list[TrailGuideRecord]:
    """Filter then sort without mutating ``records`` or the records themselves."""

    return apply_sort(apply_filters(records, filters), sort)


__all__ = [
    "DEFAULT_SORT_ID",
    "DISTANCE_RANGES",
    "DistanceRange",
    "SORT_OPTIONS",
    "SURFACE_KEYWORDS",
    "SortOption",
    "apply_filters",
    "apply_sort",
    "classify_surface",
    "classify_tier",
    "filter_and_sort",
    "matches_surface",
    "matches_tier",
    "passes",
    "record_distance",
    "resolve_sort",
    "sort_value",
]
