"""Statistics derived from catalog records."""

from __future__ import annotations

from collections.abc import Sequence

from trailcatalog.schemas.trail_guide import (
    AccessibilityTier,
    CommunityStats,
    FetchResult,
    TrailGuideRecord,
    UserStats,
)
from trailcatalog.services.filtering import classify_tier


def community_stats(records: Sequence[TrailGuideRecord]) -> CommunityStats:
    """Counts shown on the landing page, computed from the public catalog."""

    total_meters = sum(record.metadata.total_distance or 0 for record in records)
    return CommunityStats(
        public_guides=len(records),
        total_km=round(total_meters / 1000),
        accessible_trails=sum(
            1 for record in records if classify_tier(record) is AccessibilityTier.FULLY
        ),
        total_users=len({record.user_id for record in records if record.user_id}),
    )


def user_stats(result: FetchResult) -> UserStats:
    total_meters = sum(record.metadata.total_distance or 0 for record in result.records)
    return UserStats(
        total_routes=len(result.records),
        total_distance_km=round(total_meters / 1000, 1),
        source=result.source,
        warning=result.warning,
    )


__all__ = ["community_stats", "user_stats"]
