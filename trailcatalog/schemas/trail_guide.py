"""Pydantic schemas describing trail guides and the views derived from them."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

# Warning attached to results served from the fallback source with no records.
EMPTY_CACHE_WARNING = "empty_cache"


class AccessibilityTier(str, Enum):
    """Coarse wheelchair accessibility classification of a guide."""

    FULLY = "fully"
    PARTIAL = "partial"
    NOT = "not"


class SurfaceBucket(str, Enum):
    """Canonical trail surface buckets offered by the surface filter."""

    PAVED = "paved"
    PACKED_GRAVEL = "packed_gravel"
    DIRT = "dirt"
    MIXED = "mixed"


class DistanceRangeId(str, Enum):
    """Named distance ranges offered by the distance filter."""

    ANY = "any"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    VERY_LONG = "very_long"


class SortField(str, Enum):
    GENERATED_AT = "generatedAt"
    TOTAL_DISTANCE = "totalDistance"
    NAME = "name"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class CatalogSource(str, Enum):
    """Which source satisfied a catalog query."""

    FRESH = "fresh"
    FALLBACK = "fallback"


class MutationState(str, Enum):
    """Lifecycle of an optimistic like/unlike mutation."""

    IDLE = "idle"
    OPTIMISTIC = "optimistic"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class _DocumentModel(BaseModel):
    """Shared configuration for models mirroring store documents."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AccessibilityInfo(_DocumentModel):
    """Free-text accessibility survey answers attached to a guide."""

    location: str | None = None
    wheelchair_access: str | None = Field(None, alias="wheelchairAccess")
    trail_surface: str | None = Field(None, alias="trailSurface")
    difficulty: str | None = None


class TrailMetadata(_DocumentModel):
    """Numeric summary of the recorded route."""

    total_distance: float | None = Field(
        None, alias="totalDistance", description="Route length in meters."
    )
    photo_count: int = Field(0, alias="photoCount")
    note_count: int = Field(0, alias="noteCount")
    location_count: int = Field(0, alias="locationCount")

    @field_validator("photo_count", "note_count", "location_count", mode="before")
    @classmethod
    def _missing_counts_are_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class CommunityInfo(_DocumentModel):
    """Social counters maintained by atomic increments on the store."""

    views: int = 0
    likes: int = 0
    liked_by: set[str] = Field(default_factory=set, alias="likedBy")

    @field_validator("views", "likes", mode="before")
    @classmethod
    def _missing_counters_are_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("liked_by", mode="before")
    @classmethod
    def _missing_likers_are_empty(cls, value: Any) -> Any:
        return set() if value is None else value


class TrailGuideRecord(_DocumentModel):
    """A single catalog record describing one documented route.

    The client holds one snapshot per fetch cycle. Only the like coordinator
    mutates ``community`` in place; every other consumer treats the record as
    read-only.
    """

    id: str
    route_name: str | None = Field(None, alias="routeName")
    description: str | None = None
    user_id: str | None = Field(None, alias="userId")
    user_email: str | None = Field(None, alias="userEmail")
    generated_at: datetime | None = Field(None, alias="generatedAt")
    is_public: bool = Field(False, alias="isPublic")
    accessibility: AccessibilityInfo = Field(default_factory=AccessibilityInfo)
    metadata: TrailMetadata = Field(default_factory=TrailMetadata)
    community: CommunityInfo = Field(default_factory=CommunityInfo)
    html_content: str | None = Field(None, alias="htmlContent")

    @field_validator("accessibility", "metadata", "community", mode="before")
    @classmethod
    def _missing_sections_are_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class FilterSpec(BaseModel):
    """Active filter selection; replaced wholesale on every user edit."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query: str = ""
    accessibility_tier: AccessibilityTier | None = Field(None, alias="accessibilityTier")
    distance_range_id: DistanceRangeId = Field(DistanceRangeId.ANY, alias="distanceRangeId")
    surface_id: SurfaceBucket | None = Field(None, alias="surfaceId")
    has_photos: bool = Field(False, alias="hasPhotos")

    def active_filter_count(self) -> int:
        """Number of filters that currently narrow the result list."""

        return sum(
            (
                bool(self.query),
                self.accessibility_tier is not None,
                self.distance_range_id is not DistanceRangeId.ANY,
                self.surface_id is not None,
                self.has_photos,
            )
        )

    def cleared(self) -> "FilterSpec":
        return FilterSpec()


class SortSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: SortField = SortField.GENERATED_AT
    direction: SortDirection = SortDirection.DESC


class CatalogCacheEntry(BaseModel):
    """Resolved catalog held by the session cache until invalidated."""

    records: list[TrailGuideRecord]
    source: CatalogSource
    fetched_at: datetime
    generation: int
    warning: str | None = None


class FetchResult(BaseModel):
    """Outcome of a fresh-then-fallback query."""

    records: list[TrailGuideRecord]
    source: CatalogSource
    warning: str | None = None

    @property
    def is_degraded(self) -> bool:
        return self.warning is not None


class CommunityStats(BaseModel):
    public_guides: int = 0
    total_km: int = 0
    accessible_trails: int = 0
    total_users: int = 0


class UserStats(BaseModel):
    total_routes: int = 0
    total_distance_km: float = 0.0
    source: CatalogSource | None = None
    warning: str | None = None


class PhaseReport(BaseModel):
    """Result of one phase in the session load sequence."""

    name: str
    succeeded: bool
    count: int = 0
    source: CatalogSource | None = None
    warning: str | None = None
    error_category: str | None = None
    error: str | None = None


class LoadReport(BaseModel):
    phases: list[PhaseReport] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_items(self) -> int:
        return sum(phase.count for phase in self.phases)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def offline_suspected(self) -> bool:
        """All phases came back empty and at least one was served degraded."""

        return self.total_items == 0 and any(phase.warning for phase in self.phases)


class CatalogPage(BaseModel):
    """One revealed batch of the active catalog view."""

    items: list[TrailGuideRecord]
    is_first: bool
    displayed_count: int
    total: int
    remaining: int
    warning: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_more(self) -> bool:
        return self.remaining > 0


class LikeOutcome(BaseModel):
    trail_id: str
    liked: bool
    likes: int | None
    state: MutationState


class ShareLink(BaseModel):
    url: str
    title: str
    text: str


__all__ = [
    "AccessibilityInfo",
    "AccessibilityTier",
    "CatalogCacheEntry",
    "CatalogPage",
    "CatalogSource",
    "CommunityInfo",
    "CommunityStats",
    "DistanceRangeId",
    "EMPTY_CACHE_WARNING",
    "FetchResult",
    "FilterSpec",
    "LikeOutcome",
    "LoadReport",
    "MutationState",
    "PhaseReport",
    "ShareLink",
    "SortDirection",
    "SortField",
    "SortSpec",
    "SurfaceBucket",
    "TrailGuideRecord",
    "TrailMetadata",
    "UserStats",
]
