"""Pydantic schemas shared by the services and the HTTP surface."""

from trailcatalog.schemas.error import (  # noqa: F401
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from trailcatalog.schemas.trail_guide import (  # noqa: F401
    AccessibilityTier,
    CatalogCacheEntry,
    CatalogPage,
    CatalogSource,
    CommunityStats,
    DistanceRangeId,
    FetchResult,
    FilterSpec,
    LikeOutcome,
    LoadReport,
    MutationState,
    PhaseReport,
    ShareLink,
    SortDirection,
    SortField,
    SortSpec,
    SurfaceBucket,
    TrailGuideRecord,
    UserStats,
)
