"""Catalog browsing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from trailcatalog.dependencies import get_catalog_session
from trailcatalog.schemas.trail_guide import (
    AccessibilityTier,
    CatalogPage,
    CommunityStats,
    DistanceRangeId,
    FilterSpec,
    LoadReport,
    SurfaceBucket,
)
from trailcatalog.services.filtering import DEFAULT_SORT_ID, resolve_sort
from trailcatalog.services.session import CatalogSession

router = APIRouter()


@router.get("/stats", response_model=CommunityStats)
async def get_community_stats(
    session: CatalogSession = Depends(get_catalog_session),
) -> CommunityStats:
    """Community statistics computed from the shared catalog fetch."""

    return await session.community_stats()


@router.get("", response_model=CatalogPage)
async def browse_catalog(
    q: str = Query("", description="Case-insensitive text search"),
    accessibility: AccessibilityTier | None = Query(None),
    distance: DistanceRangeId = Query(DistanceRangeId.ANY),
    surface: SurfaceBucket | None = Query(None),
    has_photos: bool = Query(False),
    sort: str = Query(DEFAULT_SORT_ID, description="Preset sort id, e.g. distance_asc"),
    session: CatalogSession = Depends(get_catalog_session),
) -> CatalogPage:
    """Apply a filter and sort, restart pagination and return the first batch."""

    filters = FilterSpec(
        query=q,
        accessibility_tier=accessibility,
        distance_range_id=distance,
        surface_id=surface,
        has_photos=has_photos,
    )
    return await session.apply_view(filters, resolve_sort(sort))


@router.get("/next", response_model=CatalogPage)
async def next_batch(session: CatalogSession = Depends(get_catalog_session)) -> CatalogPage:
    return session.next_page()


@router.post("/refresh", response_model=CatalogPage)
async def refresh_catalog(
    session: CatalogSession = Depends(get_catalog_session),
) -> CatalogPage:
    """Invalidate the cached catalog and reload the active view."""

    return await session.refresh()


@router.get("/load", response_model=LoadReport)
async def load_catalog(session: CatalogSession = Depends(get_catalog_session)) -> LoadReport:
    return await session.load()
