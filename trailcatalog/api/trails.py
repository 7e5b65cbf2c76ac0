"""Single trail guide endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from trailcatalog.dependencies import get_catalog_session
from trailcatalog.schemas.trail_guide import LikeOutcome, ShareLink, TrailGuideRecord
from trailcatalog.services.session import CatalogSession

router = APIRouter()


@router.get("/{trail_id}", response_model=TrailGuideRecord)
async def open_trail(
    trail_id: str,
    session: CatalogSession = Depends(get_catalog_session),
) -> TrailGuideRecord:
    """Return a guide the caller may view, counting the view when it applies."""

    return await session.open_guide(trail_id)


@router.post("/{trail_id}/like", response_model=LikeOutcome)
async def toggle_like(
    trail_id: str,
    session: CatalogSession = Depends(get_catalog_session),
) -> LikeOutcome:
    return await session.toggle_like(trail_id)


@router.get("/{trail_id}/share", response_model=ShareLink)
async def share_trail(
    trail_id: str,
    session: CatalogSession = Depends(get_catalog_session),
) -> ShareLink:
    return await session.share_link(trail_id)
