"""Signed-in user endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from trailcatalog.dependencies import get_catalog_session
from trailcatalog.schemas.trail_guide import UserStats
from trailcatalog.services.session import CatalogSession

router = APIRouter()


class SignInRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    email: str | None = None


@router.post("/session/sign-in", status_code=status.HTTP_204_NO_CONTENT)
async def sign_in(
    payload: SignInRequest,
    session: CatalogSession = Depends(get_catalog_session),
) -> Response:
    """Set the acting user; authentication itself happens upstream."""

    session.sign_in(payload.user_id, payload.email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/session/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(session: CatalogSession = Depends(get_catalog_session)) -> Response:
    session.sign_out()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users/me/stats", response_model=UserStats)
async def get_user_stats(session: CatalogSession = Depends(get_catalog_session)) -> UserStats:
    """Route count and total distance for the signed-in user; zero when signed out."""

    return await session.user_stats()
