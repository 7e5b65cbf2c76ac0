"""FastAPI dependency wiring."""

from __future__ import annotations

from fastapi import Request

from trailcatalog.services.session import CatalogSession


def get_catalog_session(request: Request) -> CatalogSession:
    """Return the :class:`CatalogSession` created by the application lifespan."""

    session: CatalogSession | None = getattr(request.app.state, "catalog_session", None)
    if session is None:
        raise RuntimeError("Catalog session is not initialised; is the lifespan running?")
    return session


__all__ = ["get_catalog_session"]
