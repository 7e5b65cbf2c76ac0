import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from trailcatalog.db.connection import create_engine, create_session_factory, init_db
from trailcatalog.errors import CatalogError, ErrorCategory, PrivateGuideError
from trailcatalog.services.retry import RetryPolicy
from trailcatalog.services.session import CatalogSession
from trailcatalog.settings import AppSettings, get_settings
from trailcatalog.storage import LocalStorage
from trailcatalog.stores.firestore import FirestoreDocumentStore
from trailcatalog.stores.snapshot import SnapshotDocumentStore

from .api import catalog, session, trails
from .schemas.error import ErrorType, ValidationErrorDetail
from .utils.error_responses import (
    CATEGORY_RESPONSES,
    build_error_response,
    build_validation_error_response,
)

logger = logging.getLogger(__name__)


def configure_logging(settings: AppSettings) -> None:
    logging.basicConfig(
        level=settings.log_level_numeric,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _validate_environment(settings: AppSettings) -> None:
    """Log warnings for missing optional configuration."""

    warnings = settings.optional_config_warnings()
    if warnings:
        logger.warning("=" * 60)
        logger.warning("Environment Configuration Warnings:")
        for warning in warnings:
            logger.warning("  • %s", warning)
        logger.warning("=" * 60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the catalog session on startup and release its resources on shutdown."""

    settings: AppSettings = app.state.settings
    _validate_environment(settings)

    if app.state.catalog_session is not None:
        # Injected by the caller, who also owns its resources.
        await app.state.catalog_session.init()
        yield
        return

    engine = create_engine(settings.snapshot_database_url)
    await init_db(engine)
    client = httpx.AsyncClient()
    storage = LocalStorage(
        settings.redis_url, retry_backoff_seconds=settings.redis_retry_backoff_seconds
    )
    store = FirestoreDocumentStore(
        client,
        base_url=settings.store_base_url,
        project_id=settings.store_project_id or "unset-project",
        database=settings.store_database,
        api_key=settings.store_api_key,
        timeout=settings.catalog_timeout_seconds,
    )
    catalog_session = CatalogSession(
        store=store,
        snapshot=SnapshotDocumentStore(create_session_factory(engine)),
        storage=storage,
        collection=settings.guides_collection,
        policy=RetryPolicy(
            max_retries=settings.max_retries,
            base_delay=settings.base_delay_seconds,
            timeout=settings.catalog_timeout_seconds,
        ),
        batch_size=settings.batch_size,
        phase_timeout=settings.phase_timeout_seconds,
        share_base_url=settings.share_base_url,
    )
    await catalog_session.init()
    app.state.catalog_session = catalog_session
    logger.info("Trail catalog API started for collection %s", settings.guides_collection)

    try:
        yield
    finally:
        logger.info("Shutting down trail catalog API")
        await catalog_session.close()
        await client.aclose()
        await engine.dispose()
        app.state.catalog_session = None


async def catalog_exception_handler(request: Request, exc: CatalogError) -> JSONResponse:
    """Render categorized pipeline errors."""

    category = exc.category
    error_type, status_code, retry_after = CATEGORY_RESPONSES[category]
    if isinstance(exc, PrivateGuideError):
        status_code = status.HTTP_403_FORBIDDEN

    log = logger.warning if category is ErrorCategory.TRANSIENT else logger.info
    log("%s error for %s: %s", category.value, request.url.path, exc.message)

    error_response = build_error_response(
        error_type=error_type,
        message=exc.message,
        detail=exc.detail,
        status_code=status_code,
        path=str(request.url.path),
        retry_after=retry_after,
    )
    return JSONResponse(status_code=status_code, content=error_response.model_dump(mode="json"))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI request validation errors."""
    errors = [
        ValidationErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input"),
        )
        for error in exc.errors()
    ]

    logger.warning(
        "Validation error for request to %s: %s errors", request.url.path, len(errors)
    )

    error_response = build_validation_error_response(
        message="Request validation failed",
        detail=f"{len(errors)} validation error(s)",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        path=str(request.url.path),
        errors=errors,
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.model_dump(mode="json"),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.exception(
        "Unhandled exception for request to %s: %s", request.url.path, type(exc).__name__
    )

    error_response = build_error_response(
        error_type=ErrorType.INTERNAL_ERROR,
        message="Internal server error",
        detail=f"An unexpected error occurred: {type(exc).__name__}",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        path=str(request.url.path),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json"),
    )


def create_app(
    settings: AppSettings | None = None,
    *,
    catalog_session: CatalogSession | None = None,
) -> FastAPI:
    """Build the API. Pass ``catalog_session`` to serve an already wired session."""

    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Trail Catalog API",
        version="0.1.0",
        description="Browse, search, like and share accessible trail guides.",
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.catalog_session = catalog_session

    app.add_exception_handler(CatalogError, catalog_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get("/health", tags=["system"])
    async def healthcheck() -> dict[str, str]:
        """Simple health endpoint for readiness checks."""
        return {"status": "ok"}

    app.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
    app.include_router(trails.router, prefix="/trails", tags=["trails"])
    app.include_router(session.router, tags=["session"])
    return app


app = create_app()
