"""FastAPI application factory for the Nautilus dashboard."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from nautilus import __version__
from nautilus.db import Database, run_migrations
from nautilus.providers import ProviderClient
from nautilus.scheduler import SyncScheduler
from nautilus.settings.store import SettingsStore
from dashboard.backend.auth.dependencies import init_auth, require_auth
from dashboard.backend.auth.service import OktaTokenVerifier
from dashboard.backend.clusters.service import ClusterService
from dashboard.backend.config import DashboardConfig
from dashboard.backend.network.service import DependencyService, NetworkService
from dashboard.backend.routers import (
    clusters,
    dependencies,
    health,
    namespaces,
    network,
    overview,
    settings,
)
from dashboard.backend.services.overview_service import OverviewService
from dashboard.backend.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    """Render every error as ``{"message": ...}``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})


def create_app(
    config: DashboardConfig | None = None,
    clients: list[ProviderClient] | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Services are initialised from *config* (or env defaults) and
    injected into each router via its ``init_router()`` function.
    *clients* overrides the cloud provider clients used by the
    connection test endpoint.
    """
    if config is None:
        config = DashboardConfig.from_env()

    # --- Database + settings ---
    db = Database.from_url(config.database_url)
    run_migrations(db)
    store = SettingsStore(db)

    # --- Scheduler ---
    scheduler: SyncScheduler | None = None
    if config.scheduler_enabled:
        scheduler = SyncScheduler(store, database_url=config.database_url)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if scheduler is not None and not scheduler.start():
            logger.info("Scheduler idle until cloud credentials are configured")
        yield
        if scheduler is not None:
            scheduler.shutdown()
        db.close()

    app = FastAPI(
        title="Nautilus Dashboard",
        version=__version__,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    _register_error_handlers(app)

    # --- CORS (dev mode only) ---
    if config.dev_mode:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[o.strip() for o in config.cors_origins.split(",") if o.strip()],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # --- Auth ---
    init_auth(store, OktaTokenVerifier(), config.require_auth)

    # --- Services ---
    cluster_svc = ClusterService(db)
    network_svc = NetworkService(db)
    dependency_svc = DependencyService(db)
    overview_svc = OverviewService(cluster_svc, network_svc, dependency_svc)
    settings_svc = SettingsService(
        store,
        db,
        clients=clients,
        on_credentials_saved=scheduler.reload if scheduler is not None else None,
    )

    # --- Routers ---
    health.init_router(cluster_svc, scheduler, __version__)
    clusters.init_router(cluster_svc, dependency_svc, network_svc)
    namespaces.init_router(cluster_svc)
    dependencies.init_router(dependency_svc)
    network.init_router(network_svc)
    overview.init_router(overview_svc)
    settings.init_router(settings_svc)

    protected = [Depends(require_auth)]
    app.include_router(health.router)
    app.include_router(settings.router)
    app.include_router(overview.router, dependencies=protected)
    app.include_router(namespaces.router, dependencies=protected)
    app.include_router(dependencies.router, dependencies=protected)
    app.include_router(network.router, dependencies=protected)
    app.include_router(clusters.router, dependencies=protected)

    # --- Static files (built frontend) ---
    frontend_dist = Path(__file__).resolve().parent.parent / "frontend" / "dist"
    if frontend_dist.is_dir():
        app.mount("/", StaticFiles(directory=str(frontend_dist), html=True), name="frontend")

    logger.info("Dashboard ready (database=%s)", db.path)
    return app
