"""PackSafe REST API — FastAPI application factory.

Run with::

    uvicorn packsafe.api:create_app --factory
"""

from __future__ import annotations

import os
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from packsafe import __version__
from packsafe.api.deps import (
    close_clients,
    dispose_engine,
    get_auth_service,
    get_cache,
    get_engine,
    get_keepalive,
    init_session_factory,
)
from packsafe.api.errors import register_error_handlers
from packsafe.api.middleware.request_id import RequestIDMiddleware
from packsafe.api.routers import auth, cache, packages, projects, scan, users
from packsafe.core.database import Base
from packsafe.core.logging import setup_logging
from packsafe.scheduler import create_scheduler

log = structlog.get_logger("packsafe.api")

_STARTED_AT = time.monotonic()


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: init DB, ensure admin, start cache + scheduler. Shutdown: reverse."""
    factory = init_session_factory()
    engine = get_engine()
    if engine is not None and os.environ.get("PACKSAFE_CREATE_TABLES", "1") == "1":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    auth_svc = get_auth_service()
    async with factory() as session:
        async with session.begin():
            await auth_svc.ensure_admin_exists(session)

    cache_svc = get_cache()
    await cache_svc.start()
    scheduler = create_scheduler(get_keepalive())
    await scheduler.start()
    app.state.scheduler = scheduler
    log.info("app.started", version=__version__)
    yield
    await scheduler.stop()
    await cache_svc.stop()
    await close_clients()
    await dispose_engine()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    setup_logging()

    app = FastAPI(
        title="PackSafe",
        version=__version__,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=_lifespan,
    )

    register_error_handlers(app)

    cors_origins = os.environ.get("PACKSAFE_CORS_ORIGINS", "http://localhost:3000")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health", tags=["ops"])
    async def health() -> JSONResponse:
        scheduler = getattr(app.state, "scheduler", None)
        return JSONResponse(
            {
                "status": "ok",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "uptime": round(time.monotonic() - _STARTED_AT, 1),
                "keep_alive": get_keepalive().snapshot(),
                "maintenance": scheduler.snapshot() if scheduler else [],
            }
        )

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(scan.router, prefix="/api/scan", tags=["scan"])
    app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(packages.router, prefix="/api/packages", tags=["packages"])
    app.include_router(cache.router, prefix="/api/cache", tags=["cache"])

    return app
