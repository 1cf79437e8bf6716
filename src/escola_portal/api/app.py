"""
escola_portal.api.app

FastAPI app factory for the school portal API.

Responsibilities:
- Build the FastAPI application and register routers/middleware/exception handlers.
- Initialize and dispose shared infrastructure (DB engine, session factory, session store).
- Run the expired-session sweeper for the lifetime of the app.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from escola_portal import __version__
from escola_portal.api.errors import install_exception_handlers
from escola_portal.api.routers.auth import router as auth_router
from escola_portal.api.routers.billing import router as billing_router
from escola_portal.api.routers.branches import router as branches_router
from escola_portal.api.routers.health import router as health_router
from escola_portal.api.routers.students import router as students_router
from escola_portal.auth.sessions import SessionStore
from escola_portal.db.init_db import init_db
from escola_portal.db.session import create_engine, create_sessionmaker
from escola_portal.observability.logging import configure_logging, get_logger
from escola_portal.observability.middleware import RequestContextMiddleware
from escola_portal.services.session_sweeper import SessionSweeper
from escola_portal.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        app.state.session_store = SessionStore(
            sessionmaker=app.state.sessionmaker,
            timeout_seconds=settings.session_store_timeout_seconds,
        )
        if settings.env in ("dev", "test"):
            await init_db(engine)

        sweeper = SessionSweeper(
            store=app.state.session_store,
            interval_seconds=settings.session_sweep_interval_seconds,
        )
        sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Escola Portal",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    install_exception_handlers(app)
    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(students_router)
    app.include_router(branches_router)
    app.include_router(billing_router)

    return app


# --- Module Notes -----------------------------------------------------------
# Tests drive the lifespan directly (`app.router.lifespan_context`) because
# httpx's ASGITransport does not send lifespan events.
