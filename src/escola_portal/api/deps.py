"""
escola_portal.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and DB sessions.
- Build the per-request `SessionContainer` from the session cookie.
- Encapsulate app.state access patterns (engine/sessionmaker/session store).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from escola_portal.api.cookies import sync_session_cookie
from escola_portal.auth.sessions import SessionContainer, SessionStore
from escola_portal.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The instance the app was built with (see `create_app`).
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created on app startup in `escola_portal.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


def session_store_from_app(request: Request) -> SessionStore:
    return request.app.state.session_store  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


async def session_container(
    request: Request,
    response: Response,
    store: SessionStore = Depends(session_store_from_app),
    settings: Settings = Depends(settings_dep),
) -> SessionContainer:
    container = SessionContainer(
        store=store,
        session_id=request.cookies.get(settings.session_cookie_name),
        ttl=settings.session_ttl,
        sliding=settings.session_sliding,
    )
    await container.load()
    # Sliding refresh or clearing a dead cookie.
    sync_session_cookie(response, container, settings)
    return container


# --- Module Notes -----------------------------------------------------------
# FastAPI caches dependencies per request, so guards, the role router and auth routes
# all share one container (and one session load) within a request.
