"""
escola_portal.api.cookies

Session cookie helpers.
"""

from __future__ import annotations

from starlette.responses import Response

from escola_portal.auth.sessions import SessionContainer
from escola_portal.settings import Settings


def _drop_pending(response: Response, name: str) -> None:
    # Last write wins: a login/logout after the sliding refresh replaces its Set-Cookie.
    prefix = f"{name}=".encode("latin-1")
    response.raw_headers[:] = [
        (key, value)
        for key, value in response.raw_headers
        if not (key == b"set-cookie" and value.startswith(prefix))
    ]


def sync_session_cookie(
    response: Response, container: SessionContainer, settings: Settings
) -> None:
    if container.cookie_action is None:
        return
    _drop_pending(response, settings.session_cookie_name)
    if container.cookie_action == "set" and container.session_id is not None:
        response.set_cookie(
            key=settings.session_cookie_name,
            value=container.session_id,
            max_age=settings.session_ttl_seconds,
            path=settings.session_cookie_path,
            httponly=True,
            secure=settings.session_cookie_secure,
            samesite=settings.session_cookie_samesite,
        )
    else:
        response.delete_cookie(
            key=settings.session_cookie_name,
            path=settings.session_cookie_path,
            httponly=True,
            secure=settings.session_cookie_secure,
            samesite=settings.session_cookie_samesite,
        )
