"""
escola_portal.api.errors

Translation of auth-boundary exceptions into coarse HTTP responses.

Responsibilities:
- Collapse every credential failure into one 401 body.
- Answer cross-tenant access exactly like a missing record (404).
- Report session backend outages on login/logout paths as 503.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from escola_portal.auth.errors import (
    CrossTenantAccess,
    InvalidCredentials,
    RecordNotFound,
    SessionBackendUnavailable,
)

INVALID_CREDENTIALS = "Invalid credentials"
NOT_FOUND = "Not found"
UNAVAILABLE = "Service unavailable"


async def _invalid_credentials(_: Request, __: Exception) -> JSONResponse:
    return JSONResponse(status_code=HTTP_401_UNAUTHORIZED, content={"detail": INVALID_CREDENTIALS})


async def _not_found(_: Request, __: Exception) -> JSONResponse:
    # CrossTenantAccess is already logged as an alert where it is raised.
    return JSONResponse(status_code=HTTP_404_NOT_FOUND, content={"detail": NOT_FOUND})


async def _backend_unavailable(_: Request, __: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_503_SERVICE_UNAVAILABLE, content={"detail": UNAVAILABLE}
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidCredentials, _invalid_credentials)
    app.add_exception_handler(CrossTenantAccess, _not_found)
    app.add_exception_handler(RecordNotFound, _not_found)
    app.add_exception_handler(SessionBackendUnavailable, _backend_unavailable)


# --- Module Notes -----------------------------------------------------------
# Guards never let SessionBackendUnavailable escape (they fail closed with 401); only
# explicit session writes (login/logout) can surface it here.
