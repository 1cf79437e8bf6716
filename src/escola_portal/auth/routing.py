"""
escola_portal.auth.routing

Role router for endpoints reachable by more than one role.

Responsibilities:
- Pick which identity a request is served as when several coexist in one session.
- Expose `require_any(...)` for shared endpoints.

Precedence is admin > manager > guardian. This is a product policy (pending sign-off),
pinned by tests rather than left to per-route behavior.
"""

from __future__ import annotations

from collections.abc import Iterable

from fastapi import Depends, HTTPException
from starlette.status import HTTP_401_UNAUTHORIZED

from escola_portal.api.deps import session_container
from escola_portal.auth.guards import authorize, passes
from escola_portal.auth.models import AccessContext, Role
from escola_portal.auth.sessions import SessionContainer

ROLE_PRECEDENCE: tuple[Role, ...] = (Role.admin, Role.manager, Role.guardian)


def resolve_role(container: SessionContainer, allowed: Iterable[Role]) -> Role | None:
    allowed_set = frozenset(allowed)
    for role in ROLE_PRECEDENCE:
        if role in allowed_set and passes(role, container):
            return role
    return None


def require_any(*allowed: Role):
    if not allowed:
        raise ValueError("require_any needs at least one role")

    def _dep(container: SessionContainer = Depends(session_container)) -> AccessContext:
        role = resolve_role(container, allowed)
        if role is None:
            raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Authentication required")
        return authorize(role, container)

    return _dep
