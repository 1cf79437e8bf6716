"""
escola_portal.auth.guards

Per-role auth guards.

Responsibilities:
- Three pure predicates over a `SessionContainer`, one per role, each reading only its
  own role's session entry.
- FastAPI dependency factories that reject with 401 and never run the handler when the
  predicate fails.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException
from starlette.status import HTTP_401_UNAUTHORIZED

from escola_portal.api.deps import session_container
from escola_portal.auth.models import AccessContext, Role, SessionIdentity
from escola_portal.auth.sessions import SessionContainer
from escola_portal.observability.logging import bind_principal, get_logger

log = get_logger(__name__)

Predicate = Callable[[SessionContainer], bool]


def admin_present(container: SessionContainer) -> bool:
    identity = container.identity(Role.admin)
    # The active flag is cached at login and refreshed at the next login.
    return identity is not None and identity.fields.get("active") is True


def manager_present(container: SessionContainer) -> bool:
    identity = container.identity(Role.manager)
    return identity is not None and identity.branch_id is not None


def guardian_present(container: SessionContainer) -> bool:
    return container.get(Role.guardian) is not None


PREDICATES: dict[Role, Predicate] = {
    Role.admin: admin_present,
    Role.manager: manager_present,
    Role.guardian: guardian_present,
}

# Identical whether the caller never logged in, expired, or the store timed out.
_DENIED: dict[Role, str] = {
    Role.admin: "Admin authentication required",
    Role.manager: "Unit manager authentication required",
    Role.guardian: "Guardian authentication required",
}


def passes(role: Role, container: SessionContainer) -> bool:
    return PREDICATES[role](container)


def authenticated_identity(role: Role, container: SessionContainer) -> SessionIdentity:
    identity = container.identity(role) if passes(role, container) else None
    if identity is None:
        if not container.backend_available:
            log.warning("guard_failed_closed", guard=role.value)
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=_DENIED[role])
    return identity


def authorize(role: Role, container: SessionContainer) -> AccessContext:
    identity = authenticated_identity(role, container)
    bind_principal(role=role.value, principal_id=identity.principal_id)
    return AccessContext.from_identity(identity)


def require_role(role: Role):
    def _dep(container: SessionContainer = Depends(session_container)) -> AccessContext:
        return authorize(role, container)

    return _dep


require_admin = require_role(Role.admin)
require_manager = require_role(Role.manager)
require_guardian = require_role(Role.guardian)


# --- Module Notes -----------------------------------------------------------
# Roles are siloed: an admin identity does not satisfy the manager or guardian guard.
# Combining guards is plain AND (list several dependencies on the route).
