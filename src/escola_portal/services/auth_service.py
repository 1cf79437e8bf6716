"""
escola_portal.services.auth_service

Login lifecycle service.

Responsibilities:
- Verify credentials and record the resulting identity in the session container.
- Record unit manager last-login timestamps.
- Log out one role or the whole session (idempotent).
- Refresh a guardian's linked-student set from the store.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from escola_portal.auth.credentials import CredentialStore
from escola_portal.auth.errors import InvalidCredentials
from escola_portal.auth.models import GuardianPrincipal, Role, SessionIdentity
from escola_portal.auth.sessions import SessionContainer
from escola_portal.db.repositories.principals import PrincipalRepo
from escola_portal.observability.logging import get_logger
from escola_portal.settings import Settings

log = get_logger(__name__)


class AuthService:
    def __init__(self, *, session: AsyncSession, settings: Settings) -> None:
        self._credentials = CredentialStore(session, rounds=settings.bcrypt_rounds)
        self._principals = PrincipalRepo(session)

    async def login(
        self,
        *,
        role: Role,
        identifier: str,
        secret: str,
        container: SessionContainer,
    ) -> SessionIdentity:
        try:
            principal = await self._credentials.verify(role, identifier, secret)
        except InvalidCredentials as e:
            # Full detail stays server-side; the client only sees "Invalid credentials".
            log.info("login_failed", role=role.value, identifier=e.identifier, reason=e.reason)
            raise

        await container.create(role, principal.id, principal.session_fields())
        if role is Role.manager:
            await self._principals.touch_manager_login(principal.id)

        log.info("login_succeeded", role=role.value, principal_id=principal.id)
        return SessionIdentity(
            role=role, principal_id=principal.id, fields=principal.session_fields()
        )

    async def logout(self, *, role: Role, container: SessionContainer) -> None:
        had_identity = container.get(role) is not None
        await container.destroy(role)
        if had_identity:
            log.info("logout", role=role.value)

    async def logout_all(self, *, container: SessionContainer) -> None:
        roles = sorted(r.value for r in container.roles())
        await container.destroy_all()
        if roles:
            log.info("logout_all", roles=roles)

    async def refresh_guardian_links(self, container: SessionContainer) -> SessionIdentity | None:
        identity = container.identity(Role.guardian)
        if identity is None:
            return None

        guardian = await self._principals.guardian(identity.principal_id)
        if guardian is None:
            log.warning("guardian_vanished", principal_id=identity.principal_id)
            await container.destroy(Role.guardian)
            return None

        principal = GuardianPrincipal(
            id=guardian.id,
            name=guardian.name,
            email=guardian.email,
            student_ids=await self._principals.linked_student_ids(guardian.id),
        )
        if principal.session_fields() != identity.fields:
            await container.create(Role.guardian, principal.id, principal.session_fields())
            log.info("guardian_links_refreshed", student_count=len(principal.student_ids))
        return container.identity(Role.guardian)


# --- Module Notes -----------------------------------------------------------
# AuthService is the only caller of SessionContainer.create/destroy on request paths.
