"""
escola_portal.auth.credentials

Credential store: one lookup + secret check per role.

Responsibilities:
- `verify(role, identifier, secret)` returning a typed principal or raising a
  distinguishable `InvalidCredentials` subclass.
- Keep the timing of "unknown identifier", "inactive" and "wrong secret" comparable.
"""

from __future__ import annotations

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from escola_portal.auth.errors import BadSecret, PrincipalInactive, PrincipalNotFound
from escola_portal.auth.models import (
    AdminPrincipal,
    GuardianPrincipal,
    ManagerPrincipal,
    Principal,
    Role,
)
from escola_portal.auth.passwords import dummy_hash, verify_password
from escola_portal.db.repositories.principals import PrincipalRepo


def normalize_identifier(identifier: str) -> str:
    return identifier.strip().lower()


class CredentialStore:
    def __init__(self, session: AsyncSession, *, rounds: int = 12) -> None:
        self._principals = PrincipalRepo(session)
        self._rounds = rounds

    async def verify(self, role: Role, identifier: str, secret: str) -> Principal:
        email = normalize_identifier(identifier)
        if role is Role.admin:
            return await self._verify_admin(email, secret)
        if role is Role.manager:
            return await self._verify_manager(email, secret)
        return await self._verify_guardian(email, secret)

    async def _secret_matches(self, secret: str, password_hash: str | None) -> bool:
        # bcrypt is CPU-bound; keep it off the event loop. Unknown identifiers still pay
        # for one comparison against a dummy hash.
        return await asyncio.to_thread(
            verify_password, secret, password_hash or dummy_hash(self._rounds)
        )

    async def _verify_admin(self, email: str, secret: str) -> AdminPrincipal:
        row = await self._principals.admin_by_email(email)
        ok = await self._secret_matches(secret, row.password_hash if row else None)
        if row is None:
            raise PrincipalNotFound(Role.admin, email)
        if not row.active:
            raise PrincipalInactive(Role.admin, email)
        if not ok:
            raise BadSecret(Role.admin, email)
        return AdminPrincipal(
            id=row.id, name=row.name, email=row.email, tag=row.role, active=row.active
        )

    async def _verify_manager(self, email: str, secret: str) -> ManagerPrincipal:
        row = await self._principals.manager_by_email(email)
        ok = await self._secret_matches(secret, row.password_hash if row else None)
        if row is None:
            raise PrincipalNotFound(Role.manager, email)
        if not ok:
            raise BadSecret(Role.manager, email)
        return ManagerPrincipal(id=row.id, name=row.name, email=row.email, branch_id=row.branch_id)

    async def _verify_guardian(self, email: str, secret: str) -> GuardianPrincipal:
        row = await self._principals.guardian_by_email(email)
        ok = await self._secret_matches(secret, row.password_hash if row else None)
        if row is None:
            raise PrincipalNotFound(Role.guardian, email)
        if not ok:
            raise BadSecret(Role.guardian, email)
        return GuardianPrincipal(
            id=row.id,
            name=row.name,
            email=row.email,
            student_ids=await self._principals.linked_student_ids(row.id),
        )


# --- Module Notes -----------------------------------------------------------
# Verification has no side effects; session writes and last-login bookkeeping live in
# `services.auth_service.AuthService.login`.
