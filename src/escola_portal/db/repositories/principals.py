"""
escola_portal.db.repositories.principals

Repository for the three credential tables.

Responsibilities:
- Look up admins, unit managers and guardians by normalized email or by id.
- Compute a guardian's linked student ids.
- Record a unit manager's last login and create principals for bootstrap/tests.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from escola_portal.db.models import AdminUser, Guardian, Student, UnitManager


class PrincipalRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def admin_by_email(self, email: str) -> AdminUser | None:
        stmt = select(AdminUser).where(AdminUser.email == email)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def manager_by_email(self, email: str) -> UnitManager | None:
        stmt = select(UnitManager).where(UnitManager.email == email)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def guardian_by_email(self, email: str) -> Guardian | None:
        stmt = select(Guardian).where(Guardian.email == email)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def guardian(self, guardian_id: int) -> Guardian | None:
        return await self._session.get(Guardian, guardian_id)

    async def linked_student_ids(self, guardian_id: int) -> frozenset[int]:
        stmt = select(Student.id).where(Student.guardian_id == guardian_id)
        return frozenset((await self._session.execute(stmt)).scalars().all())

    async def touch_manager_login(self, manager_id: int) -> None:
        await self._session.execute(
            update(UnitManager)
            .where(UnitManager.id == manager_id)
            .values(last_login_at=datetime.utcnow())
        )
        await self._session.commit()

    async def create_admin(
        self, *, name: str, email: str, password_hash: str, active: bool = True
    ) -> AdminUser:
        admin = AdminUser(name=name, email=email, password_hash=password_hash, active=active)
        self._session.add(admin)
        await self._session.flush()
        return admin

    async def create_manager(
        self, *, name: str, email: str, password_hash: str, branch_id: int
    ) -> UnitManager:
        manager = UnitManager(
            name=name, email=email, password_hash=password_hash, branch_id=branch_id
        )
        self._session.add(manager)
        await self._session.flush()
        return manager

    async def create_guardian(self, *, name: str, email: str, password_hash: str) -> Guardian:
        guardian = Guardian(name=name, email=email, password_hash=password_hash)
        self._session.add(guardian)
        await self._session.flush()
        return guardian


# --- Module Notes -----------------------------------------------------------
# Callers pass emails already normalized by `auth.credentials.normalize_identifier`;
# create_* helpers expect the same.
