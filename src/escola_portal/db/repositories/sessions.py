"""
escola_portal.db.repositories.sessions

Repository for persisted `SessionRecord` rows.

Responsibilities:
- Load, lock, save and delete a session blob by sid.
- Delete expired rows in bulk for the periodic sweep.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from escola_portal.db.models import SessionRecord


class SessionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load(self, sid: str) -> SessionRecord | None:
        return await self._session.get(SessionRecord, sid)

    async def lock(self, sid: str) -> SessionRecord | None:
        # Serializes concurrent writers of the same sid (double submits).
        return await self._session.get(SessionRecord, sid, with_for_update=True)

    async def save(
        self,
        *,
        sid: str,
        data: dict[str, Any],
        expires_at: datetime,
        existing: SessionRecord | None = None,
    ) -> SessionRecord:
        if existing is None:
            existing = SessionRecord(sid=sid, data=data, expires_at=expires_at)
            self._session.add(existing)
        else:
            # Reassign (not mutate in place) so the JSON column is flagged dirty.
            existing.data = dict(data)
            existing.expires_at = expires_at
        await self._session.flush()
        return existing

    async def remove(self, row: SessionRecord) -> None:
        # Version-checked, unlike `delete`: fails if another writer got there first.
        await self._session.delete(row)
        await self._session.flush()

    async def delete(self, sid: str) -> None:
        await self._session.execute(delete(SessionRecord).where(SessionRecord.sid == sid))

    async def delete_expired(self, now: datetime) -> int:
        result = await self._session.execute(
            delete(SessionRecord).where(SessionRecord.expires_at <= now)
        )
        return int(result.rowcount or 0)


# --- Module Notes -----------------------------------------------------------
# Commit/rollback is owned by `auth.sessions.SessionStore`, one transaction per call.
# `save` and `remove` flush through the ORM version check (`SessionRecord.version`)
# and raise StaleDataError on a lost race; the bulk deletes are unconditional.
