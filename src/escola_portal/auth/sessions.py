"""
escola_portal.auth.sessions

Server-side sessions keyed by an opaque cookie id.

Responsibilities:
- `SessionStore`: bounded-timeout access to the persisted session table, with a single
  locked read-modify-write path per sid and lazy/periodic expiry reclamation.
- `SessionContainer`: the per-request view of one browser session holding at most one
  identity per role. It is the only writer of session identity fields.
"""

from __future__ import annotations

import asyncio
import contextlib
import copy
import secrets
import weakref
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from escola_portal.auth.errors import SessionBackendUnavailable, SessionExpired
from escola_portal.auth.models import Role, SessionIdentity
from escola_portal.db.repositories.sessions import SessionRepo
from escola_portal.observability.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")
Clock = Callable[[], datetime]
Mutation = Callable[[dict[str, Any]], dict[str, Any]]

_EXPIRED = object()

# A mutate that keeps losing the version race this many times is reported as unavailable.
MAX_WRITE_ATTEMPTS = 5


class _WriteConflict(Exception):
    pass


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    sid: str
    data: dict[str, Any]
    expires_at: datetime


class SessionStore:
    def __init__(
        self,
        *,
        sessionmaker: async_sessionmaker[AsyncSession],
        timeout_seconds: float,
        clock: Clock = datetime.utcnow,
    ) -> None:
        self._sessionmaker = sessionmaker
        self._timeout = timeout_seconds
        self._clock = clock
        # One lock per live sid; entries vanish once no caller holds them.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def now(self) -> datetime:
        return self._clock()

    def _lock_for(self, sid: str) -> asyncio.Lock:
        lock = self._locks.get(sid)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[sid] = lock
        return lock

    async def _call(
        self,
        operation: str,
        fn: Callable[[SessionRepo], Awaitable[T]],
        *,
        lock: asyncio.Lock | None = None,
    ) -> T:
        async def run() -> T:
            # Waiting for the sid lock counts against the same timeout.
            async with lock if lock is not None else contextlib.nullcontext():
                # One short transaction per call; never shares the request's DB session.
                async with self._sessionmaker() as session:
                    result = await fn(SessionRepo(session))
                    await session.commit()
                    return result

        try:
            return await asyncio.wait_for(run(), timeout=self._timeout)
        except TimeoutError as e:
            log.error("session_store_timeout", operation=operation, timeout=self._timeout)
            raise SessionBackendUnavailable(operation) from e
        except SQLAlchemyError as e:
            log.error("session_store_error", operation=operation, error=type(e).__name__)
            raise SessionBackendUnavailable(operation) from e

    async def load(self, sid: str) -> SessionSnapshot | None:
        """
        Return the live session for `sid`, None if unknown.
        Raises SessionExpired (after deleting the row) if it outlived its expiry.
        """

        now = self.now()

        async def op(repo: SessionRepo) -> SessionSnapshot | object | None:
            row = await repo.load(sid)
            if row is None:
                return None
            if row.expires_at <= now:
                await repo.delete(sid)
                return _EXPIRED
            return SessionSnapshot(
                sid=sid, data=copy.deepcopy(row.data), expires_at=row.expires_at
            )

        result = await self._call("load", op)
        if result is _EXPIRED:
            raise SessionExpired(sid)
        return result  # type: ignore[return-value]

    async def mutate(
        self, sid: str, fn: Mutation, *, ttl: timedelta, extend: bool = True
    ) -> SessionSnapshot | None:
        """
        Serialized read-modify-write of one session blob.
        An empty result deletes the row and returns None.

        Writers in this process queue on a per-sid lock. Writers in other processes are
        caught by the row version check, and the losing side re-reads and re-applies `fn`.
        """

        now = self.now()

        async def op(repo: SessionRepo) -> SessionSnapshot | None:
            row = await repo.lock(sid)
            live = row is not None and row.expires_at > now
            current = copy.deepcopy(row.data) if live else {}
            updated = fn(current)
            try:
                if not updated:
                    if row is not None:
                        await repo.remove(row)
                    return None
                expires_at = now + ttl if extend or not live else row.expires_at
                saved = await repo.save(
                    sid=sid, data=updated, expires_at=expires_at, existing=row
                )
            except (StaleDataError, IntegrityError) as e:
                raise _WriteConflict(sid) from e
            return SessionSnapshot(sid=sid, data=copy.deepcopy(saved.data), expires_at=expires_at)

        lock = self._lock_for(sid)
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            try:
                return await self._call("mutate", op, lock=lock)
            except _WriteConflict:
                log.info("session_write_conflict", attempt=attempt)
        log.error("session_write_conflict_exhausted", attempts=MAX_WRITE_ATTEMPTS)
        raise SessionBackendUnavailable("mutate")

    async def delete(self, sid: str) -> None:
        async def op(repo: SessionRepo) -> None:
            await repo.delete(sid)

        await self._call("delete", op, lock=self._lock_for(sid))

    async def sweep(self) -> int:
        now = self.now()

        async def op(repo: SessionRepo) -> int:
            return await repo.delete_expired(now)

        return await self._call("sweep", op)


class SessionContainer:
    """
    Per-request session object, passed explicitly to guards and handlers.

    The blob maps role names to identity entries:
    {"admin": {"id": 1, "name": ..., "active": true}, "manager": {...}, ...}
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        session_id: str | None,
        ttl: timedelta,
        sliding: bool = True,
    ) -> None:
        self._store = store
        self._sid = session_id or None
        self._ttl = ttl
        self._sliding = sliding
        self._data: dict[str, Any] = {}
        self._expires_at: datetime | None = None
        self.backend_available = True
        self.cookie_action: Literal["set", "clear"] | None = None

    @property
    def session_id(self) -> str | None:
        return self._sid

    @property
    def expires_at(self) -> datetime | None:
        return self._expires_at

    def _apply(self, snapshot: SessionSnapshot | None) -> None:
        if snapshot is None:
            self._forget()
            return
        self._sid = snapshot.sid
        self._data = snapshot.data
        self._expires_at = snapshot.expires_at
        self.cookie_action = "set"

    def _forget(self) -> None:
        # Drop the id too: a later login must not adopt an id the client chose.
        self._sid = None
        self._data = {}
        self._expires_at = None
        self.cookie_action = "clear"

    async def load(self) -> None:
        if self._sid is None:
            return
        try:
            snapshot = await self._store.load(self._sid)
            if snapshot is not None and snapshot.data and self._sliding:
                snapshot = await self._store.mutate(self._sid, lambda d: d, ttl=self._ttl)
        except SessionExpired:
            log.info("session_expired")
            self._forget()
            return
        except SessionBackendUnavailable:
            # Fail closed: no identity is readable for this request.
            self.backend_available = False
            self._data = {}
            return

        if snapshot is None:
            self._forget()
            return
        self._sid = snapshot.sid
        self._data = snapshot.data
        self._expires_at = snapshot.expires_at
        if self._sliding:
            self.cookie_action = "set"

    def get(self, role: Role) -> int | None:
        entry = self._data.get(role.value)
        if not isinstance(entry, dict) or entry.get("id") is None:
            return None
        return int(entry["id"])

    def identity(self, role: Role) -> SessionIdentity | None:
        principal_id = self.get(role)
        if principal_id is None:
            return None
        fields = {k: v for k, v in self._data[role.value].items() if k != "id"}
        return SessionIdentity(role=role, principal_id=principal_id, fields=fields)

    def roles(self) -> frozenset[Role]:
        return frozenset(role for role in Role if self.get(role) is not None)

    async def create(self, role: Role, principal_id: int, display: dict[str, Any]) -> None:
        if self._sid is None:
            self._sid = new_session_id()
        entry = {**copy.deepcopy(display), "id": principal_id}

        def put(data: dict[str, Any]) -> dict[str, Any]:
            data[role.value] = entry
            return data

        self._apply(await self._store.mutate(self._sid, put, ttl=self._ttl))

    async def destroy(self, role: Role) -> None:
        if self._sid is None:
            self._data.pop(role.value, None)
            return

        def drop(data: dict[str, Any]) -> dict[str, Any]:
            data.pop(role.value, None)
            return data

        self._apply(
            await self._store.mutate(self._sid, drop, ttl=self._ttl, extend=self._sliding)
        )

    async def destroy_all(self) -> None:
        if self._sid is not None:
            await self._store.delete(self._sid)
        self._forget()


# --- Module Notes -----------------------------------------------------------
# SQLite ignores FOR UPDATE, so per-sid atomicity rests on the in-process lock and the
# row version column; there is no cross-request sequencing beyond that.
