"""
tests.test_sessions

Session store/container behavior: per-role isolation, idempotent destroy, expiry,
sliding refresh, sweeping, and failing closed when the backend is slow.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from escola_portal.auth.errors import SessionBackendUnavailable, SessionExpired
from escola_portal.auth.guards import admin_present, guardian_present, manager_present
from escola_portal.auth.models import Role
from escola_portal.auth.sessions import SessionContainer, SessionStore
from escola_portal.db.repositories.sessions import SessionRepo
from escola_portal.services.session_sweeper import SessionSweeper

TTL = timedelta(hours=24)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 3, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(sessionmaker: async_sessionmaker[AsyncSession], clock: FakeClock) -> SessionStore:
    return SessionStore(sessionmaker=sessionmaker, timeout_seconds=2.0, clock=clock)


async def _reopen(store: SessionStore, sid: str | None, *, sliding: bool = True):
    container = SessionContainer(store=store, session_id=sid, ttl=TTL, sliding=sliding)
    await container.load()
    return container


@pytest.mark.asyncio
async def test_create_then_get_survives_reload(store: SessionStore) -> None:
    container = await _reopen(store, None)
    await container.create(Role.manager, 7, {"name": "G", "email": "g@x", "branch_id": 3})

    assert container.session_id is not None
    assert container.cookie_action == "set"

    again = await _reopen(store, container.session_id)
    assert again.get(Role.manager) == 7
    assert again.identity(Role.manager).branch_id == 3
    assert again.get(Role.admin) is None
    assert again.get(Role.guardian) is None


@pytest.mark.asyncio
async def test_roles_are_independent_entries(store: SessionStore) -> None:
    container = await _reopen(store, None)
    await container.create(Role.admin, 1, {"name": "A", "email": "a@x", "active": True})
    await container.create(Role.guardian, 9, {"name": "M", "email": "m@x", "student_ids": [4]})

    await container.destroy(Role.guardian)

    again = await _reopen(store, container.session_id)
    assert again.get(Role.admin) == 1
    assert again.get(Role.guardian) is None
    assert again.roles() == frozenset({Role.admin})


@pytest.mark.asyncio
async def test_destroy_is_idempotent(store: SessionStore) -> None:
    container = await _reopen(store, None)
    await container.create(Role.guardian, 9, {"name": "M", "email": "m@x", "student_ids": []})

    await container.destroy(Role.guardian)
    await container.destroy(Role.guardian)
    await container.destroy(Role.admin)

    assert container.get(Role.guardian) is None
    # Destroying the last identity removes the row and clears the cookie.
    assert container.session_id is None
    assert container.cookie_action == "clear"


@pytest.mark.asyncio
async def test_destroy_without_session_is_a_noop(store: SessionStore) -> None:
    container = await _reopen(store, None)
    await container.destroy(Role.manager)
    await container.destroy_all()
    assert container.get(Role.manager) is None


@pytest.mark.asyncio
async def test_expired_session_reads_as_never_logged_in(
    store: SessionStore, clock: FakeClock
) -> None:
    container = await _reopen(store, None)
    await container.create(Role.admin, 1, {"name": "A", "email": "a@x", "active": True})
    sid = container.session_id

    clock.advance(TTL + timedelta(seconds=1))

    with pytest.raises(SessionExpired):
        await store.load(sid)
    # The expired row was reclaimed on that read.
    assert await store.load(sid) is None

    again = await _reopen(store, sid)
    assert again.get(Role.admin) is None
    assert not admin_present(again)
    assert again.session_id is None
    assert again.cookie_action == "clear"


@pytest.mark.asyncio
async def test_sliding_expiry_extends_on_read(store: SessionStore, clock: FakeClock) -> None:
    container = await _reopen(store, None)
    await container.create(Role.admin, 1, {"name": "A", "email": "a@x", "active": True})
    sid = container.session_id

    clock.advance(TTL - timedelta(minutes=1))
    touched = await _reopen(store, sid)
    assert touched.get(Role.admin) == 1
    assert touched.expires_at == clock.now + TTL

    clock.advance(timedelta(minutes=2))
    assert (await _reopen(store, sid)).get(Role.admin) == 1


@pytest.mark.asyncio
async def test_fixed_expiry_does_not_extend(store: SessionStore, clock: FakeClock) -> None:
    container = await _reopen(store, None, sliding=False)
    await container.create(Role.admin, 1, {"name": "A", "email": "a@x", "active": True})
    sid = container.session_id
    original_expiry = container.expires_at

    clock.advance(TTL - timedelta(minutes=1))
    touched = await _reopen(store, sid, sliding=False)
    assert touched.expires_at == original_expiry
    assert touched.cookie_action is None

    clock.advance(timedelta(minutes=2))
    assert (await _reopen(store, sid, sliding=False)).get(Role.admin) is None


@pytest.mark.asyncio
async def test_unknown_session_id_is_not_adopted(store: SessionStore) -> None:
    container = await _reopen(store, "attacker-chosen-id")
    assert container.session_id is None
    assert container.cookie_action == "clear"

    await container.create(Role.guardian, 9, {"name": "M", "email": "m@x", "student_ids": []})
    assert container.session_id not in (None, "attacker-chosen-id")


CONCURRENT_ROUNDS = 20


async def _double_submit(
    writer_a: SessionStore, writer_b: SessionStore, reader: SessionStore
) -> None:
    for _ in range(CONCURRENT_ROUNDS):
        container = await _reopen(reader, None)
        await container.create(Role.admin, 1, {"name": "A", "email": "a@x", "active": True})
        sid = container.session_id

        # Both requests loaded the same blob before either writes.
        first = await _reopen(writer_a, sid)
        second = await _reopen(writer_b, sid)
        await asyncio.gather(
            first.create(Role.manager, 2, {"name": "G", "email": "g@x", "branch_id": 3}),
            second.create(Role.guardian, 3, {"name": "M", "email": "m@x", "student_ids": []}),
        )

        final = await _reopen(reader, sid)
        assert final.roles() == frozenset({Role.admin, Role.manager, Role.guardian})


@pytest.mark.asyncio
async def test_concurrent_writes_to_one_session_keep_both_roles(store: SessionStore) -> None:
    await _double_submit(store, store, store)


@pytest.mark.asyncio
async def test_concurrent_writers_in_separate_processes_keep_both_roles(
    sessionmaker: async_sessionmaker[AsyncSession], clock: FakeClock
) -> None:
    # Separate stores share no in-process lock; only the row version check serializes them.
    a = SessionStore(sessionmaker=sessionmaker, timeout_seconds=10.0, clock=clock)
    b = SessionStore(sessionmaker=sessionmaker, timeout_seconds=10.0, clock=clock)
    await _double_submit(a, b, a)


@pytest.mark.asyncio
async def test_session_row_version_advances_on_each_write(
    store: SessionStore, sessionmaker: async_sessionmaker[AsyncSession]
) -> None:
    container = await _reopen(store, None)
    await container.create(Role.admin, 1, {"name": "A", "email": "a@x", "active": True})
    await container.create(Role.guardian, 3, {"name": "M", "email": "m@x", "student_ids": []})

    async with sessionmaker() as session:
        row = await SessionRepo(session).load(container.session_id)
    assert row is not None
    assert row.version == 2


@pytest.mark.asyncio
async def test_sweep_removes_only_expired_rows(store: SessionStore, clock: FakeClock) -> None:
    old = await _reopen(store, None)
    await old.create(Role.admin, 1, {"name": "A", "email": "a@x", "active": True})

    clock.advance(TTL + timedelta(seconds=1))
    fresh = await _reopen(store, None)
    await fresh.create(Role.admin, 1, {"name": "A", "email": "a@x", "active": True})

    sweeper = SessionSweeper(store=store, interval_seconds=60)
    assert await sweeper.sweep_once() == 1
    assert await store.load(old.session_id) is None
    assert (await store.load(fresh.session_id)) is not None


class _SlowSessionmaker:
    """Stands in for a session backend that never answers in time."""

    def __call__(self) -> _SlowSessionmaker:
        return self

    async def __aenter__(self) -> None:
        await asyncio.sleep(10)

    async def __aexit__(self, *exc: object) -> None:
        return None


@pytest.mark.asyncio
async def test_slow_backend_fails_closed() -> None:
    store = SessionStore(
        sessionmaker=_SlowSessionmaker(),  # type: ignore[arg-type]
        timeout_seconds=0.05,
    )

    with pytest.raises(SessionBackendUnavailable):
        await store.load("some-sid")

    container = await _reopen(store, "some-sid")
    assert container.backend_available is False
    assert not admin_present(container)
    assert not manager_present(container)
    assert not guardian_present(container)

    with pytest.raises(SessionBackendUnavailable):
        await container.create(Role.admin, 1, {"name": "A", "email": "a@x", "active": True})
