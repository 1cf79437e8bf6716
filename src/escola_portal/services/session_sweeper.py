"""
escola_portal.services.session_sweeper

Periodic reclamation of expired session rows.
"""

from __future__ import annotations

import asyncio
import contextlib

from escola_portal.auth.errors import SessionBackendUnavailable
from escola_portal.auth.sessions import SessionStore
from escola_portal.observability.logging import get_logger

log = get_logger(__name__)


class SessionSweeper:
    def __init__(self, *, store: SessionStore, interval_seconds: float) -> None:
        self._store = store
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    async def sweep_once(self) -> int:
        try:
            removed = await self._store.sweep()
        except SessionBackendUnavailable:
            # Already logged by the store; retry on the next tick.
            return 0
        if removed:
            log.info("sessions_swept", removed=removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.sweep_once()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="session-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
