"""Per-subject serialisation of baseline mutations."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = structlog.get_logger(__name__)


class SubjectLocks:
    """A FIFO asyncio.Lock per subject.

    Waiters on the same subject are woken in the order they arrived, so
    results for a subject come back in request order. Locks are dropped once
    nobody holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def is_locked(self, subject: str) -> bool:
        lock = self._locks.get(subject)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, subject: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(subject, asyncio.Lock())
        self._users[subject] = self._users.get(subject, 0) + 1
        if lock.locked():
            logger.info("subject_busy_waiting", subject=subject)
        try:
            async with lock:
                yield
        finally:
            self._users[subject] -= 1
            if self._users[subject] == 0:
                del self._users[subject]
                del self._locks[subject]
