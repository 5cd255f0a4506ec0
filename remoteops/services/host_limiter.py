"""Per-host session limits and orchestration exclusivity.

This is the only mutable state shared between concurrent invocations.
Per-host entries are dropped once nobody holds or waits on them, so the
tables stay bounded by the number of hosts currently in use.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from remoteops.utils.logging import get_logger

log = get_logger(__name__)


class HostLimiter:
    """Bounds parallel SSH sessions per host and serializes fix/retry pairs.

    ``session(host)`` is held for the lifetime of one remote session.
    ``exclusive(host)`` is held by an orchestrator while it runs its
    remediation and retry, so two orchestrations never interleave their
    follow-up commands on the same host.
    """

    def __init__(self, max_sessions_per_host: int = 4) -> None:
        if max_sessions_per_host < 1:
            raise ValueError("max_sessions_per_host must be >= 1")
        self._max = max_sessions_per_host
        self._semaphores: dict[str, _Slot] = {}
        self._locks: dict[str, _Slot] = {}

    @staticmethod
    def _key(host: str) -> str:
        return host.strip().lower()

    @asynccontextmanager
    async def _hold(
        self,
        table: dict[str, "_Slot"],
        host: str,
        factory: Callable[[], asyncio.Semaphore | asyncio.Lock],
        wait_event: str,
    ) -> AsyncIterator[None]:
        # Entries live only while someone holds or waits on them.
        key = self._key(host)
        slot = table.get(key)
        if slot is None:
            slot = table[key] = _Slot(factory())
        slot.users += 1
        try:
            if slot.primitive.locked():
                log.debug(wait_event, host=host, limit=self._max)
            async with slot.primitive:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0 and table.get(key) is slot:
                del table[key]

    @asynccontextmanager
    async def session(self, host: str) -> AsyncIterator[None]:
        async with self._hold(
            self._semaphores, host, lambda: asyncio.Semaphore(self._max), "limiter.session_wait",
        ):
            yield

    @asynccontextmanager
    async def exclusive(self, host: str) -> AsyncIterator[None]:
        async with self._hold(self._locks, host, asyncio.Lock, "limiter.exclusive_wait"):
            yield

    def is_exclusive_held(self, host: str) -> bool:
        slot = self._locks.get(self._key(host))
        return bool(slot and slot.primitive.locked())

    def tracked_hosts(self) -> int:
        """Hosts with a session or exclusive hold in use or awaited."""
        return len(set(self._semaphores) | set(self._locks))


class _Slot:
    __slots__ = ("primitive", "users")

    def __init__(self, primitive: asyncio.Semaphore | asyncio.Lock) -> None:
        self.primitive = primitive
        self.users = 0
