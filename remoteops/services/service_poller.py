"""Service stabilization poller.

Polls a control plane until ``running == desired and pending == 0`` or
the wait budget runs out. Read-only; safe to run concurrently for
different services.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from remoteops.config import Settings, settings
from remoteops.models.service import PollOutcome, ServiceRef, ServiceStatusSnapshot
from remoteops.utils.logging import get_logger
from remoteops.utils.timer import CancellableTimer

log = get_logger(__name__)


class ServiceStatusSource(Protocol):
    async def describe(self, ref: ServiceRef) -> ServiceStatusSnapshot:
        """Fetch current replica counts; raise ServiceNotFoundError if unknown."""


class ServicePoller:
    def __init__(
        self,
        source: ServiceStatusSource,
        cfg: Settings | None = None,
        *,
        interval: float | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._source = source
        self._interval = interval if interval is not None else self._cfg.poll_interval_seconds

    async def await_stable(
        self,
        ref: ServiceRef,
        max_wait_seconds: float | None = None,
        stop: Optional[asyncio.Event] = None,
        *,
        timer: Optional[CancellableTimer] = None,
    ) -> PollOutcome:
        """Poll until stable, timed out, or *stop* is set.

        Returns on the first stable snapshot without polling again. On
        timeout the last fetched snapshot is returned with ``timed_out``.
        Setting *stop* ends the wait at once with ``cancelled``; cancelling
        the task raises CancelledError as usual. A custom *timer* carries
        its own stop event, so passing both *timer* and *stop* is an error.
        """
        if timer is not None and stop is not None:
            raise ValueError("pass stop to the CancellableTimer, not alongside it")
        budget = max_wait_seconds or ref.max_wait_seconds or self._cfg.poll_max_wait_seconds
        _timer = timer or CancellableTimer(stop)
        started = _timer.now()
        deadline = started + budget
        snapshot: Optional[ServiceStatusSnapshot] = None
        polls = 0

        log.info(
            "poller.start",
            service=ref.service_id,
            cluster=ref.cluster_id,
            max_wait=budget,
        )
        while True:
            if _timer.stopped:
                return self._outcome(ref, snapshot, polls, _timer.now() - started, cancelled=True)

            snapshot = await self._source.describe(ref)
            polls += 1
            log.debug(
                "poller.snapshot",
                service=ref.service_id,
                desired=snapshot.desired_count,
                running=snapshot.running_count,
                pending=snapshot.pending_count,
                status=snapshot.status,
            )
            if snapshot.is_stable:
                return self._outcome(ref, snapshot, polls, _timer.now() - started, stable=True)

            remaining = deadline - _timer.now()
            if remaining <= 0:
                return self._outcome(ref, snapshot, polls, _timer.now() - started, timed_out=True)

            if not await _timer.wait(min(self._interval, remaining)):
                return self._outcome(ref, snapshot, polls, _timer.now() - started, cancelled=True)

    @staticmethod
    def _outcome(
        ref: ServiceRef,
        snapshot: Optional[ServiceStatusSnapshot],
        polls: int,
        elapsed: float,
        *,
        stable: bool = False,
        timed_out: bool = False,
        cancelled: bool = False,
    ) -> PollOutcome:
        if stable:
            log.info("poller.stable", service=ref.service_id, polls=polls, elapsed=round(elapsed, 1))
        elif timed_out:
            log.warning("poller.timeout", service=ref.service_id, polls=polls, elapsed=round(elapsed, 1))
        else:
            log.info("poller.stopped", service=ref.service_id, polls=polls)
        return PollOutcome(
            stable=stable,
            timed_out=timed_out,
            cancelled=cancelled,
            snapshot=snapshot,
            polls=polls,
            elapsed_seconds=elapsed,
        )
