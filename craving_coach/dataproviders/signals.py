"""Signal provider fed by the user's own reports (/steps, /sleep, /nrt, /mindful)."""

from __future__ import annotations

import datetime as dt
import logging
from collections import deque
from typing import Deque, Tuple

from craving_coach.core.errors import SignalUnavailable
from craving_coach.core.interfaces.signal_provider import AbstractSignalProvider

logger = logging.getLogger(__name__)

RETENTION = dt.timedelta(days=2)
SLEEP_REPORT_VALIDITY = dt.timedelta(hours=18)


class ReportedSignalProvider(AbstractSignalProvider):
    """In-memory, per-user store of timestamped self-reports.

    A query raises :class:`SignalUnavailable` when no report covers it.
    """

    def __init__(self) -> None:
        self._steps: Deque[Tuple[dt.datetime, int]] = deque()
        self._sleep: Deque[Tuple[dt.datetime, bool]] = deque()
        self._nrt: Deque[dt.datetime] = deque()
        self._mindful: Deque[dt.datetime] = deque()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def report_steps(self, at: dt.datetime, steps: int) -> None:
        if steps < 0:
            raise ValueError("steps must be >= 0")
        self._steps.append((at, steps))
        self._prune(at)

    def report_sleep(self, at: dt.datetime, poor: bool) -> None:
        self._sleep.append((at, poor))
        self._prune(at)

    def report_nrt(self, at: dt.datetime) -> None:
        self._nrt.append(at)
        self._prune(at)

    def report_mindful_session(self, at: dt.datetime) -> None:
        self._mindful.append(at)
        self._prune(at)

    def _prune(self, now: dt.datetime) -> None:
        cutoff = now - RETENTION
        while self._steps and self._steps[0][0] < cutoff:
            self._steps.popleft()
        while self._sleep and self._sleep[0][0] < cutoff:
            self._sleep.popleft()
        while self._nrt and self._nrt[0] < cutoff:
            self._nrt.popleft()
        while self._mindful and self._mindful[0] < cutoff:
            self._mindful.popleft()

    # ------------------------------------------------------------------
    # AbstractSignalProvider
    # ------------------------------------------------------------------

    async def recent_activity_level(self, now: dt.datetime, window: dt.timedelta) -> float:
        reports = [steps for at, steps in self._steps if now - window <= at <= now]
        if not reports:
            raise SignalUnavailable("no step reports in window")
        return float(sum(reports))

    async def poor_sleep_last_night(self, now: dt.datetime) -> bool:
        for at, poor in reversed(self._sleep):
            if at <= now and now - at <= SLEEP_REPORT_VALIDITY:
                return poor
        raise SignalUnavailable("no recent sleep report")

    async def recent_nrt_use(self, now: dt.datetime, window: dt.timedelta) -> bool:
        if not self._nrt:
            raise SignalUnavailable("no NRT reports")
        return any(now - window <= at <= now for at in self._nrt)

    async def mindful_sessions_today(self, now: dt.datetime) -> int:
        if not self._mindful:
            raise SignalUnavailable("no mindfulness reports")
        return sum(1 for at in self._mindful if at.date() == now.date() and at <= now)
