"""Contract for best-effort physiological and activity signals.

Every method may raise :class:`~craving_coach.core.errors.SignalUnavailable`
(or anything else); callers substitute a neutral default.
"""

from __future__ import annotations

import abc
import datetime as dt
from typing import Protocol


class AbstractSignalProvider(Protocol):

    @abc.abstractmethod
    async def recent_activity_level(self, now: dt.datetime, window: dt.timedelta) -> float: ...

    @abc.abstractmethod
    async def poor_sleep_last_night(self, now: dt.datetime) -> bool: ...

    @abc.abstractmethod
    async def recent_nrt_use(self, now: dt.datetime, window: dt.timedelta) -> bool: ...

    @abc.abstractmethod
    async def mindful_sessions_today(self, now: dt.datetime) -> int: ...
