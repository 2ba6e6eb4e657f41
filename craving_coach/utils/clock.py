"""Local wall-clock helpers."""

from __future__ import annotations

import datetime as dt
from typing import Callable
from zoneinfo import ZoneInfo

from craving_coach import settings

Clock = Callable[[], dt.datetime]


def local_now(tz_name: str = settings.TIMEZONE) -> dt.datetime:
    """Current time in ``tz_name`` as a naive local datetime."""
    return dt.datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def make_clock(tz_name: str = settings.TIMEZONE) -> Clock:
    ZoneInfo(tz_name)  # fail fast on unknown zones
    return lambda: local_now(tz_name)


def start_of_day(moment: dt.datetime) -> dt.datetime:
    return dt.datetime.combine(moment.date(), dt.time())
