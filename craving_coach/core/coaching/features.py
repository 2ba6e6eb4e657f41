"""Computes the coach feature vector for a moment in time."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Awaitable, Sequence, TypeVar

from craving_coach import settings
from craving_coach.core.coaching.streaks import events_per_day, hour_histogram
from craving_coach.core.entities.features import (
    AVERAGE_WINDOW_DAYS,
    DEFAULT_ACTIVITY_LEVEL,
    DEFAULT_TIME_OF_DAY_RISK,
    NO_HISTORY_MINUTES,
    RECENT_TAGS_WINDOW,
    STREAK_LOOKBACK_DAYS,
    CoachFeatureVector,
    Missing,
    Observed,
    or_default,
)
from craving_coach.core.entities.smoking_event import SmokingEvent
from craving_coach.core.entities.user_profile import UserProfile
from craving_coach.core.interfaces.repositories.event_repo import AbstractSmokingEventRepository
from craving_coach.core.interfaces.repositories.profile_repo import AbstractUserProfileRepository
from craving_coach.core.interfaces.signal_provider import AbstractSignalProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACTIVITY_WINDOW = dt.timedelta(hours=3)
NRT_WINDOW = dt.timedelta(hours=12)


# ---------------------------------------------------------------------------
# Event-log derivations (pure)
# ---------------------------------------------------------------------------


def minutes_since_last_event(events: Sequence[SmokingEvent], now: dt.datetime) -> Observed[float]:
    if not events:
        return Missing("empty_log")
    last = max(e.timestamp for e in events)
    return max(0.0, (now - last).total_seconds() / 60.0)


def current_abstinence_streak(events: Sequence[SmokingEvent], now: dt.datetime) -> Observed[int]:
    """Consecutive zero-event days ending today, never more than the lookback."""
    if not events:
        return Missing("empty_log")

    counts = events_per_day(events)
    today = now.date()
    streak = 0
    for offset in range(STREAK_LOOKBACK_DAYS):
        if counts.get(today - dt.timedelta(days=offset), 0) > 0:
            break
        streak += 1
    return streak


def daily_average_rate(events: Sequence[SmokingEvent], now: dt.datetime) -> float:
    # zero-event days count toward the denominator
    window_start = now - dt.timedelta(days=AVERAGE_WINDOW_DAYS)
    recent = sum(1 for e in events if e.timestamp >= window_start)
    return recent / AVERAGE_WINDOW_DAYS


def has_recent_tags(events: Sequence[SmokingEvent]) -> bool:
    newest = sorted(events, key=lambda e: e.timestamp, reverse=True)[:RECENT_TAGS_WINDOW]
    return any(e.has_tags for e in newest)


def time_of_day_risk(events: Sequence[SmokingEvent], hour: int) -> Observed[float]:
    if not events:
        return Missing("empty_log")
    ratio = hour_histogram(events)[hour] / len(events)
    return min(1.0, max(0.1, ratio * 24.0))


def days_since_quit_date(profile: UserProfile | None, now: dt.datetime) -> Observed[int]:
    if profile is None:
        return Missing("no_profile")
    if profile.quit_date is None:
        return Missing("no_quit_date")
    return max(0, (now.date() - profile.quit_date).days)


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class FeatureExtractor:
    """Builds a fully populated :class:`CoachFeatureVector` for one user.

    Signal lookups run concurrently, each bounded by ``signal_timeout``; a
    failing or slow signal is replaced by its neutral default. Event store
    failures are not signals and propagate as ``PersistenceError``.
    """

    def __init__(
        self,
        user_id: int,
        event_repo: AbstractSmokingEventRepository,
        profile_repo: AbstractUserProfileRepository,
        signals: AbstractSignalProvider,
        signal_timeout: float = settings.SIGNAL_TIMEOUT_SECONDS,
    ) -> None:
        self.user_id = user_id
        self._event_repo = event_repo
        self._profile_repo = profile_repo
        self._signals = signals
        self._signal_timeout = signal_timeout

    async def compute(self, now: dt.datetime) -> CoachFeatureVector:
        events = self._event_repo.list_by_user(self.user_id)
        profile = self._profile_repo.get(self.user_id)
        return await self.compute_from(events, profile, now)

    async def compute_from(
        self,
        events: Sequence[SmokingEvent],
        profile: UserProfile | None,
        now: dt.datetime,
    ) -> CoachFeatureVector:
        activity, poor_sleep, nrt, mindful = await asyncio.gather(
            self._signal("recent_activity_level", self._signals.recent_activity_level(now, ACTIVITY_WINDOW)),
            self._signal("poor_sleep_last_night", self._signals.poor_sleep_last_night(now)),
            self._signal("recent_nrt_use", self._signals.recent_nrt_use(now, NRT_WINDOW)),
            self._signal("mindful_sessions_today", self._signals.mindful_sessions_today(now)),
        )

        vector = CoachFeatureVector(
            minutes_since_last_event=or_default(minutes_since_last_event(events, now), NO_HISTORY_MINUTES),
            hour_of_day=now.hour,
            recent_activity_level=max(0.0, float(or_default(activity, DEFAULT_ACTIVITY_LEVEL))),
            poor_sleep_flag=bool(or_default(poor_sleep, False)),
            recent_nrt_use_flag=bool(or_default(nrt, False)),
            days_since_quit_date=or_default(days_since_quit_date(profile, now), 0),
            current_abstinence_streak_days=or_default(current_abstinence_streak(events, now), 0),
            daily_average_rate=daily_average_rate(events, now),
            has_recent_tags_flag=has_recent_tags(events),
            time_of_day_risk=or_default(time_of_day_risk(events, now.hour), DEFAULT_TIME_OF_DAY_RISK),
            mindful_sessions_today=max(0, int(or_default(mindful, 0))),
        )
        logger.debug("Features for user %s: %s", self.user_id, vector.as_dict())
        return vector

    async def _signal(self, name: str, call: Awaitable[T]) -> Observed[T]:
        try:
            return await asyncio.wait_for(call, timeout=self._signal_timeout)
        except asyncio.TimeoutError:
            logger.debug("Signal %s timed out after %.1fs, using fallback", name, self._signal_timeout)
            return Missing("timeout")
        except Exception as exc:
            logger.debug("Signal %s unavailable, using fallback: %s", name, exc)
            return Missing(str(exc) or type(exc).__name__)
