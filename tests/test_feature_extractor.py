"""Tests for the feature extractor and its event-log derivations."""

from __future__ import annotations

import datetime as dt

import pytest

from craving_coach.core.coaching import features
from craving_coach.core.coaching.features import FeatureExtractor
from craving_coach.core.entities.features import Missing
from craving_coach.core.entities.user_profile import UserProfile
from craving_coach.core.errors import PersistenceError
from tests.conftest import NOW, USER_ID, FakeSignalProvider, make_event, make_events, seed


def _extractor(event_repo, profile_repo, signals, timeout: float = 0.5) -> FeatureExtractor:
    return FeatureExtractor(USER_ID, event_repo, profile_repo, signals, signal_timeout=timeout)


# ─────────────────────────────────────────────────────────────────────────────
# Pure derivations
# ─────────────────────────────────────────────────────────────────────────────


class TestStreak:
    def test_every_day_except_today(self):
        """Events on each of the previous 40 days but not today give a streak of 1."""
        events = make_events(NOW - dt.timedelta(days=d) for d in range(1, 41))
        assert features.current_abstinence_streak(events, NOW) == 1

    def test_event_today_breaks_streak(self):
        """Smoking today means no current streak."""
        events = [make_event(NOW - dt.timedelta(hours=1))]
        assert features.current_abstinence_streak(events, NOW) == 0

    def test_capped_at_lookback(self):
        """A gap longer than the lookback window is reported as 30 days."""
        events = [make_event(NOW - dt.timedelta(days=90))]
        assert features.current_abstinence_streak(events, NOW) == 30

    def test_empty_log_is_missing(self):
        """With no history the streak is unobserved rather than zero."""
        assert isinstance(features.current_abstinence_streak([], NOW), Missing)


class TestDerivations:
    def test_minutes_since_last_event_uses_newest(self):
        """The newest event wins regardless of input order."""
        events = make_events([NOW - dt.timedelta(hours=5), NOW - dt.timedelta(minutes=45)])
        assert features.minutes_since_last_event(events, NOW) == pytest.approx(45.0)

    def test_daily_average_counts_zero_days(self):
        """Sixty events in the last 30 days average to two per day."""
        events = make_events(NOW - dt.timedelta(hours=12 * i) for i in range(60))
        assert features.daily_average_rate(events, NOW) == pytest.approx(2.0)

    def test_daily_average_ignores_old_events(self):
        """Events before the window do not count."""
        events = make_events([NOW - dt.timedelta(days=45)])
        assert features.daily_average_rate(events, NOW) == 0.0

    def test_time_of_day_risk_saturates(self):
        """All events at the current hour give maximal risk."""
        events = make_events(NOW - dt.timedelta(days=d) for d in range(1, 5))
        assert features.time_of_day_risk(events, 14) == 1.0

    def test_time_of_day_risk_floor(self):
        """An hour never seen in the log still carries a small risk."""
        events = make_events(NOW - dt.timedelta(days=d) for d in range(1, 5))
        assert features.time_of_day_risk(events, 3) == pytest.approx(0.1)

    def test_recent_tags_only_looks_at_newest_five(self):
        """A tag on the sixth newest event is not recent."""
        events = make_events(NOW - dt.timedelta(hours=h) for h in range(1, 6))
        events.append(make_event(NOW - dt.timedelta(hours=10), "coffee"))
        assert features.has_recent_tags(events) is False
        events.append(make_event(NOW - dt.timedelta(minutes=5), "coffee"))
        assert features.has_recent_tags(events) is True

    def test_days_since_quit_date(self):
        """Days count from the quit date and never go negative."""
        past = UserProfile(user_id=USER_ID, daily_average=5, quit_date=NOW.date() - dt.timedelta(days=3))
        future = UserProfile(user_id=USER_ID, daily_average=5, quit_date=NOW.date() + dt.timedelta(days=3))
        assert features.days_since_quit_date(past, NOW) == 3
        assert features.days_since_quit_date(future, NOW) == 0
        assert isinstance(features.days_since_quit_date(None, NOW), Missing)


# ─────────────────────────────────────────────────────────────────────────────
# Extractor
# ─────────────────────────────────────────────────────────────────────────────


class TestFeatureExtractor:
    @pytest.mark.asyncio
    async def test_empty_history_defaults(self, event_repo, profile_repo, signals):
        """An empty log yields the documented neutral vector."""
        vector = await _extractor(event_repo, profile_repo, signals).compute(NOW)

        assert vector.minutes_since_last_event == 1440
        assert vector.time_of_day_risk == 0.5
        assert vector.current_abstinence_streak_days == 0
        assert vector.recent_activity_level == 1500
        assert vector.poor_sleep_flag is False
        assert vector.recent_nrt_use_flag is False
        assert vector.mindful_sessions_today == 0
        assert vector.hour_of_day == 14

    @pytest.mark.asyncio
    async def test_signals_flow_into_vector(self, event_repo, profile_repo):
        """Available signals are used as reported."""
        signals = FakeSignalProvider(activity=400.0, poor_sleep=True, nrt=True, mindful=2)
        vector = await _extractor(event_repo, profile_repo, signals).compute(NOW)

        assert vector.recent_activity_level == 400.0
        assert vector.poor_sleep_flag is True
        assert vector.recent_nrt_use_flag is True
        assert vector.mindful_sessions_today == 2

    @pytest.mark.asyncio
    async def test_failing_signal_uses_default(self, event_repo, profile_repo):
        """A raising signal is replaced by its default while others survive."""
        signals = FakeSignalProvider(activity=RuntimeError("sensor offline"), poor_sleep=True)
        vector = await _extractor(event_repo, profile_repo, signals).compute(NOW)

        assert vector.recent_activity_level == 1500
        assert vector.poor_sleep_flag is True

    @pytest.mark.asyncio
    async def test_slow_signal_times_out(self, event_repo, profile_repo):
        """Signals slower than the timeout fall back to defaults."""
        signals = FakeSignalProvider(activity=10.0, poor_sleep=True, nrt=True, mindful=3, delay=1.0)
        vector = await _extractor(event_repo, profile_repo, signals, timeout=0.05).compute(NOW)

        assert vector.recent_activity_level == 1500
        assert vector.poor_sleep_flag is False
        assert vector.recent_nrt_use_flag is False
        assert vector.mindful_sessions_today == 0

    @pytest.mark.asyncio
    async def test_event_history_features(self, event_repo, profile_repo, signals):
        """Log-derived features come from the repository snapshot."""
        seed(event_repo, make_events(NOW - dt.timedelta(days=d, minutes=30) for d in range(2, 6)))
        vector = await _extractor(event_repo, profile_repo, signals).compute(NOW)

        assert vector.current_abstinence_streak_days == 2
        assert vector.minutes_since_last_event == pytest.approx(2 * 1440 + 30)
        assert vector.daily_average_rate == pytest.approx(4 / 30)

    @pytest.mark.asyncio
    async def test_event_store_failure_propagates(self, event_repo, profile_repo, signals):
        """Persistence failures are not signals and are not swallowed."""
        event_repo.fail_reads = True
        with pytest.raises(PersistenceError):
            await _extractor(event_repo, profile_repo, signals).compute(NOW)
