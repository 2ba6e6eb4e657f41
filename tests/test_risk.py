"""Tests for risk scoring and the safety gate."""

from __future__ import annotations

import datetime as dt
import itertools

import pytest

from craving_coach.core.coaching.engine import CoachEngine
from craving_coach.core.coaching.features import FeatureExtractor
from craving_coach.core.coaching.patterns import PatternAnalyzer
from craving_coach.core.coaching.risk import ModelRiskScorer, RuleBasedRiskScorer, SafetyGate
from craving_coach.core.coaching.tips import ContextualTipGenerator
from craving_coach.core.entities.decision import Suppressed, SuppressionReason
from tests.conftest import NOW, USER_ID, make_event, make_vector, seed


class _ConstantScorer:
    def __init__(self, value: float) -> None:
        self.value = value

    def score(self, vector) -> float:
        return self.value


class _FakeModel:
    def __init__(self, probabilities=None, error: Exception | None = None) -> None:
        self.probabilities = probabilities
        self.error = error
        self.rows = None

    def predict_proba(self, rows):
        self.rows = rows
        if self.error:
            raise self.error
        return self.probabilities


# ─────────────────────────────────────────────────────────────────────────────
# Rule-based scorer
# ─────────────────────────────────────────────────────────────────────────────


class TestRuleBasedRiskScorer:
    def test_baseline(self):
        """Only the time-of-day term applies for a quiet afternoon."""
        assert RuleBasedRiskScorer().score(make_vector()) == pytest.approx(0.2)

    @pytest.mark.parametrize(
        "minutes, expected",
        [(30.0, 0.5), (59.9, 0.5), (60.0, 0.4), (119.0, 0.4), (120.0, 0.2)],
    )
    def test_recency_terms(self, minutes, expected):
        """Recency adds 0.3 under an hour and 0.2 under two hours."""
        vector = make_vector(minutes_since_last_event=minutes)
        assert RuleBasedRiskScorer().score(vector) == pytest.approx(expected)

    def test_all_additive_terms_clamp_to_one(self):
        """Every risk term at once exceeds 1 and is clamped."""
        vector = make_vector(
            minutes_since_last_event=30,
            time_of_day_risk=1.0,
            poor_sleep_flag=True,
            recent_activity_level=500,
            daily_average_rate=20,
        )
        assert RuleBasedRiskScorer().score(vector) == 1.0

    def test_nrt_is_protective(self):
        """NRT use scales the accumulated risk by 0.7."""
        vector = make_vector(minutes_since_last_event=30, time_of_day_risk=1.0, recent_nrt_use_flag=True)
        assert RuleBasedRiskScorer().score(vector) == pytest.approx(0.7 * 0.7)

    @pytest.mark.parametrize("streak, factor", [(15, 0.5), (21, 0.3), (60, 0.3)])
    def test_streak_is_protective(self, streak, factor):
        """The streak factor decays linearly and bottoms out at 0.3."""
        vector = make_vector(time_of_day_risk=1.0, current_abstinence_streak_days=streak)
        assert RuleBasedRiskScorer().score(vector) == pytest.approx(0.4 * factor)

    def test_protective_factors_compound(self):
        """NRT and streak multiply together."""
        vector = make_vector(
            time_of_day_risk=1.0, recent_nrt_use_flag=True, current_abstinence_streak_days=15
        )
        assert RuleBasedRiskScorer().score(vector) == pytest.approx(0.4 * 0.7 * 0.5)

    def test_scores_stay_in_unit_interval(self):
        """Extreme combinations of inputs never leave [0, 1]."""
        scorer = RuleBasedRiskScorer()
        for minutes, tod, sleep, activity, rate, nrt, streak in itertools.product(
            (0.0, 59.0, 1e6),
            (0.0, 0.1, 1.0),
            (False, True),
            (0.0, 1e6),
            (0.0, 100.0),
            (False, True),
            (0, 1, 1000),
        ):
            vector = make_vector(
                minutes_since_last_event=minutes,
                time_of_day_risk=tod,
                poor_sleep_flag=sleep,
                recent_activity_level=activity,
                daily_average_rate=rate,
                recent_nrt_use_flag=nrt,
                current_abstinence_streak_days=streak,
            )
            assert 0.0 <= scorer.score(vector) <= 1.0


class TestModelRiskScorer:
    def test_uses_positive_class_probability(self):
        """The last column of predict_proba is the craving probability."""
        model = _FakeModel([[0.25, 0.75]])
        assert ModelRiskScorer(model).score(make_vector()) == pytest.approx(0.75)
        assert len(model.rows[0]) == 11

    def test_clamps_model_output(self):
        """Out-of-range model output is clamped."""
        assert ModelRiskScorer(_FakeModel([[1.7]])).score(make_vector()) == 1.0

    def test_falls_back_on_model_error(self):
        """A failing model defers to the rule-based score."""
        vector = make_vector(minutes_since_last_event=30)
        scorer = ModelRiskScorer(_FakeModel(error=ValueError("bad shape")))
        assert scorer.score(vector) == pytest.approx(RuleBasedRiskScorer().score(vector))


# ─────────────────────────────────────────────────────────────────────────────
# Safety gate
# ─────────────────────────────────────────────────────────────────────────────


class TestSafetyGate:
    def test_too_soon_after_event(self):
        """A cigarette under ten minutes ago vetoes any nudge."""
        vector = make_vector(minutes_since_last_event=5)
        assert SafetyGate().veto_reason(vector, 0.99, NOW) is SuppressionReason.TOO_SOON_AFTER_EVENT

    @pytest.mark.parametrize("hour", [23, 0, 3, 5])
    def test_late_night(self, hour):
        """Late night is vetoed unless the hour is itself risky."""
        now = NOW.replace(hour=hour)
        assert SafetyGate().veto_reason(make_vector(time_of_day_risk=0.5), 0.9, now) is SuppressionReason.LATE_NIGHT
        assert SafetyGate().veto_reason(make_vector(time_of_day_risk=0.85), 0.9, now) is None

    @pytest.mark.parametrize("hour", [6, 14, 22])
    def test_daytime_allowed(self, hour):
        """Hours outside 23:00-05:59 pass the night rule."""
        assert SafetyGate().allows(make_vector(time_of_day_risk=0.1), 0.9, NOW.replace(hour=hour))

    def test_long_streak(self):
        """Long streaks are left alone unless the hour is very risky."""
        long_streak = make_vector(current_abstinence_streak_days=31, time_of_day_risk=0.85)
        assert SafetyGate().veto_reason(long_streak, 0.9, NOW) is SuppressionReason.LONG_STREAK

        risky_hour = make_vector(current_abstinence_streak_days=31, time_of_day_risk=0.95)
        assert SafetyGate().veto_reason(risky_hour, 0.9, NOW) is None

    def test_rules_apply_in_priority_order(self):
        """When several rules fire, the recency rule is reported."""
        vector = make_vector(minutes_since_last_event=1, current_abstinence_streak_days=40)
        assert SafetyGate().veto_reason(vector, 1.0, NOW.replace(hour=2)) is SuppressionReason.TOO_SOON_AFTER_EVENT


class TestVetoIsAbsolute:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "minutes_ago, hour, reason",
        [
            (5, 14, SuppressionReason.TOO_SOON_AFTER_EVENT),
            (120, 2, SuppressionReason.LATE_NIGHT),
        ],
    )
    async def test_maximal_risk_still_suppressed(
        self, event_repo, profile_repo, signals, scheduler, minutes_ago, hour, reason
    ):
        """Even a risk of 1.0 cannot override a veto."""
        now = NOW.replace(hour=hour)
        seed(event_repo, [make_event(now - dt.timedelta(minutes=minutes_ago))])
        scheduler.set_quiet_hours(0, 0)
        engine = CoachEngine(
            user_id=USER_ID,
            event_repo=event_repo,
            profile_repo=profile_repo,
            extractor=FeatureExtractor(USER_ID, event_repo, profile_repo, signals),
            scorer=_ConstantScorer(1.0),
            gate=SafetyGate(),
            scheduler=scheduler,
            analyzer=PatternAnalyzer(),
            tips=ContextualTipGenerator(),
            clock=lambda: now,
        )

        decision = await engine.decide(now)

        assert decision == Suppressed(reason)
        assert scheduler.state.interventions_sent_today == 0
