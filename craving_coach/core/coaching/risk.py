"""Risk scoring and the safety gate applied before scheduling."""

from __future__ import annotations

import abc
import datetime as dt
import logging
from typing import Any, Protocol

from craving_coach.core.entities.decision import SuppressionReason
from craving_coach.core.entities.features import CoachFeatureVector

logger = logging.getLogger(__name__)

# Risk above which an intervention is considered at all
ACTIVATION_THRESHOLD = 0.6


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


class RiskScorer(Protocol):
    """Maps a feature vector to a craving risk in [0, 1]."""

    @abc.abstractmethod
    def score(self, vector: CoachFeatureVector) -> float: ...


class RuleBasedRiskScorer:
    """Additive risk terms followed by multiplicative protective factors.

    Protective factors apply after every additive term so NRT use and a
    long streak compound instead of capping risk independently.
    """

    def score(self, vector: CoachFeatureVector) -> float:
        risk = 0.0

        if vector.minutes_since_last_event < 60:
            risk += 0.3
        elif vector.minutes_since_last_event < 120:
            risk += 0.2

        risk += vector.time_of_day_risk * 0.4

        if vector.poor_sleep_flag:
            risk += 0.2
        if vector.recent_activity_level < 1000:
            risk += 0.15
        if vector.daily_average_rate > 15:
            risk += 0.1

        if vector.recent_nrt_use_flag:
            risk *= 0.7
        if vector.current_abstinence_streak_days > 0:
            risk *= max(0.3, 1.0 - vector.current_abstinence_streak_days / 30.0)

        return clamp(risk)


class ModelRiskScorer:
    """Adapter for a trained classifier exposing ``predict_proba``.

    Any model failure falls back to ``fallback`` so scoring never raises.
    """

    def __init__(self, model: Any, fallback: RiskScorer | None = None) -> None:
        self._model = model
        self._fallback = fallback or RuleBasedRiskScorer()

    def score(self, vector: CoachFeatureVector) -> float:
        try:
            probabilities = self._model.predict_proba([vector.numeric_row()])
            return clamp(float(probabilities[0][-1]))
        except Exception as exc:
            logger.warning("Risk model failed, using rule-based score: %s", exc)
            return self._fallback.score(vector)


class SafetyGate:
    """Hard vetoes evaluated for scores above the activation threshold.

    Rules are checked in priority order and the first one that fires wins.
    """

    def veto_reason(
        self, vector: CoachFeatureVector, risk_score: float, now: dt.datetime
    ) -> SuppressionReason | None:
        if vector.minutes_since_last_event < 10:
            return SuppressionReason.TOO_SOON_AFTER_EVENT

        hour = now.hour
        if (hour >= 23 or hour <= 5) and vector.time_of_day_risk < 0.8:
            return SuppressionReason.LATE_NIGHT

        if vector.current_abstinence_streak_days > 30 and vector.time_of_day_risk < 0.9:
            return SuppressionReason.LONG_STREAK

        return None

    def allows(self, vector: CoachFeatureVector, risk_score: float, now: dt.datetime) -> bool:
        return self.veto_reason(vector, risk_score, now) is None
