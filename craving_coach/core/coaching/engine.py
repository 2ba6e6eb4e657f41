"""Per-user coaching engine: evaluate now, possibly schedule a nudge."""

from __future__ import annotations

import datetime as dt
import logging
from typing import List

from craving_coach import settings
from craving_coach.core.coaching.features import FeatureExtractor
from craving_coach.core.coaching.patterns import PatternAnalyzer, contextual_insights
from craving_coach.core.coaching.risk import ACTIVATION_THRESHOLD, RiskScorer, SafetyGate
from craving_coach.core.coaching.scheduler import InterventionScheduler
from craving_coach.core.entities.decision import InterventionDecision, Suppressed, SuppressionReason
from craving_coach.core.entities.features import CoachFeatureVector, FeatureSnapshot
from craving_coach.core.entities.insight import BehavioralInsight, SmokingPattern
from craving_coach.core.interfaces.repositories.coach_state_repo import (
    AbstractFeatureHistoryRepository,
)
from craving_coach.core.interfaces.repositories.event_repo import AbstractSmokingEventRepository
from craving_coach.core.interfaces.repositories.profile_repo import AbstractUserProfileRepository
from craving_coach.core.interfaces.tip_generator import TipGenerator
from craving_coach.utils.clock import Clock

logger = logging.getLogger(__name__)

RECENT_EVENTS_WINDOW = dt.timedelta(hours=3)
INSIGHT_REFRESH_INTERVAL = dt.timedelta(hours=6)


class CoachEngine:
    """Composes feature extraction, scoring, the safety gate and scheduling.

    One engine (and therefore one scheduler) exists per user and process;
    collaborators are injected at construction.
    """

    def __init__(
        self,
        user_id: int,
        event_repo: AbstractSmokingEventRepository,
        profile_repo: AbstractUserProfileRepository,
        extractor: FeatureExtractor,
        scorer: RiskScorer,
        gate: SafetyGate,
        scheduler: InterventionScheduler,
        analyzer: PatternAnalyzer,
        tips: TipGenerator,
        clock: Clock,
        history_repo: AbstractFeatureHistoryRepository | None = None,
        history_size: int = settings.FEATURE_HISTORY_SIZE,
    ) -> None:
        self.user_id = user_id
        self._event_repo = event_repo
        self._profile_repo = profile_repo
        self._extractor = extractor
        self._scorer = scorer
        self._gate = gate
        self.scheduler = scheduler
        self._analyzer = analyzer
        self._tips = tips
        self._clock = clock
        self._history_repo = history_repo
        self._history_size = history_size
        self._insights: List[BehavioralInsight] = []
        self._insights_at: dt.datetime | None = None

    @property
    def latest_insights(self) -> List[BehavioralInsight]:
        return list(self._insights)

    async def decide(self, now: dt.datetime | None = None) -> InterventionDecision:
        now = now or self._clock()
        events = self._event_repo.list_by_user(self.user_id)
        profile = self._profile_repo.get(self.user_id)

        vector = await self._extractor.compute_from(events, profile, now)
        self._remember(now, vector)

        risk = self._scorer.score(vector)
        if risk <= ACTIVATION_THRESHOLD:
            logger.debug("Risk %.2f for user %s below activation threshold", risk, self.user_id)
            return Suppressed(SuppressionReason.BELOW_THRESHOLD)

        veto = self._gate.veto_reason(vector, risk, now)
        if veto is not None:
            logger.debug("Safety gate vetoed nudge for user %s: %s", self.user_id, veto.value)
            return Suppressed(veto)

        recent = [e for e in events if now - e.timestamp <= RECENT_EVENTS_WINDOW]
        tip = self._tips.generate(vector, contextual_insights(self._insights, now, recent))
        return self.scheduler.try_schedule(risk, now, message=tip)

    def analyze_behavior(self, now: dt.datetime | None = None) -> List[BehavioralInsight]:
        now = now or self._clock()
        events = self._event_repo.list_by_user(self.user_id)
        profile = self._profile_repo.get(self.user_id)
        self._insights = self._analyzer.analyze(events, profile, now)
        self._insights_at = now
        return list(self._insights)

    def insights_stale(self, now: dt.datetime | None = None) -> bool:
        """True before the first analysis or once the last one is too old."""
        now = now or self._clock()
        return self._insights_at is None or now - self._insights_at >= INSIGHT_REFRESH_INTERVAL

    def behavior_summary(self, now: dt.datetime | None = None) -> SmokingPattern:
        now = now or self._clock()
        events = self._event_repo.list_by_user(self.user_id)
        profile = self._profile_repo.get(self.user_id)
        return self._analyzer.summarize(events, profile, now)

    def last_snapshot(self) -> FeatureSnapshot | None:
        if self._history_repo is None:
            return None
        recent = self._history_repo.list_recent(self.user_id, limit=1)
        return recent[0] if recent else None

    # ------------------------------------------------------------------
    # Scheduler configuration surface
    # ------------------------------------------------------------------

    def set_quiet_hours(self, start: int, end: int) -> None:
        self.scheduler.set_quiet_hours(start, end)

    def set_max_per_day(self, n: int) -> None:
        self.scheduler.set_max_per_day(n)

    def set_minimum_interval(self, seconds: float) -> None:
        self.scheduler.set_minimum_interval(seconds)

    def _remember(self, now: dt.datetime, vector: CoachFeatureVector) -> None:
        if self._history_repo is None:
            return
        try:
            self._history_repo.append(self.user_id, FeatureSnapshot(now, vector), keep=self._history_size)
        except Exception as exc:
            logger.warning("Could not cache feature vector for user %s: %s", self.user_id, exc)
