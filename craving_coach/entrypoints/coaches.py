"""Wiring of per-user coach engines over the SQLAlchemy repositories."""

from __future__ import annotations

import logging
import random

from craving_coach import settings
from craving_coach.core.coaching.engine import CoachEngine
from craving_coach.core.coaching.features import FeatureExtractor
from craving_coach.core.coaching.patterns import PatternAnalyzer
from craving_coach.core.coaching.risk import RiskScorer, RuleBasedRiskScorer, SafetyGate
from craving_coach.core.coaching.scheduler import InterventionScheduler
from craving_coach.core.coaching.tips import select_tip_generator
from craving_coach.core.interfaces.repositories.coach_state_repo import (
    AbstractFeatureHistoryRepository,
    AbstractSchedulerStateRepository,
)
from craving_coach.core.interfaces.repositories.event_repo import (
    AbstractSmokingEventRepository,
    AbstractTagRepository,
)
from craving_coach.core.interfaces.repositories.profile_repo import AbstractUserProfileRepository
from craving_coach.core.interfaces.tip_generator import TipGenerator
from craving_coach.dataproviders.repositories.coach_state_repository import (
    SqlAlchemyFeatureHistoryRepository,
    SqlAlchemySchedulerStateRepository,
)
from craving_coach.dataproviders.repositories.event_repository import (
    SqlAlchemySmokingEventRepository,
    SqlAlchemyTagRepository,
)
from craving_coach.dataproviders.repositories.profile_repository import (
    SqlAlchemyUserProfileRepository,
)
from craving_coach.dataproviders.signals import ReportedSignalProvider
from craving_coach.utils.clock import Clock, make_clock

logger = logging.getLogger(__name__)


class CoachRegistry:
    """Creates one engine (and one scheduler) per user and keeps it."""

    def __init__(
        self,
        profile_repo: AbstractUserProfileRepository,
        event_repo: AbstractSmokingEventRepository,
        tag_repo: AbstractTagRepository,
        state_repo: AbstractSchedulerStateRepository,
        history_repo: AbstractFeatureHistoryRepository | None = None,
        clock: Clock | None = None,
        scorer: RiskScorer | None = None,
        tips: TipGenerator | None = None,
    ) -> None:
        self.profile_repo = profile_repo
        self.event_repo = event_repo
        self.tag_repo = tag_repo
        self.state_repo = state_repo
        self.history_repo = history_repo
        self.clock = clock or make_clock()
        self._scorer = scorer or RuleBasedRiskScorer()
        self._tips = tips or select_tip_generator(settings.TIP_GENERATOR, random.Random())
        self._gate = SafetyGate()
        self._engines: dict[int, CoachEngine] = {}
        self._signals: dict[int, ReportedSignalProvider] = {}

    def signals(self, user_id: int) -> ReportedSignalProvider:
        if user_id not in self._signals:
            self._signals[user_id] = ReportedSignalProvider()
        return self._signals[user_id]

    def engine(self, user_id: int) -> CoachEngine:
        engine = self._engines.get(user_id)
        if engine is None:
            engine = CoachEngine(
                user_id=user_id,
                event_repo=self.event_repo,
                profile_repo=self.profile_repo,
                extractor=FeatureExtractor(
                    user_id,
                    self.event_repo,
                    self.profile_repo,
                    self.signals(user_id),
                    signal_timeout=settings.SIGNAL_TIMEOUT_SECONDS,
                ),
                scorer=self._scorer,
                gate=self._gate,
                scheduler=InterventionScheduler(user_id, self.state_repo),
                analyzer=PatternAnalyzer(),
                tips=self._tips,
                clock=self.clock,
                history_repo=self.history_repo,
                history_size=settings.FEATURE_HISTORY_SIZE,
            )
            self._engines[user_id] = engine
            logger.debug("Created coach engine for user %s", user_id)
        return engine


def build_registry(clock: Clock | None = None) -> CoachRegistry:
    return CoachRegistry(
        profile_repo=SqlAlchemyUserProfileRepository(),
        event_repo=SqlAlchemySmokingEventRepository(),
        tag_repo=SqlAlchemyTagRepository(),
        state_repo=SqlAlchemySchedulerStateRepository(),
        history_repo=SqlAlchemyFeatureHistoryRepository(),
        clock=clock,
    )
