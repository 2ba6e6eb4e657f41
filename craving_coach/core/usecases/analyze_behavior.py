"""Insight refresh for a single user."""

from __future__ import annotations

import datetime as dt
import logging
from typing import List

from craving_coach.core.coaching.engine import CoachEngine
from craving_coach.core.entities.insight import BehavioralInsight
from craving_coach.core.errors import PersistenceError

logger = logging.getLogger(__name__)


def execute(engine: CoachEngine, now: dt.datetime | None = None) -> List[BehavioralInsight]:
    try:
        insights = engine.analyze_behavior(now)
    except PersistenceError as exc:
        logger.warning("Behaviour analysis for user %s skipped: %s", engine.user_id, exc)
        return []
    logger.info("Refreshed %d insights for user %s", len(insights), engine.user_id)
    return insights
