"""One evaluation of the coaching pipeline for a single user."""

from __future__ import annotations

import datetime as dt
import logging

from craving_coach.core.coaching.engine import CoachEngine
from craving_coach.core.entities.decision import InterventionDecision, Nudge
from craving_coach.core.errors import PersistenceError
from craving_coach.core.interfaces.notifier import AbstractNotifier
from craving_coach.core.usecases import analyze_behavior

logger = logging.getLogger(__name__)


async def execute(
    engine: CoachEngine,
    notifier: AbstractNotifier | None = None,
    now: dt.datetime | None = None,
) -> InterventionDecision | None:
    """Decide and, for a nudge, deliver it.

    Insights are re-mined first when they are missing or stale so the
    nudge text can mention the user's own triggers. Returns ``None`` when
    the event store could not be read. A failed delivery is logged; the
    nudge stays counted.
    """
    if engine.insights_stale(now):
        analyze_behavior.execute(engine, now)

    try:
        decision = await engine.decide(now)
    except PersistenceError as exc:
        logger.warning("Coach cycle for user %s skipped: %s", engine.user_id, exc)
        return None

    if isinstance(decision, Nudge) and notifier is not None:
        try:
            await notifier.deliver(engine.user_id, decision.request)
        except Exception as exc:
            logger.warning(
                "Delivery of %s to user %s failed: %s", decision.request.request_id, engine.user_id, exc
            )
    return decision
