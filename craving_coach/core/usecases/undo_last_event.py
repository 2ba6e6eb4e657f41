"""Undo the last smoking event if within allowed window."""

from __future__ import annotations

import datetime as dt
import logging

from craving_coach.core.entities.smoking_event import SmokingEvent
from craving_coach.core.errors import CannotUndo
from craving_coach.core.interfaces.repositories.event_repo import AbstractSmokingEventRepository

logger = logging.getLogger(__name__)

ALLOWED_MINUTES = 10


def execute(
    user_id: int,
    event_repo: AbstractSmokingEventRepository,
    now: dt.datetime | None = None,
) -> SmokingEvent:
    last_event = event_repo.get_last(user_id)
    if not last_event:
        raise CannotUndo("No event to undo")

    now = now or dt.datetime.now()
    if (now - last_event.timestamp).total_seconds() > ALLOWED_MINUTES * 60:
        raise CannotUndo("Too late to undo")

    if last_event.id is None:
        raise CannotUndo("Event has no identifier")
    event_repo.delete(last_event.id)
    logger.info("Undid smoking event %s for user %s", last_event.id, user_id)
    return last_event
