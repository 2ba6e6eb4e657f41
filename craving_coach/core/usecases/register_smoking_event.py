"""Register a smoking event, resolving its tags."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Sequence

from craving_coach.core.entities.smoking_event import SmokingEvent
from craving_coach.core.errors import ProfileNotFound
from craving_coach.core.interfaces.repositories.event_repo import (
    AbstractSmokingEventRepository,
    AbstractTagRepository,
)
from craving_coach.core.interfaces.repositories.profile_repo import AbstractUserProfileRepository

logger = logging.getLogger(__name__)


def execute(
    user_id: int,
    profile_repo: AbstractUserProfileRepository,
    event_repo: AbstractSmokingEventRepository,
    tag_repo: AbstractTagRepository,
    tag_names: Sequence[str] = (),
    now: dt.datetime | None = None,
) -> SmokingEvent:
    if profile_repo.get(user_id) is None:
        raise ProfileNotFound(user_id)

    seen: set[str] = set()
    tags = []
    for name in tag_names:
        key = name.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        tags.append(tag_repo.get_or_create(user_id, name))

    event = SmokingEvent(user_id=user_id, timestamp=now or dt.datetime.now(), tags=tuple(tags))
    event_repo.add(event)
    logger.info("Registered smoking event %s for user %s (tags: %s)", event.id, user_id, event.tag_names)
    return event
