"""Tag reassignment and removal."""

from __future__ import annotations

import logging
from typing import Sequence

from craving_coach.core.entities.smoking_event import Tag
from craving_coach.core.interfaces.repositories.event_repo import (
    AbstractSmokingEventRepository,
    AbstractTagRepository,
)

logger = logging.getLogger(__name__)


def assign_tags(
    user_id: int,
    event_id: int,
    tag_names: Sequence[str],
    event_repo: AbstractSmokingEventRepository,
    tag_repo: AbstractTagRepository,
) -> list[Tag]:
    """Replace the tags on an event; an empty list clears them."""
    tags: dict[str, Tag] = {}
    for name in tag_names:
        if name.strip():
            tag = tag_repo.get_or_create(user_id, name)
            tags.setdefault(tag.key, tag)
    event_repo.set_tags(event_id, [t.id for t in tags.values() if t.id is not None])
    return list(tags.values())


def delete_tag(user_id: int, name: str, tag_repo: AbstractTagRepository) -> bool:
    """Remove a tag by name. Events that carried it are kept."""
    tag = tag_repo.find_by_name(user_id, name)
    if tag is None or tag.id is None:
        return False
    tag_repo.delete(tag.id)
    logger.info("Deleted tag %r for user %s", tag.name, user_id)
    return True
