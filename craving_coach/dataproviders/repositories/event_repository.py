"""SQLAlchemy implementation of SmokingEvent and Tag repositories."""

from __future__ import annotations

import datetime as dt
from typing import List, Sequence

from sqlalchemy import delete, select

from craving_coach.core.entities.smoking_event import SmokingEvent, Tag
from craving_coach.core.interfaces.repositories.event_repo import (
    AbstractSmokingEventRepository,
    AbstractTagRepository,
)
from craving_coach.dataproviders.db import session_scope
from craving_coach.dataproviders.repositories._models import SmokingEventModel, TagModel

DEFAULT_TAG_COLOR = "#808080"


def _tag_entity(model: TagModel) -> Tag:
    return Tag(id=model.id, name=model.name, color_hex=model.color_hex)


class SqlAlchemySmokingEventRepository(AbstractSmokingEventRepository):
    """SQLAlchemy implementation for SmokingEvent repository."""

    def _to_entity(self, model: SmokingEventModel) -> SmokingEvent:
        return SmokingEvent(
            id=model.id,
            user_id=model.user_id,
            timestamp=model.timestamp,
            tags=tuple(_tag_entity(t) for t in sorted(model.tags, key=lambda t: t.id)),
        )

    def add(self, event: SmokingEvent) -> None:
        with session_scope() as session:
            model = SmokingEventModel(user_id=event.user_id, timestamp=event.timestamp)
            tag_ids = [t.id for t in event.tags if t.id is not None]
            if tag_ids:
                model.tags = list(session.scalars(select(TagModel).where(TagModel.id.in_(tag_ids))))
            session.add(model)
            session.flush()
            event.id = model.id

    def list_by_user(
        self, user_id: int, limit: int | None = None, since: dt.datetime | None = None
    ) -> List[SmokingEvent]:
        with session_scope() as session:
            stmt = select(SmokingEventModel).where(SmokingEventModel.user_id == user_id)
            if since is not None:
                stmt = stmt.where(SmokingEventModel.timestamp >= since)
            stmt = stmt.order_by(SmokingEventModel.timestamp.desc(), SmokingEventModel.id.desc())
            if limit:
                stmt = stmt.limit(limit)
            models = session.scalars(stmt).all()
            return [self._to_entity(m) for m in models]

    def delete(self, event_id: int) -> None:
        with session_scope() as session:
            session.execute(delete(SmokingEventModel).where(SmokingEventModel.id == event_id))

    def get_last(self, user_id: int) -> SmokingEvent | None:
        with session_scope() as session:
            model = session.scalar(
                select(SmokingEventModel)
                .where(SmokingEventModel.user_id == user_id)
                .order_by(SmokingEventModel.timestamp.desc(), SmokingEventModel.id.desc())
                .limit(1)
            )
            return self._to_entity(model) if model else None

    def set_tags(self, event_id: int, tag_ids: Sequence[int]) -> None:
        with session_scope() as session:
            model = session.get(SmokingEventModel, event_id)
            if model is None:
                raise ValueError(f"Smoking event {event_id} not found")
            tags = list(session.scalars(select(TagModel).where(TagModel.id.in_(list(tag_ids)))))
            model.tags = [t for t in tags if t.user_id == model.user_id]


class SqlAlchemyTagRepository(AbstractTagRepository):
    """Tags are unique per user by lower-cased name."""

    def find_by_name(self, user_id: int, name: str) -> Tag | None:
        with session_scope() as session:
            model = session.scalar(
                select(TagModel).where(
                    TagModel.user_id == user_id,
                    TagModel.name_key == name.strip().lower(),
                )
            )
            return _tag_entity(model) if model else None

    def get_or_create(self, user_id: int, name: str, color_hex: str | None = None) -> Tag:
        name = name.strip()
        if not name:
            raise ValueError("Tag name must not be empty")
        with session_scope() as session:
            model = session.scalar(
                select(TagModel).where(TagModel.user_id == user_id, TagModel.name_key == name.lower())
            )
            if model is None:
                model = TagModel(
                    user_id=user_id,
                    name=name,
                    name_key=name.lower(),
                    color_hex=color_hex or DEFAULT_TAG_COLOR,
                )
                session.add(model)
                session.flush()
            return _tag_entity(model)

    def list_by_user(self, user_id: int) -> List[Tag]:
        with session_scope() as session:
            models = session.scalars(
                select(TagModel).where(TagModel.user_id == user_id).order_by(TagModel.name_key)
            ).all()
            return [_tag_entity(m) for m in models]

    def delete(self, tag_id: int) -> None:
        """Remove the tag and its event links; the events themselves stay."""
        with session_scope() as session:
            model = session.get(TagModel, tag_id)
            if model is None:
                return
            model.events.clear()
            session.delete(model)
