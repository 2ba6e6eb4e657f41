"""Repository interfaces for SmokingEvent and Tag entities."""

from __future__ import annotations

import abc
import datetime as dt
from typing import List, Protocol, Sequence

from craving_coach.core.entities.smoking_event import SmokingEvent, Tag


class AbstractSmokingEventRepository(Protocol):
    """Contract for persisting smoking events.

    ``list_by_user`` returns a fully materialised list read inside a single
    transaction, newest first; callers scan that snapshot and never see a
    half-applied write.
    """

    @abc.abstractmethod
    def add(self, event: SmokingEvent) -> None: ...

    @abc.abstractmethod
    def list_by_user(
        self, user_id: int, limit: int | None = None, since: dt.datetime | None = None
    ) -> List[SmokingEvent]: ...

    @abc.abstractmethod
    def delete(self, event_id: int) -> None: ...

    @abc.abstractmethod
    def get_last(self, user_id: int) -> SmokingEvent | None: ...

    @abc.abstractmethod
    def set_tags(self, event_id: int, tag_ids: Sequence[int]) -> None: ...


class AbstractTagRepository(Protocol):
    """Contract for persisting tags; names match case-insensitively."""

    @abc.abstractmethod
    def get_or_create(self, user_id: int, name: str, color_hex: str | None = None) -> Tag: ...

    @abc.abstractmethod
    def find_by_name(self, user_id: int, name: str) -> Tag | None: ...

    @abc.abstractmethod
    def list_by_user(self, user_id: int) -> List[Tag]: ...

    @abc.abstractmethod
    def delete(self, tag_id: int) -> None: ...
