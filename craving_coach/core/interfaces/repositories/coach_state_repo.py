"""Repositories for state the coach keeps across process restarts."""

from __future__ import annotations

import abc
from typing import List, Protocol

from craving_coach.core.entities.features import FeatureSnapshot
from craving_coach.core.entities.scheduler_state import SchedulerState


class AbstractSchedulerStateRepository(Protocol):
    """Counters and configuration of the intervention scheduler."""

    @abc.abstractmethod
    def load(self, user_id: int) -> SchedulerState | None: ...

    @abc.abstractmethod
    def save(self, state: SchedulerState) -> None: ...


class AbstractFeatureHistoryRepository(Protocol):
    """Bounded ring buffer of computed feature vectors, newest kept."""

    @abc.abstractmethod
    def append(self, user_id: int, snapshot: FeatureSnapshot, keep: int) -> None: ...

    @abc.abstractmethod
    def list_recent(self, user_id: int, limit: int | None = None) -> List[FeatureSnapshot]: ...
