"""Abstract repository interface for UserProfile entity."""

from __future__ import annotations

import abc
from typing import List, Protocol

from craving_coach.core.entities.user_profile import UserProfile


class AbstractUserProfileRepository(Protocol):
    """User profile repository contract."""

    @abc.abstractmethod
    def get(self, user_id: int) -> UserProfile | None: ...

    @abc.abstractmethod
    def add(self, profile: UserProfile) -> None: ...

    @abc.abstractmethod
    def update(self, profile: UserProfile) -> None: ...

    @abc.abstractmethod
    def list_all(self) -> List[UserProfile]: ...
