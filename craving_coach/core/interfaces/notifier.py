"""Contract for the notification delivery surface."""

from __future__ import annotations

import abc
from typing import Protocol

from craving_coach.core.entities.decision import NotificationRequest


class AbstractNotifier(Protocol):

    @abc.abstractmethod
    async def deliver(self, user_id: int, request: NotificationRequest) -> None: ...
