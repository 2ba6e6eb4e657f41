"""Intervention decisions and the notification requests they carry."""

from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass, field


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def silent(self) -> bool:
        return self is NotificationPriority.LOW

    @property
    def time_sensitive(self) -> bool:
        """Critical nudges bypass silent/summary batching on delivery."""
        return self is NotificationPriority.CRITICAL


def priority_for_risk(risk_score: float) -> NotificationPriority:
    if risk_score < 0.3:
        return NotificationPriority.LOW
    if risk_score < 0.6:
        return NotificationPriority.NORMAL
    if risk_score < 0.8:
        return NotificationPriority.HIGH
    return NotificationPriority.CRITICAL


class SuppressionReason(str, enum.Enum):
    BELOW_THRESHOLD = "risk_below_threshold"
    TOO_SOON_AFTER_EVENT = "too_soon_after_event"
    LATE_NIGHT = "late_night"
    LONG_STREAK = "long_streak"
    DAILY_CAP = "daily_cap_reached"
    MIN_INTERVAL = "minimum_interval"
    QUIET_HOURS = "quiet_hours"


class InterventionAction(str, enum.Enum):
    BREATHE = "breathe"
    DISTRACT = "distract"
    REMIND = "remind"
    DISMISS = "dismiss"


DEFAULT_ACTIONS = (
    InterventionAction.BREATHE,
    InterventionAction.DISTRACT,
    InterventionAction.REMIND,
    InterventionAction.DISMISS,
)


@dataclass(slots=True, frozen=True)
class NotificationRequest:
    title: str
    body: str
    priority: NotificationPriority
    deliver_at: dt.datetime
    risk_score: float
    request_id: str
    actions: tuple[InterventionAction, ...] = field(default=DEFAULT_ACTIONS)


@dataclass(slots=True, frozen=True)
class Suppressed:
    reason: SuppressionReason

    @property
    def is_nudge(self) -> bool:
        return False


@dataclass(slots=True, frozen=True)
class Nudge:
    request: NotificationRequest

    @property
    def is_nudge(self) -> bool:
        return True


InterventionDecision = Suppressed | Nudge
