"""Behavioral insights mined from the smoking history."""

from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass, field


class InsightType(str, enum.Enum):
    TIME_PATTERN = "time_pattern"
    TRIGGER_PATTERN = "trigger_pattern"
    STREAK_BREAKER = "streak_breaker"
    SOCIAL_INFLUENCE = "social_influence"
    ENVIRONMENTAL_TRIGGER = "environmental_trigger"
    PROGRESS_REGRESSION = "progress_regression"


class RelapseSeverity(str, enum.Enum):
    MINOR = "minor"  # 1-2 over target
    MODERATE = "moderate"  # 3-5 over target
    MAJOR = "major"  # >5 over target


@dataclass(slots=True, frozen=True)
class BehavioralInsight:
    type: InsightType
    confidence_score: float
    risk_score: float
    detected_at: dt.datetime
    supporting_statistics: dict[str, float] = field(default_factory=dict)
    subject: str | None = None  # trigger, location or context the insight is about
    recommendations: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValueError("confidence_score must be in [0, 1]")
        if not 0.0 <= self.risk_score <= 1.0:
            raise ValueError("risk_score must be in [0, 1]")


@dataclass(slots=True, frozen=True)
class RelapsePattern:
    trigger: str
    hour_of_day: int
    weekday: int  # Monday == 0
    frequency: int
    severity: RelapseSeverity


@dataclass(slots=True, frozen=True)
class TrendAnalysis:
    weekly_change: float | None  # % change, None when there is no baseline
    monthly_change: float | None
    streak_lengths: tuple[int, ...]
    average_streak_length: float
    longest_streak: int
    relapse_patterns: tuple[RelapsePattern, ...]
    compliance_rate: float | None  # share of days within target, None without a plan


@dataclass(slots=True, frozen=True)
class SmokingPattern:
    peak_hours: tuple[int, ...]
    peak_weekdays: tuple[int, ...]
    average_interval_minutes: float
    most_common_triggers: tuple[str, ...]
    social_contexts: tuple[str, ...]
    environmental_factors: tuple[str, ...]
    progress_trends: TrendAnalysis
