"""Feature vector describing "right now" for risk scoring."""

from __future__ import annotations

import dataclasses
import datetime as dt
from dataclasses import dataclass
from typing import Any, TypeVar, Union

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Missing:
    """Marks a feature input that could not be observed, and why."""

    reason: str


Observed = Union[T, Missing]


def or_default(value: "Observed[T]", default: T) -> T:
    """Collapse a possibly-missing observation to its documented default."""
    return default if isinstance(value, Missing) else value


# Documented fallbacks (see FeatureExtractor)
NO_HISTORY_MINUTES = 1440.0
DEFAULT_ACTIVITY_LEVEL = 1500.0
DEFAULT_TIME_OF_DAY_RISK = 0.5
STREAK_LOOKBACK_DAYS = 30
AVERAGE_WINDOW_DAYS = 30
RECENT_TAGS_WINDOW = 5


@dataclass(slots=True, frozen=True)
class CoachFeatureVector:
    minutes_since_last_event: float
    hour_of_day: int
    recent_activity_level: float
    poor_sleep_flag: bool
    recent_nrt_use_flag: bool
    days_since_quit_date: int
    current_abstinence_streak_days: int
    daily_average_rate: float
    has_recent_tags_flag: bool
    time_of_day_risk: float
    mindful_sessions_today: int

    def __post_init__(self) -> None:
        if self.minutes_since_last_event < 0:
            raise ValueError("minutes_since_last_event must be >= 0")
        if not 0 <= self.hour_of_day <= 23:
            raise ValueError("hour_of_day must be in [0, 23]")
        if not 0.0 <= self.time_of_day_risk <= 1.0:
            raise ValueError("time_of_day_risk must be in [0, 1]")
        for name in (
            "recent_activity_level",
            "days_since_quit_date",
            "current_abstinence_streak_days",
            "daily_average_rate",
            "mindful_sessions_today",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    def as_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CoachFeatureVector":
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def numeric_row(self) -> list[float]:
        """Ordered numeric encoding used by model-backed scorers."""
        return [float(v) for v in dataclasses.astuple(self)]


@dataclass(slots=True, frozen=True)
class FeatureSnapshot:
    """A vector as cached in the feature history."""

    computed_at: dt.datetime
    vector: CoachFeatureVector
