"""User profile and gradual reduction plan."""

from __future__ import annotations

import datetime as dt
import enum
import math
from dataclasses import dataclass, field


class ReductionCurve(str, enum.Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    LOGARITHMIC = "logarithmic"
    STEPPED = "stepped"
    GENTLE = "gentle"


class DependencyLevel(str, enum.Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    SEVERE = "severe"


def dependency_level(daily_average: float) -> DependencyLevel:
    if daily_average < 5:
        return DependencyLevel.LOW
    if daily_average < 10:
        return DependencyLevel.MODERATE
    if daily_average < 20:
        return DependencyLevel.HIGH
    return DependencyLevel.SEVERE


def select_reduction_curve(level: DependencyLevel, total_days: int) -> ReductionCurve:
    """Longer plans allow steeper curves for heavier smokers."""
    if level is DependencyLevel.LOW:
        return ReductionCurve.LINEAR if total_days >= 14 else ReductionCurve.GENTLE
    if level is DependencyLevel.MODERATE:
        return ReductionCurve.EXPONENTIAL if total_days >= 21 else ReductionCurve.LINEAR
    if level is DependencyLevel.HIGH:
        return ReductionCurve.LOGARITHMIC if total_days >= 30 else ReductionCurve.EXPONENTIAL
    return ReductionCurve.STEPPED if total_days >= 45 else ReductionCurve.LOGARITHMIC


def remaining_share(curve: ReductionCurve, elapsed_days: int, total_days: int) -> float:
    """Fraction of the baseline still allowed after ``elapsed_days`` of ``total_days``."""
    progress = min(1.0, max(0.0, elapsed_days / total_days))
    if curve is ReductionCurve.LINEAR:
        return 1.0 - progress
    if curve is ReductionCurve.EXPONENTIAL:
        return 1.0 - progress ** 0.7
    if curve is ReductionCurve.LOGARITHMIC:
        return 1.0 - (math.log10(1 + progress * 9) if progress > 0 else 0.0)
    if curve is ReductionCurve.STEPPED:
        step_size = max(1, total_days // 5)
        current_step = min(4, elapsed_days // step_size)
        return 1.0 - current_step / 4.0 * 0.8
    return 1.0 - progress ** 1.3


@dataclass(slots=True)
class UserProfile:
    user_id: int  # Telegram user id
    daily_average: float = 0.0
    quit_date: dt.date | None = None
    enable_gradual_reduction: bool = True
    plan_start: dt.date = field(default_factory=dt.date.today)
    created_at: dt.datetime = field(default_factory=dt.datetime.now)

    def __post_init__(self) -> None:
        if self.daily_average < 0:
            raise ValueError("daily_average must be >= 0")

    def today_target(self, daily_average: float | None = None, today: dt.date | None = None) -> int:
        """Number of cigarettes allowed today under the reduction plan."""
        average = self.daily_average if daily_average is None else daily_average
        today = today or dt.date.today()

        if not self.enable_gradual_reduction or self.quit_date is None:
            return int(average)
        if today >= self.quit_date:
            return 0

        total_days = (self.quit_date - self.plan_start).days
        if total_days <= 0:
            return 0
        elapsed_days = max(0, (today - self.plan_start).days)

        curve = select_reduction_curve(dependency_level(average), total_days)
        target = average * remaining_share(curve, elapsed_days, total_days)
        return max(0, math.ceil(target))

    def weekly_target(self, today: dt.date | None = None) -> int:
        return self.today_target(today=today) * 7
