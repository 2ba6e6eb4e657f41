"""Rate-limiting state owned by the intervention scheduler."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

from craving_coach import settings


@dataclass(slots=True)
class SchedulerState:
    user_id: int
    last_intervention_at: dt.datetime | None = None
    interventions_sent_today: int = 0
    quiet_hours_start: int = settings.QUIET_HOURS_START
    quiet_hours_end: int = settings.QUIET_HOURS_END
    max_per_day: int = settings.MAX_INTERVENTIONS_PER_DAY
    minimum_interval_seconds: float = settings.MIN_INTERVAL_SECONDS
    last_request_id: str | None = None

    def in_quiet_hours(self, hour: int) -> bool:
        """True when ``hour`` falls in the window; ``start > end`` wraps midnight."""
        start, end = self.quiet_hours_start, self.quiet_hours_end
        if start == end:
            return False
        if start < end:
            return start <= hour < end
        return hour >= start or hour < end
