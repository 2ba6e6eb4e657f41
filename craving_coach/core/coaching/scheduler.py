"""Rate-limited intervention scheduling.

The scheduler is the single owner of :class:`SchedulerState`. Every read
and write of the counters happens inside ``try_schedule`` (or a config
mutator) while holding one lock, and nothing in the critical section
awaits, so an accepted nudge is checked, persisted and committed as one
uninterruptible step.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import threading
import uuid

from craving_coach.core.entities.decision import (
    InterventionDecision,
    NotificationRequest,
    Nudge,
    Suppressed,
    SuppressionReason,
    priority_for_risk,
)
from craving_coach.core.entities.scheduler_state import SchedulerState
from craving_coach.core.errors import InvariantViolation
from craving_coach.core.interfaces.repositories.coach_state_repo import (
    AbstractSchedulerStateRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Take a slow breath. This craving will pass."

TITLES = {
    "morning": "Morning check-in",
    "afternoon": "Afternoon pause",
    "evening": "Evening check-in",
    "night": "Stay strong tonight",
}


def time_band(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"


class InterventionScheduler:
    """Turns an allowed high-risk moment into a rate-limited notification."""

    def __init__(
        self,
        user_id: int,
        state_repo: AbstractSchedulerStateRepository,
    ) -> None:
        self.user_id = user_id
        self._state_repo = state_repo
        self._lock = threading.Lock()
        self._state = state_repo.load(user_id) or SchedulerState(user_id=user_id)
        self._last_nudge: Nudge | None = None

    @property
    def state(self) -> SchedulerState:
        """A copy of the current state; mutate only through the scheduler."""
        with self._lock:
            return dataclasses.replace(self._state)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def try_schedule(
        self,
        risk_score: float,
        now: dt.datetime,
        message: str | None = None,
        request_id: str | None = None,
    ) -> InterventionDecision:
        with self._lock:
            state = self._state

            if request_id is not None and request_id == state.last_request_id:
                logger.debug("Request %s already committed, returning it again", request_id)
                if self._last_nudge is None:
                    # committed before a restart: rebuild from the stored state
                    sent_at = state.last_intervention_at or now
                    self._last_nudge = Nudge(
                        NotificationRequest(
                            title=TITLES[time_band(sent_at.hour)],
                            body=message or DEFAULT_MESSAGE,
                            priority=priority_for_risk(risk_score),
                            deliver_at=sent_at,
                            risk_score=risk_score,
                            request_id=request_id,
                        )
                    )
                return self._last_nudge

            if (
                state.last_intervention_at is not None
                and state.last_intervention_at.date() != now.date()
                and state.interventions_sent_today
            ):
                logger.info(
                    "New day for user %s, resetting %d sent interventions",
                    self.user_id,
                    state.interventions_sent_today,
                )
                state = dataclasses.replace(state, interventions_sent_today=0)
                self._state = state

            reason = self._rejection(state, now)
            if reason is not None:
                logger.debug("Intervention for user %s suppressed: %s", self.user_id, reason.value)
                return Suppressed(reason)

            request = NotificationRequest(
                title=TITLES[time_band(now.hour)],
                body=message or DEFAULT_MESSAGE,
                priority=priority_for_risk(risk_score),
                deliver_at=now,
                risk_score=risk_score,
                request_id=request_id or uuid.uuid4().hex,
            )
            committed = dataclasses.replace(
                state,
                interventions_sent_today=state.interventions_sent_today + 1,
                last_intervention_at=now,
                last_request_id=request.request_id,
            )
            self._check_cap(committed)

            # persist before publishing so a failed write leaves no trace
            self._state_repo.save(committed)
            self._state = committed
            self._last_nudge = Nudge(request)

            logger.info(
                "Scheduled %s intervention for user %s (%d/%d today)",
                request.priority.value,
                self.user_id,
                committed.interventions_sent_today,
                committed.max_per_day,
            )
            return self._last_nudge

    def _rejection(self, state: SchedulerState, now: dt.datetime) -> SuppressionReason | None:
        if state.interventions_sent_today >= state.max_per_day:
            return SuppressionReason.DAILY_CAP
        if state.last_intervention_at is not None:
            elapsed = (now - state.last_intervention_at).total_seconds()
            if elapsed < state.minimum_interval_seconds:
                return SuppressionReason.MIN_INTERVAL
        if state.in_quiet_hours(now.hour):
            return SuppressionReason.QUIET_HOURS
        return None

    def _check_cap(self, state: SchedulerState) -> None:
        if state.interventions_sent_today <= state.max_per_day:
            return
        if __debug__:
            raise InvariantViolation(
                f"interventions_sent_today={state.interventions_sent_today} exceeds max_per_day={state.max_per_day}"
            )
        logger.error(
            "Daily intervention counter %d above cap %d for user %s, clamping",
            state.interventions_sent_today,
            state.max_per_day,
            self.user_id,
        )
        state.interventions_sent_today = state.max_per_day

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_quiet_hours(self, start: int, end: int) -> None:
        if not (0 <= start <= 23 and 0 <= end <= 23):
            raise ValueError("Quiet hours must be between 0 and 23")
        self._update(quiet_hours_start=start, quiet_hours_end=end)
        logger.info("Updated quiet hours for user %s: %d:00 to %d:00", self.user_id, start, end)

    def set_max_per_day(self, n: int) -> None:
        if n < 0:
            raise ValueError("max_per_day must be >= 0")
        self._update(max_per_day=n)
        logger.info("Updated daily intervention cap for user %s: %d", self.user_id, n)

    def set_minimum_interval(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("minimum interval must be >= 0")
        self._update(minimum_interval_seconds=float(seconds))
        logger.info("Updated minimum intervention interval for user %s: %.0fs", self.user_id, seconds)

    def _update(self, **changes) -> None:
        with self._lock:
            updated = dataclasses.replace(self._state, **changes)
            self._state_repo.save(updated)
            self._state = updated
