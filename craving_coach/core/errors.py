"""Exception hierarchy for the coaching pipeline."""

from __future__ import annotations


class CoachError(Exception):
    """Base class for all coaching errors."""


class PersistenceError(CoachError):
    """The event store or another repository failed to read or write."""


class SignalUnavailable(CoachError):
    """An external physiological/activity signal could not be obtained."""


class InvariantViolation(CoachError):
    """Scheduler state would break one of its guarantees."""


class ProfileNotFound(CoachError):
    pass


class CannotUndo(CoachError):
    pass
