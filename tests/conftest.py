"""Shared test fixtures for craving coach tests.

This module provides:
- In-memory fakes for every repository contract
- A scriptable signal provider
- A temporary SQLite database bound through ``init_engine``
- Helpers for building event logs and feature vectors
"""

from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
from collections.abc import Generator
from pathlib import Path
from typing import Iterable, Sequence

import pytest

from craving_coach.core.coaching.engine import CoachEngine
from craving_coach.core.coaching.features import FeatureExtractor
from craving_coach.core.coaching.patterns import PatternAnalyzer
from craving_coach.core.coaching.risk import RuleBasedRiskScorer, SafetyGate
from craving_coach.core.coaching.scheduler import InterventionScheduler
from craving_coach.core.coaching.tips import ContextualTipGenerator
from craving_coach.core.entities.features import CoachFeatureVector, FeatureSnapshot
from craving_coach.core.entities.scheduler_state import SchedulerState
from craving_coach.core.entities.smoking_event import SmokingEvent, Tag
from craving_coach.core.entities.user_profile import UserProfile
from craving_coach.core.errors import PersistenceError, SignalUnavailable

USER_ID = 42

# Wednesday
NOW = dt.datetime(2024, 5, 15, 14, 0)


# ─────────────────────────────────────────────────────────────────────────────
# In-memory repositories
# ─────────────────────────────────────────────────────────────────────────────


class InMemoryEventRepository:
    def __init__(self) -> None:
        self.events: list[SmokingEvent] = []
        self._next_id = 1
        self.fail_reads = False
        self.tag_repo: InMemoryTagRepository | None = None

    def add(self, event: SmokingEvent) -> None:
        event.id = self._next_id
        self._next_id += 1
        self.events.append(event)

    def list_by_user(self, user_id, limit=None, since=None) -> list[SmokingEvent]:
        if self.fail_reads:
            raise PersistenceError("database is locked")
        found = [
            e for e in self.events if e.user_id == user_id and (since is None or e.timestamp >= since)
        ]
        found.sort(key=lambda e: (e.timestamp, e.id), reverse=True)
        return found[:limit] if limit else found

    def delete(self, event_id: int) -> None:
        self.events = [e for e in self.events if e.id != event_id]

    def get_last(self, user_id: int) -> SmokingEvent | None:
        found = self.list_by_user(user_id, limit=1)
        return found[0] if found else None

    def set_tags(self, event_id, tag_ids) -> None:
        wanted = set(tag_ids)
        for event in self.events:
            if event.id == event_id:
                event.tags = tuple(t for t in self.known_tags if t.id in wanted)
                return
        raise ValueError(f"Smoking event {event_id} not found")

    @property
    def known_tags(self) -> list[Tag]:
        return list(self.tag_repo.tags.values()) if self.tag_repo else []


class InMemoryTagRepository:
    def __init__(self, events: InMemoryEventRepository | None = None) -> None:
        self.tags: dict[tuple[int, str], Tag] = {}
        self._events = events
        if events is not None:
            events.tag_repo = self
        self._next_id = 1

    def get_or_create(self, user_id, name, color_hex=None) -> Tag:
        key = (user_id, name.strip().lower())
        if key not in self.tags:
            self.tags[key] = Tag(name=name.strip(), color_hex=color_hex or "#808080", id=self._next_id)
            self._next_id += 1
        return self.tags[key]

    def find_by_name(self, user_id, name) -> Tag | None:
        return self.tags.get((user_id, name.strip().lower()))

    def list_by_user(self, user_id) -> list[Tag]:
        return sorted((t for (uid, _), t in self.tags.items() if uid == user_id), key=lambda t: t.key)

    def delete(self, tag_id) -> None:
        self.tags = {k: t for k, t in self.tags.items() if t.id != tag_id}
        if self._events is not None:
            for event in self._events.events:
                event.tags = tuple(t for t in event.tags if t.id != tag_id)


class InMemoryProfileRepository:
    def __init__(self) -> None:
        self.profiles: dict[int, UserProfile] = {}

    def get(self, user_id) -> UserProfile | None:
        return self.profiles.get(user_id)

    def add(self, profile: UserProfile) -> None:
        self.profiles[profile.user_id] = profile

    def update(self, profile: UserProfile) -> None:
        self.profiles[profile.user_id] = profile

    def list_all(self) -> list[UserProfile]:
        return list(self.profiles.values())


class InMemorySchedulerStateRepository:
    def __init__(self) -> None:
        self.states: dict[int, SchedulerState] = {}
        self.saves = 0
        self.fail_writes = False

    def load(self, user_id) -> SchedulerState | None:
        state = self.states.get(user_id)
        return dataclasses.replace(state) if state else None

    def save(self, state: SchedulerState) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        self.saves += 1
        self.states[state.user_id] = dataclasses.replace(state)


class InMemoryFeatureHistoryRepository:
    def __init__(self) -> None:
        self.snapshots: dict[int, list[FeatureSnapshot]] = {}
        self.fail_writes = False

    def append(self, user_id, snapshot, keep) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        history = self.snapshots.setdefault(user_id, [])
        history.append(snapshot)
        del history[: max(0, len(history) - keep)]

    def list_recent(self, user_id, limit=None) -> list[FeatureSnapshot]:
        history = list(reversed(self.snapshots.get(user_id, [])))
        return history[:limit] if limit else history


# ─────────────────────────────────────────────────────────────────────────────
# Signals
# ─────────────────────────────────────────────────────────────────────────────


class FakeSignalProvider:
    """Returns configured values; ``None`` means the signal is unavailable."""

    def __init__(self, activity=None, poor_sleep=None, nrt=None, mindful=None, delay: float = 0.0) -> None:
        self.activity = activity
        self.poor_sleep = poor_sleep
        self.nrt = nrt
        self.mindful = mindful
        self.delay = delay

    async def _value(self, value):
        if self.delay:
            await asyncio.sleep(self.delay)
        if value is None:
            raise SignalUnavailable("not configured")
        if isinstance(value, Exception):
            raise value
        return value

    async def recent_activity_level(self, now, window):
        return await self._value(self.activity)

    async def poor_sleep_last_night(self, now):
        return await self._value(self.poor_sleep)

    async def recent_nrt_use(self, now, window):
        return await self._value(self.nrt)

    async def mindful_sessions_today(self, now):
        return await self._value(self.mindful)


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.delivered = []
        self.fail = fail

    async def deliver(self, user_id, request) -> None:
        if self.fail:
            raise ConnectionError("telegram unreachable")
        self.delivered.append((user_id, request))


# ─────────────────────────────────────────────────────────────────────────────
# Builders
# ─────────────────────────────────────────────────────────────────────────────


def make_event(when: dt.datetime, *tags: str, user_id: int = USER_ID) -> SmokingEvent:
    return SmokingEvent(user_id=user_id, timestamp=when, tags=tuple(Tag(name=t) for t in tags))


def make_events(times: Iterable[dt.datetime], *tags: str) -> list[SmokingEvent]:
    return [make_event(t, *tags) for t in times]


def make_vector(**overrides) -> CoachFeatureVector:
    values = dict(
        minutes_since_last_event=180.0,
        hour_of_day=14,
        recent_activity_level=1500.0,
        poor_sleep_flag=False,
        recent_nrt_use_flag=False,
        days_since_quit_date=0,
        current_abstinence_streak_days=0,
        daily_average_rate=5.0,
        has_recent_tags_flag=False,
        time_of_day_risk=0.5,
        mindful_sessions_today=0,
    )
    values.update(overrides)
    return CoachFeatureVector(**values)


def seed(repo: InMemoryEventRepository, events: Sequence[SmokingEvent]) -> None:
    for event in events:
        repo.add(event)


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def event_repo() -> InMemoryEventRepository:
    return InMemoryEventRepository()


@pytest.fixture
def tag_repo(event_repo) -> InMemoryTagRepository:
    return InMemoryTagRepository(event_repo)


@pytest.fixture
def profile_repo() -> InMemoryProfileRepository:
    repo = InMemoryProfileRepository()
    repo.add(UserProfile(user_id=USER_ID, daily_average=10, plan_start=NOW.date()))
    return repo


@pytest.fixture
def state_repo() -> InMemorySchedulerStateRepository:
    return InMemorySchedulerStateRepository()


@pytest.fixture
def history_repo() -> InMemoryFeatureHistoryRepository:
    return InMemoryFeatureHistoryRepository()


@pytest.fixture
def signals() -> FakeSignalProvider:
    return FakeSignalProvider()


@pytest.fixture
def scheduler(state_repo) -> InterventionScheduler:
    return InterventionScheduler(USER_ID, state_repo)


@pytest.fixture
def engine(event_repo, profile_repo, signals, scheduler, history_repo) -> CoachEngine:
    return CoachEngine(
        user_id=USER_ID,
        event_repo=event_repo,
        profile_repo=profile_repo,
        extractor=FeatureExtractor(USER_ID, event_repo, profile_repo, signals, signal_timeout=0.5),
        scorer=RuleBasedRiskScorer(),
        gate=SafetyGate(),
        scheduler=scheduler,
        analyzer=PatternAnalyzer(),
        tips=ContextualTipGenerator(),
        clock=lambda: NOW,
        history_repo=history_repo,
        history_size=3,
    )


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Generator[Path, None, None]:
    """Bind the SQLAlchemy session factory to a fresh on-disk database."""
    from craving_coach.dataproviders import db

    path = tmp_path / "coach.db"
    engine = db.init_engine(f"sqlite:///{path}")
    yield path
    db.SessionLocal.remove()
    engine.dispose()
