"""SQLAlchemy repositories against a temporary SQLite database."""

from __future__ import annotations

import datetime as dt

import pytest

from craving_coach.core.entities.features import FeatureSnapshot
from craving_coach.core.entities.scheduler_state import SchedulerState
from craving_coach.core.entities.smoking_event import SmokingEvent
from craving_coach.core.entities.user_profile import UserProfile
from craving_coach.core.errors import PersistenceError, ProfileNotFound
from craving_coach.dataproviders import db
from craving_coach.dataproviders.repositories.coach_state_repository import (
    SqlAlchemyFeatureHistoryRepository,
    SqlAlchemySchedulerStateRepository,
)
from craving_coach.dataproviders.repositories.event_repository import (
    SqlAlchemySmokingEventRepository,
    SqlAlchemyTagRepository,
)
from craving_coach.dataproviders.repositories.profile_repository import (
    SqlAlchemyUserProfileRepository,
)
from tests.conftest import NOW, USER_ID, make_vector

pytestmark = pytest.mark.usefixtures("sqlite_db")


class TestProfileRepository:
    def test_add_and_get(self):
        """Profiles round-trip through the database."""
        repo = SqlAlchemyUserProfileRepository()
        repo.add(
            UserProfile(
                user_id=USER_ID,
                daily_average=12.5,
                quit_date=dt.date(2024, 7, 1),
                plan_start=dt.date(2024, 5, 1),
            )
        )

        profile = repo.get(USER_ID)

        assert profile.daily_average == 12.5
        assert profile.quit_date == dt.date(2024, 7, 1)
        assert profile.plan_start == dt.date(2024, 5, 1)
        assert profile.enable_gradual_reduction is True
        assert repo.get(USER_ID + 1) is None

    def test_update(self):
        """Updates replace the stored plan."""
        repo = SqlAlchemyUserProfileRepository()
        repo.add(UserProfile(user_id=USER_ID, daily_average=10))
        profile = repo.get(USER_ID)
        profile.daily_average = 8
        profile.enable_gradual_reduction = False
        repo.update(profile)

        stored = repo.get(USER_ID)
        assert stored.daily_average == 8
        assert stored.enable_gradual_reduction is False
        assert [p.user_id for p in repo.list_all()] == [USER_ID]

    def test_update_missing_profile(self):
        """Updating an unknown user is an error."""
        with pytest.raises(ProfileNotFound):
            SqlAlchemyUserProfileRepository().update(UserProfile(user_id=999))

    def test_duplicate_profile_is_persistence_error(self):
        """Database errors surface as PersistenceError."""
        repo = SqlAlchemyUserProfileRepository()
        repo.add(UserProfile(user_id=USER_ID))
        with pytest.raises(PersistenceError):
            repo.add(UserProfile(user_id=USER_ID))


class TestEventRepository:
    def test_events_newest_first(self):
        """Listing returns a newest-first snapshot with optional filters."""
        repo = SqlAlchemySmokingEventRepository()
        for hours in (5, 1, 3):
            repo.add(SmokingEvent(user_id=USER_ID, timestamp=NOW - dt.timedelta(hours=hours)))
        repo.add(SmokingEvent(user_id=USER_ID + 1, timestamp=NOW))

        events = repo.list_by_user(USER_ID)

        assert [e.timestamp for e in events] == [NOW - dt.timedelta(hours=h) for h in (1, 3, 5)]
        assert len(repo.list_by_user(USER_ID, limit=2)) == 2
        assert len(repo.list_by_user(USER_ID, since=NOW - dt.timedelta(hours=4))) == 2
        assert repo.get_last(USER_ID).timestamp == NOW - dt.timedelta(hours=1)

    def test_add_assigns_id_and_delete(self):
        """Added events get an id that delete accepts."""
        repo = SqlAlchemySmokingEventRepository()
        event = SmokingEvent(user_id=USER_ID, timestamp=NOW)
        repo.add(event)

        assert event.id is not None
        repo.delete(event.id)
        assert repo.get_last(USER_ID) is None

    def test_events_carry_tags(self):
        """Tags given on add are stored and read back."""
        tags = SqlAlchemyTagRepository()
        events = SqlAlchemySmokingEventRepository()
        coffee = tags.get_or_create(USER_ID, "coffee")
        stress = tags.get_or_create(USER_ID, "Stress", "#ff0000")
        events.add(SmokingEvent(user_id=USER_ID, timestamp=NOW, tags=(coffee, stress)))

        stored = events.get_last(USER_ID)

        assert stored.tag_names == ["coffee", "Stress"]
        assert stored.tags[1].color_hex == "#ff0000"

    def test_set_tags_replaces_tags(self):
        """Tag reassignment changes only the event's associations."""
        tags = SqlAlchemyTagRepository()
        events = SqlAlchemySmokingEventRepository()
        coffee = tags.get_or_create(USER_ID, "coffee")
        work = tags.get_or_create(USER_ID, "work")
        event = SmokingEvent(user_id=USER_ID, timestamp=NOW, tags=(coffee,))
        events.add(event)

        events.set_tags(event.id, [work.id])

        assert events.get_last(USER_ID).tag_names == ["work"]
        assert {t.name for t in tags.list_by_user(USER_ID)} == {"coffee", "work"}


class TestTagRepository:
    def test_names_match_case_insensitively(self):
        """'Stress' and ' stress ' are the same tag."""
        repo = SqlAlchemyTagRepository()
        first = repo.get_or_create(USER_ID, "Stress")
        second = repo.get_or_create(USER_ID, " stress ")

        assert first.id == second.id
        assert repo.find_by_name(USER_ID, "STRESS").name == "Stress"
        assert repo.find_by_name(USER_ID + 1, "stress") is None

    def test_empty_name_rejected(self):
        """Blank tag names are refused."""
        with pytest.raises(ValueError):
            SqlAlchemyTagRepository().get_or_create(USER_ID, "  ")

    def test_delete_keeps_events(self):
        """Deleting a tag removes its associations, not the events."""
        tags = SqlAlchemyTagRepository()
        events = SqlAlchemySmokingEventRepository()
        coffee = tags.get_or_create(USER_ID, "coffee")
        work = tags.get_or_create(USER_ID, "work")
        events.add(SmokingEvent(user_id=USER_ID, timestamp=NOW, tags=(coffee, work)))

        tags.delete(coffee.id)

        remaining = events.list_by_user(USER_ID)
        assert len(remaining) == 1
        assert remaining[0].tag_names == ["work"]
        assert tags.find_by_name(USER_ID, "coffee") is None


class TestCoachStateRepositories:
    def test_scheduler_state_upsert(self):
        """Saving twice updates the single row per user."""
        repo = SqlAlchemySchedulerStateRepository()
        assert repo.load(USER_ID) is None

        repo.save(SchedulerState(user_id=USER_ID, interventions_sent_today=1, last_intervention_at=NOW))
        repo.save(
            SchedulerState(
                user_id=USER_ID,
                interventions_sent_today=2,
                last_intervention_at=NOW,
                quiet_hours_start=23,
                quiet_hours_end=6,
                max_per_day=3,
                minimum_interval_seconds=600,
                last_request_id="abc",
            )
        )

        state = repo.load(USER_ID)
        assert state.interventions_sent_today == 2
        assert state.last_intervention_at == NOW
        assert (state.quiet_hours_start, state.quiet_hours_end) == (23, 6)
        assert state.max_per_day == 3
        assert state.minimum_interval_seconds == 600
        assert state.last_request_id == "abc"

    def test_feature_history_is_bounded(self):
        """Only the newest ``keep`` snapshots survive."""
        repo = SqlAlchemyFeatureHistoryRepository()
        for minutes in range(5):
            snapshot = FeatureSnapshot(
                NOW + dt.timedelta(minutes=minutes), make_vector(minutes_since_last_event=float(minutes))
            )
            repo.append(USER_ID, snapshot, keep=3)

        recent = repo.list_recent(USER_ID)

        assert [s.vector.minutes_since_last_event for s in recent] == [4.0, 3.0, 2.0]
        assert recent[0].computed_at == NOW + dt.timedelta(minutes=4)
        assert recent[0].vector == make_vector(minutes_since_last_event=4.0)
        assert len(repo.list_recent(USER_ID, limit=1)) == 1


class TestMigrations:
    def test_migrations_are_idempotent(self):
        """Running migrations on an up-to-date schema changes nothing."""
        db.run_migrations()
        db.run_migrations()
        SqlAlchemyUserProfileRepository().add(UserProfile(user_id=USER_ID))
        assert SqlAlchemyUserProfileRepository().get(USER_ID) is not None
