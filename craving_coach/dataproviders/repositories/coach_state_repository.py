"""SQLAlchemy persistence for scheduler state and the feature history."""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy import delete, select

from craving_coach.core.entities.features import CoachFeatureVector, FeatureSnapshot
from craving_coach.core.entities.scheduler_state import SchedulerState
from craving_coach.core.interfaces.repositories.coach_state_repo import (
    AbstractFeatureHistoryRepository,
    AbstractSchedulerStateRepository,
)
from craving_coach.dataproviders.db import session_scope
from craving_coach.dataproviders.repositories._models import (
    FeatureSnapshotModel,
    SchedulerStateModel,
)

logger = logging.getLogger(__name__)


class SqlAlchemySchedulerStateRepository(AbstractSchedulerStateRepository):

    def _to_entity(self, model: SchedulerStateModel) -> SchedulerState:
        return SchedulerState(
            user_id=model.user_id,
            last_intervention_at=model.last_intervention_at,
            interventions_sent_today=model.interventions_sent_today or 0,
            quiet_hours_start=model.quiet_hours_start,
            quiet_hours_end=model.quiet_hours_end,
            max_per_day=model.max_per_day,
            minimum_interval_seconds=model.minimum_interval_seconds,
            last_request_id=model.last_request_id,
        )

    def load(self, user_id: int) -> SchedulerState | None:
        with session_scope() as session:
            model = session.scalar(
                select(SchedulerStateModel).where(SchedulerStateModel.user_id == user_id)
            )
            return self._to_entity(model) if model else None

    def save(self, state: SchedulerState) -> None:
        with session_scope() as session:
            model = session.scalar(
                select(SchedulerStateModel).where(SchedulerStateModel.user_id == state.user_id)
            )
            if model is None:
                model = SchedulerStateModel(user_id=state.user_id)
                session.add(model)
            model.last_intervention_at = state.last_intervention_at
            model.interventions_sent_today = state.interventions_sent_today
            model.quiet_hours_start = state.quiet_hours_start
            model.quiet_hours_end = state.quiet_hours_end
            model.max_per_day = state.max_per_day
            model.minimum_interval_seconds = state.minimum_interval_seconds
            model.last_request_id = state.last_request_id


class SqlAlchemyFeatureHistoryRepository(AbstractFeatureHistoryRepository):
    """Keeps at most ``keep`` snapshots per user, dropping the oldest."""

    def append(self, user_id: int, snapshot: FeatureSnapshot, keep: int) -> None:
        with session_scope() as session:
            session.add(
                FeatureSnapshotModel(
                    user_id=user_id,
                    computed_at=snapshot.computed_at,
                    payload=snapshot.vector.as_dict(),
                )
            )
            session.flush()
            stale = session.scalars(
                select(FeatureSnapshotModel.id)
                .where(FeatureSnapshotModel.user_id == user_id)
                .order_by(FeatureSnapshotModel.computed_at.desc(), FeatureSnapshotModel.id.desc())
                .offset(max(keep, 0))
            ).all()
            if stale:
                session.execute(delete(FeatureSnapshotModel).where(FeatureSnapshotModel.id.in_(stale)))
                logger.debug("Trimmed %d cached feature vectors for user %s", len(stale), user_id)

    def list_recent(self, user_id: int, limit: int | None = None) -> List[FeatureSnapshot]:
        with session_scope() as session:
            stmt = (
                select(FeatureSnapshotModel)
                .where(FeatureSnapshotModel.user_id == user_id)
                .order_by(FeatureSnapshotModel.computed_at.desc(), FeatureSnapshotModel.id.desc())
            )
            if limit:
                stmt = stmt.limit(limit)
            return [
                FeatureSnapshot(m.computed_at, CoachFeatureVector.from_dict(m.payload))
                for m in session.scalars(stmt).all()
            ]
