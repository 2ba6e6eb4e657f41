"""SQLAlchemy implementation of AbstractUserProfileRepository."""

from __future__ import annotations

from typing import List

from sqlalchemy import select

from craving_coach.core.entities.user_profile import UserProfile
from craving_coach.core.errors import ProfileNotFound
from craving_coach.core.interfaces.repositories.profile_repo import AbstractUserProfileRepository
from craving_coach.dataproviders.db import session_scope
from craving_coach.dataproviders.repositories._models import UserProfileModel


class SqlAlchemyUserProfileRepository(AbstractUserProfileRepository):
    """SQLAlchemy-based user profile repository implementation."""

    def _to_entity(self, model: UserProfileModel) -> UserProfile:
        return UserProfile(
            user_id=model.user_id,
            daily_average=model.daily_average or 0.0,
            quit_date=model.quit_date,
            enable_gradual_reduction=bool(model.enable_gradual_reduction),
            # rows created before plans existed start at sign-up
            plan_start=model.plan_start or model.created_at.date(),
            created_at=model.created_at,
        )

    def _update_model(self, model: UserProfileModel, entity: UserProfile) -> None:
        model.daily_average = entity.daily_average
        model.quit_date = entity.quit_date
        model.enable_gradual_reduction = entity.enable_gradual_reduction
        model.plan_start = entity.plan_start

    # ---------------------------------------------------------------------
    # Public methods
    # ---------------------------------------------------------------------

    def get(self, user_id: int) -> UserProfile | None:
        with session_scope() as session:
            model: UserProfileModel | None = session.scalar(
                select(UserProfileModel).where(UserProfileModel.user_id == user_id)
            )
            if model:
                return self._to_entity(model)
            return None

    def add(self, profile: UserProfile) -> None:
        with session_scope() as session:
            model = UserProfileModel(user_id=profile.user_id, created_at=profile.created_at)
            self._update_model(model, profile)
            session.add(model)

    def update(self, profile: UserProfile) -> None:
        with session_scope() as session:
            model: UserProfileModel | None = session.scalar(
                select(UserProfileModel).where(UserProfileModel.user_id == profile.user_id)
            )
            if not model:
                raise ProfileNotFound(profile.user_id)
            self._update_model(model, profile)

    def list_all(self) -> List[UserProfile]:
        with session_scope() as session:
            models = session.scalars(select(UserProfileModel)).all()
            return [self._to_entity(m) for m in models]
