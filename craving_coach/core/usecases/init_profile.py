"""Use case for initial profile setup."""

from __future__ import annotations

import datetime as dt
import logging

from craving_coach.core.entities.user_profile import UserProfile
from craving_coach.core.interfaces.repositories.profile_repo import AbstractUserProfileRepository

logger = logging.getLogger(__name__)


def execute(
    user_id: int,
    daily_average: float,
    profile_repo: AbstractUserProfileRepository,
    quit_date: dt.date | None = None,
    today: dt.date | None = None,
) -> UserProfile:
    """Create the profile, or restart the plan of an existing one.

    A changed quit date restarts the reduction plan from ``today``.
    """
    today = today or dt.date.today()
    if quit_date is not None and quit_date <= today:
        raise ValueError("Quit date must be in the future")

    profile = profile_repo.get(user_id)
    if profile is None:
        profile = UserProfile(
            user_id=user_id,
            daily_average=daily_average,
            quit_date=quit_date,
            plan_start=today,
        )
        profile_repo.add(profile)
        logger.info("Created profile for user %s (%.1f/day, quit %s)", user_id, daily_average, quit_date)
        return profile

    if daily_average < 0:
        raise ValueError("daily_average must be >= 0")
    if quit_date != profile.quit_date:
        profile.plan_start = today
    profile.daily_average = daily_average
    profile.quit_date = quit_date
    profile_repo.update(profile)
    logger.info("Updated profile for user %s (%.1f/day, quit %s)", user_id, daily_average, quit_date)
    return profile
