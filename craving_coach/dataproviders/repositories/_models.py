"""SQLAlchemy ORM models."""

from __future__ import annotations

import datetime as dt
from typing import Any, List

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from craving_coach.dataproviders.db import Base

event_tags = Table(
    "event_tags",
    Base.metadata,
    Column("event_id", ForeignKey("smoking_events.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class UserProfileModel(Base):
    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    daily_average: Mapped[float] = mapped_column(Float, default=0.0)
    quit_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    enable_gradual_reduction: Mapped[bool] = mapped_column(Boolean, default=True)
    plan_start: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.now)


class TagModel(Base):
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("user_id", "name_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    name_key: Mapped[str] = mapped_column(String(64), nullable=False)  # lower-cased name
    color_hex: Mapped[str] = mapped_column(String(9), default="#808080")

    events: Mapped[List["SmokingEventModel"]] = relationship(
        secondary=event_tags, back_populates="tags"
    )


class SmokingEventModel(Base):
    __tablename__ = "smoking_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    timestamp: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.now, index=True)

    tags: Mapped[List[TagModel]] = relationship(
        secondary=event_tags, back_populates="events", lazy="selectin"
    )


class SchedulerStateModel(Base):
    __tablename__ = "scheduler_states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    last_intervention_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)
    interventions_sent_today: Mapped[int] = mapped_column(Integer, default=0)
    quiet_hours_start: Mapped[int] = mapped_column(Integer, nullable=False)
    quiet_hours_end: Mapped[int] = mapped_column(Integer, nullable=False)
    max_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    minimum_interval_seconds: Mapped[float] = mapped_column(Float, nullable=False)
    last_request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class FeatureSnapshotModel(Base):
    __tablename__ = "feature_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    computed_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
