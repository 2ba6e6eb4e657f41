"""Database configuration and session management for the coaching bot."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, scoped_session, sessionmaker

from craving_coach import settings
from craving_coach.core.errors import PersistenceError

# ---------------------------------------------------------------------------
# Constants & Helpers
# ---------------------------------------------------------------------------
DB_PATH = Path(settings.DB_FILENAME).expanduser().absolute()

SQLALCHEMY_DATABASE_URL = f"sqlite:///{DB_PATH}"

_engine_kwargs = {
    "connect_args": {"check_same_thread": False},  # needed for SQLite + threads
}

engine: Engine = create_engine(SQLALCHEMY_DATABASE_URL, echo=False, future=True, **_engine_kwargs)

# Configure Session class
SessionLocal = scoped_session(sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False))


class Base(DeclarativeBase):
    """Base class for declarative models."""


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def init_engine(url: str = SQLALCHEMY_DATABASE_URL) -> Engine:
    """Bind sessions to ``url`` and create any missing tables."""
    global engine
    # models must be registered on Base before create_all
    from craving_coach.dataproviders.repositories import _models  # noqa: F401

    engine = create_engine(url, echo=False, future=True, **_engine_kwargs)
    SessionLocal.remove()
    SessionLocal.configure(bind=engine)
    Base.metadata.create_all(bind=engine)
    run_migrations()
    return engine


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    SQLAlchemy failures surface as :class:`PersistenceError`.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceError(str(exc)) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

# ---------------------------------------------------------------------------
# Simple migration helper (SQLite only)
# ---------------------------------------------------------------------------


def _add_column_if_missing(table: str, column_name: str, column_def: str) -> None:
    """Add column to SQLite table if it doesn't exist."""
    with engine.begin() as conn:
        cols = conn.execute(text(f"PRAGMA table_info({table})")).fetchall()
        if column_name not in [c[1] for c in cols]:
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column_name} {column_def}"))


def run_migrations() -> None:
    """Run simple migrations to add new columns if needed."""
    # Reduction plan columns
    _add_column_if_missing("user_profiles", "enable_gradual_reduction", "BOOLEAN DEFAULT 1")
    _add_column_if_missing("user_profiles", "plan_start", "DATE")

    # Retry-safe scheduling
    _add_column_if_missing("scheduler_states", "last_request_id", "VARCHAR(64)")
