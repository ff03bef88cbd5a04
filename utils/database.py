"""Database helpers for the benchmark API.

Utilities provided:
- build SQLAlchemy engines (SQLite or any ``DATABASE_URL``)
- create tables
- open sessions, either bare or scoped to one transaction
- serialize seeding across processes

The default local SQLite file is `database/database.db` (configurable via
the `SQLITE_FILE` environment variable). The module ensures the parent
directory exists before creating the engine so the database can be created
on first use.

Copyright (c) Bryn Gwalad 2025
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import models so they are registered on SQLModel metadata.
from api.models import Category, Item  # noqa: F401
from utils import settings

logger = logging.getLogger(__name__)

# Arbitrary 64-bit key for pg_advisory_lock; identifies the seeding job.
SEED_LOCK_KEY = 7_318_004_221

_local_seed_lock = threading.Lock()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for ``database_url``.

    SQLite engines get foreign key enforcement switched on, and in-memory
    SQLite URLs share a single connection so every session sees the same
    database.
    """
    url = make_url(database_url)
    kwargs = {"echo": echo}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        else:
            # Ensure parent directory exists before creating the engine
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    new_engine = create_engine(database_url, **kwargs)
    if url.get_backend_name() == "sqlite":
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


engine = make_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

# Ensure tables exist on import. Startup handlers also call `init_db()`, but
# tests (or scripts) that import the package and hit endpoints directly
# expect the tables to already exist.
SQLModel.metadata.create_all(engine)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create database tables from SQLModel metadata."""
    SQLModel.metadata.create_all(bind or engine)


def drop_db(bind: Optional[Engine] = None) -> None:
    SQLModel.metadata.drop_all(bind or engine)


def get_session(bind: Optional[Engine] = None) -> Session:
    # Objects stay usable after commit; nothing outlives the session by
    # lazily loading through it.
    return Session(bind or engine, expire_on_commit=False)


@contextmanager
def session_scope(bind: Optional[Engine] = None) -> Iterator[Session]:
    """Yield a session wrapped in one transaction.

    The transaction commits when the block exits normally and rolls back
    when it raises. The session is always closed.
    """
    session = get_session(bind)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def seed_lock(bind: Optional[Engine] = None) -> Iterator[None]:
    """Hold the run-once lock for data generation.

    On PostgreSQL this is a session-level advisory lock, so concurrent
    processes against the same database wait for each other. Other backends
    fall back to a lock local to this process.
    """
    bind = bind or engine
    if bind.dialect.name == "postgresql":
        with bind.connect() as conn:
            conn.execute(text("SELECT pg_advisory_lock(:key)"), {"key": SEED_LOCK_KEY})
            try:
                yield
            finally:
                conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": SEED_LOCK_KEY})
        return

    with _local_seed_lock:
        yield
