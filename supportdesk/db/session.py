from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from supportdesk.core.config import get_settings

# Overlapping cron firings write to the same rows; wait for the lock instead of failing.
SQLITE_BUSY_TIMEOUT_MS = 5000


@lru_cache(maxsize=1)
def get_engine():
    settings = get_settings()
    database_url = settings.database_url
    connect_args = {}
    engine_kwargs = {"pool_pre_ping": True}
    is_sqlite = database_url.startswith("sqlite")

    if is_sqlite:
        connect_args = {"check_same_thread": False}
        if ":memory:" in database_url:
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
            cursor.close()

    return engine


@lru_cache(maxsize=1)
def get_session_factory():
    return sessionmaker(bind=get_engine(), autocommit=False, autoflush=False, class_=Session)


def get_db():
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope():
    """Session for jobs running outside a request."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
