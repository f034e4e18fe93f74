"""Database configuration and helpers for the local aircraft registry."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger("redwood.db")

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections may be used from worker threads."""

    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create database tables if they do not exist."""

    import redwood.db_models  # noqa: F401 - models are imported for side effects

    Base.metadata.create_all(bind=engine)


def sqlite_file(database_url: str) -> Path | None:
    """Filesystem path of a file-backed SQLite URL, else ``None``."""

    url = make_url(database_url)
    if not url.drivername.startswith("sqlite") or not url.database:
        return None
    if url.database == ":memory:":
        return None
    return Path(url.database)
