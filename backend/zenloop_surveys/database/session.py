"""
Database engine and session factories.

DATABASE_URL selects the backend; the default is a local SQLite file, which
is enough for the session table this app keeps.
"""

import os
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./zenloop_surveys.db")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db() -> None:
    """Create tables that do not exist yet."""
    from zenloop_surveys.db_base import Base
    import zenloop_surveys.models  # noqa: F401  registers models on Base

    Base.metadata.create_all(bind=engine)


def get_db_session_sync() -> Generator[Session, None, None]:
    """Yield a session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_db_session() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session."""
    yield from get_db_session_sync()
