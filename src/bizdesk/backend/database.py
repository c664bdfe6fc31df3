"""
Database wiring for the dev backend.

DATABASE_URL selects the store. The default is a SQLite file under ./data;
"sqlite://" gives a private in-memory database shared by every connection of
its engine (tests, throwaway demos).
"""

import os
import pathlib

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./data/bizdesk.db")

_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def make_engine(url: str = DATABASE_URL) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url)

    kwargs = {}
    if url in _MEMORY_URLS:
        # One connection for the whole engine, or each one sees an empty db.
        kwargs["poolclass"] = StaticPool
    else:
        pathlib.Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    # FastAPI runs sync routes in a threadpool.
    return create_engine(url, connect_args={"check_same_thread": False}, **kwargs)


engine = make_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Declarative base class shared by all ORM models."""


def init_db(bind: Engine = engine) -> None:
    """Create every table. The dev backend has no migrations."""
    import src.bizdesk.backend.models  # noqa: F401  (registers the tables)

    Base.metadata.create_all(bind=bind)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
