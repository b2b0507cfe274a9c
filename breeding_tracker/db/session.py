from __future__ import annotations

import os

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from breeding_tracker.db.tables import RecordRow  # noqa: F401  registers the table


def database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///breeding_tracker.db")


_engines: dict[str, Engine] = {}


def get_engine(url: str | None = None) -> Engine:
    url = url or database_url()
    engine = _engines.get(url)
    if engine is None:
        engine = create_engine(url)
        SQLModel.metadata.create_all(engine)
        _engines[url] = engine
    return engine


def create_session(url: str | None = None) -> Session:
    return Session(get_engine(url))
