"""Database configuration and session management."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from prime_notifications.config import get_settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``.

    SQLite connections are shared across threads because FastAPI runs sync
    dependencies in a worker pool; in-memory databases additionally use a
    single static connection so every session sees the same data.
    """

    if database_url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return create_engine(database_url, **options)
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def initialize_database(bind: Engine | None = None) -> None:
    """Ensure all ORM models have corresponding database tables."""

    from prime_notifications.infrastructure import models  # noqa: F401  # ensure models are imported

    target = bind or engine
    logger.debug("Creating missing tables on %s", target.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=target, checkfirst=True)
