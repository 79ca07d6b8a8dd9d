# server/alerting/infrastructure/persistence/database/session.py
from __future__ import annotations

"""SQLAlchemy engine/session setup + création du schéma."""

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from alerting.core.config import settings

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


def build_engine(database_url: str, connect_timeout: int = 5) -> Engine:
    """
    Engine avec connect_args selon le dialecte.
    - PostgreSQL : connect_timeout
    - SQLite : check_same_thread=False, StaticPool pour l'in-memory, FK activées
    """
    url = make_url(database_url)
    backend = url.get_backend_name()
    kwargs: dict = dict(future=True, pool_pre_ping=True)
    connect_args: dict = {}

    if backend.startswith("postgresql") or backend == "postgres":
        connect_args["connect_timeout"] = int(connect_timeout)
    elif backend.startswith("sqlite"):
        # le scheduler et les pools de threads partagent l'engine
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = float(connect_timeout)
        db_name = (url.database or "").strip()
        if db_name in ("", ":memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, connect_args=connect_args, **kwargs)

    if backend.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

    return engine


def init_engine() -> Engine:
    """Engine singleton construit depuis settings.DATABASE_URL."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings.DATABASE_URL, settings.DB_CONNECT_TIMEOUT)
    return _engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        future=True,
        autoflush=True,
        expire_on_commit=False,
    )


def init_sessionmaker() -> sessionmaker:
    """Create (once) and return the SessionLocal factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = make_sessionmaker(init_engine())
    return _SessionLocal


def init_db(engine: Engine | None = None) -> None:
    """Crée les tables manquantes (idempotent)."""
    from alerting.infrastructure.persistence.database.base import Base

    engine = engine or init_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("database schema ready", extra={"url": engine.url.render_as_string(hide_password=True)})
