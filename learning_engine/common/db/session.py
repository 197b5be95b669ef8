"""
Database Session Management

This module builds SQLAlchemy engines and session factories for the
relational record store. The engine core is synchronous, so sessions are
plain ``Session`` objects.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from learning_engine.common.db.connection import get_database_settings
from learning_engine.common.logger import app_logger

logger = app_logger.getChild("db.session")


def get_engine_kwargs(database_url: str, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Get engine keyword arguments based on database type.
    Different databases support different connection options.
    """
    settings = settings or {}
    kwargs: Dict[str, Any] = {"echo": settings.get("echo", False), "future": True}

    if database_url.startswith("postgresql"):
        kwargs.update({
            "pool_size": settings.get("pool_size", 5),
            "pool_pre_ping": True,
            "pool_recycle": 300,
        })
    elif database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection so every session sees the same in-memory database
        kwargs.update({
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        })
    elif database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}

    return kwargs


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        database_url: Explicit URL; resolved from settings when omitted

    Returns:
        Configured engine
    """
    settings = get_database_settings()
    url = database_url or settings["database_url"]
    logger.debug(f"Creating database engine for {url.split('://', 1)[0]}")
    return create_engine(url, **get_engine_kwargs(url, settings))


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to ``engine``."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits on success, rolls back and re-raises on any exception.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
