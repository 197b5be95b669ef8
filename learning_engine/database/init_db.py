"""
Database initialization.

This module creates (or drops) the ledger schema on a SQLAlchemy engine.
"""

from typing import Optional

from sqlalchemy.engine import Engine

from learning_engine.common.db.session import create_db_engine
from learning_engine.common.logger import app_logger
from learning_engine.database.base import Base

# Table classes register themselves on Base.metadata when imported
import learning_engine.performance.models  # noqa: F401

logger = app_logger.getChild("database.init_db")


def initialize_database(engine: Optional[Engine] = None, database_url: Optional[str] = None) -> Engine:
    """
    Create all ledger tables that do not exist yet.

    Args:
        engine: Engine to use; one is created from settings when omitted
        database_url: URL for the engine created when ``engine`` is omitted

    Returns:
        The engine the schema was created on
    """
    engine = engine or create_db_engine(database_url)
    Base.metadata.create_all(engine)
    logger.info(f"Initialized ledger schema ({', '.join(sorted(Base.metadata.tables))})")
    return engine


def drop_database(engine: Engine) -> None:
    """Drop every ledger table on ``engine``."""
    Base.metadata.drop_all(engine)
    logger.info("Dropped ledger schema")
