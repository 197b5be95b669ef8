"""
Shared fixtures for the learning engine tests.
"""

import pytest

from learning_engine.common.config import AdaptationConfig
from learning_engine.common.db.session import create_db_engine, create_session_factory
from learning_engine.database.init_db import drop_database, initialize_database
from learning_engine.performance.repository import MemoryLedgerRepository, SqlLedgerRepository
from learning_engine.performance.service import AdaptiveLearningService


@pytest.fixture
def adaptation_config():
    """Default thresholds (40/80, trigger of 2)."""
    return AdaptationConfig()


@pytest.fixture
def memory_repository():
    return MemoryLedgerRepository()


@pytest.fixture
def service(memory_repository, adaptation_config):
    """Service backed by the in-memory store."""
    return AdaptiveLearningService(memory_repository, config=adaptation_config)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with the ledger schema created."""
    sqlite_engine = create_db_engine("sqlite://")
    initialize_database(sqlite_engine)
    yield sqlite_engine
    drop_database(sqlite_engine)
    sqlite_engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def sql_repository(session_factory):
    return SqlLedgerRepository(session_factory)


@pytest.fixture
def sql_service(sql_repository, adaptation_config):
    """Service backed by the SQLite store."""
    return AdaptiveLearningService(sql_repository, config=adaptation_config)
