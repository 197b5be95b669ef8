"""
Database Module

This package provides connection settings and session management for the
relational ledger store.
"""

from learning_engine.common.db.connection import get_database_settings

from learning_engine.common.db.session import (
    create_db_engine,
    create_session_factory,
    session_scope,
    Session,
)

__all__ = [
    'get_database_settings',
    'create_db_engine',
    'create_session_factory',
    'session_scope',
    'Session',
]
