"""
Database Module

This module provides the declarative base and schema management for the
learning engine's ledger tables.
"""

from learning_engine.database.base import Base, ModelBase, metadata

__all__ = ['Base', 'ModelBase', 'metadata']
