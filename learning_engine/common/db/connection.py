"""
Database Configuration Loading

This module resolves the connection settings of the relational record store
from the engine configuration and environment variables.
"""

import os
import urllib.parse
from typing import Dict, Any, Optional

from learning_engine.common.config import get_config
from learning_engine.common.exceptions import ConfigurationError
from learning_engine.common.logger import app_logger

logger = app_logger.getChild("db.config")

# Environment variable names
DB_TYPE_ENV = "DB_TYPE"  # sqlite or postgresql
DB_HOST_ENV = "DB_HOST"
DB_PORT_ENV = "DB_PORT"
DB_NAME_ENV = "DB_NAME"
DB_USER_ENV = "DB_USER"
DB_PASSWORD_ENV = "DB_PASSWORD"
DB_PATH_ENV = "DB_PATH"  # For SQLite

# Default values
DEFAULT_DB_TYPE = "sqlite"
DEFAULT_DB_HOST = "localhost"
DEFAULT_DB_PORT = 5432
DEFAULT_DB_NAME = "learning_engine"
DEFAULT_DB_USER = "learning_engine"
DEFAULT_DB_PASSWORD = ""
DEFAULT_DB_PATH = "./learning_engine.db"


def get_database_settings(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Resolve database connection settings.

    A configured ``database.url`` (``DATABASE_URL``) wins; otherwise the URL is
    built from the ``DB_*`` component variables.

    Args:
        environ: Environment mapping to read from (defaults to os.environ)

    Returns:
        Dictionary with ``database_url``, ``db_type``, ``pool_size`` and ``echo``

    Raises:
        ConfigurationError: If DB_TYPE names an unsupported database
    """
    environ = os.environ if environ is None else environ
    db_config = get_config().database
    settings: Dict[str, Any] = {
        "pool_size": db_config.pool_size,
        "echo": db_config.echo,
    }

    if db_config.url:
        database_url = db_config.url
        settings["database_url"] = database_url
        if database_url.startswith("postgresql"):
            settings["db_type"] = "postgresql"
        elif database_url.startswith("sqlite"):
            settings["db_type"] = "sqlite"
        else:
            settings["db_type"] = "unknown"
        logger.info("Using configured database URL")
        return settings

    db_type = environ.get(DB_TYPE_ENV, DEFAULT_DB_TYPE).lower()
    settings["db_type"] = db_type

    if db_type == "postgresql":
        user = environ.get(DB_USER_ENV, DEFAULT_DB_USER)
        password = urllib.parse.quote_plus(environ.get(DB_PASSWORD_ENV, DEFAULT_DB_PASSWORD))
        host = environ.get(DB_HOST_ENV, DEFAULT_DB_HOST)
        port = int(environ.get(DB_PORT_ENV, DEFAULT_DB_PORT))
        database = environ.get(DB_NAME_ENV, DEFAULT_DB_NAME)
        settings["database_url"] = f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{database}"
    elif db_type == "sqlite":
        settings["database_url"] = f"sqlite:///{environ.get(DB_PATH_ENV, DEFAULT_DB_PATH)}"
    else:
        raise ConfigurationError(f"Unsupported database type: {db_type}", DB_TYPE_ENV)

    logger.info(f"Constructed database URL for {db_type}")
    return settings
