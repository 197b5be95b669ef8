"""
Engine Logger

This module provides the logging interface shared by every part of the
learning engine: a configurable root logger, a JSON formatter for log
aggregation, context-carrying adapters and an execution time decorator.
"""

import os
import sys
import json
import time
import logging
import datetime
import functools
from typing import Dict, Any, Optional, Union, Callable, TypeVar

from learning_engine.common.config import LoggingConfig, get_config

# Default log format
DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Name of the engine's root logger
ROOT_LOGGER_NAME = "learning_engine"

F = TypeVar('F', bound=Callable[..., Any])

__all__ = [
    'configure_logger',
    'get_logger',
    'LoggerAdapter',
    'JsonFormatter',
    'with_context',
    'app_logger',
    'log_execution_time'
]


class JsonFormatter(logging.Formatter):
    """
    Formatter that renders each record as a single JSON object.

    Context attached through ``LoggerAdapter`` (student, course, topic...) is
    merged into the top level of the object.
    """

    def __init__(self, datefmt: Optional[str] = None, *, indent: Optional[int] = None):
        super().__init__(datefmt=datefmt)
        self.indent = indent

    def format(self, record: logging.LogRecord) -> str:
        log_object = {
            "timestamp": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "name": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno
        }

        if record.exc_info:
            log_object["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        context = getattr(record, 'context', None)
        if isinstance(context, dict):
            log_object.update(context)

        return json.dumps(log_object, indent=self.indent, default=str)


def configure_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Union[str, int] = logging.INFO,
    format_string: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    use_json: bool = False,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure a logger with console and/or file handlers.

    Args:
        name: Logger name
        level: Log level name or number
        format_string: Log format string (ignored when use_json is set)
        date_format: Date format string
        use_json: Whether to emit JSON lines
        log_file: Optional path of a log file
        console_output: Whether to log to stdout

    Returns:
        Configured logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []

    if use_json:
        formatter = JsonFormatter(date_format)
    else:
        formatter = logging.Formatter(format_string, date_format)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        try:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except (FileNotFoundError, PermissionError) as e:
            logger.warning(f"Could not create log file {log_file}: {e}")

    return logger


def get_logger(name: str, parent: Optional[logging.Logger] = None) -> logging.Logger:
    """Get a logger by name, optionally as a child of ``parent``."""
    if parent:
        return parent.getChild(name)
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that attaches a context dictionary to every record.

    The context ends up on ``record.context`` where ``JsonFormatter`` picks
    it up; plain text formatters ignore it.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, context or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs = kwargs.copy()
        extra = dict(kwargs.get('extra') or {})
        context = dict(extra.get('context') or {})
        context.update(self.extra)
        extra['context'] = context
        kwargs['extra'] = extra
        return msg, kwargs

    def with_context(self, **context) -> 'LoggerAdapter':
        """Return a new adapter with ``context`` merged over this one's."""
        merged = dict(self.extra)
        merged.update(context)
        return LoggerAdapter(self.logger, merged)


def with_context(name: Optional[str] = None, **context) -> LoggerAdapter:
    """Create a context adapter around ``name`` (or the engine logger)."""
    logger = get_logger(name) if name else app_logger
    return LoggerAdapter(logger, context)


def get_app_logger(settings: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Get the engine's root logger, configuring it on first use.

    Args:
        settings: Logging section to apply; defaults to ``get_config().logging``,
            which merges the config file with ``LOG_LEVEL``, ``LOG_JSON`` and
            ``LOG_FILE``
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    if not logger.handlers:
        settings = settings or get_config().logging
        return configure_logger(
            name=ROOT_LOGGER_NAME,
            level=settings.level,
            use_json=settings.use_json,
            log_file=settings.file_path,
            console_output=True
        )

    return logger


app_logger = get_app_logger()


def log_execution_time(logger: Optional[logging.Logger] = None) -> Callable[[F], F]:
    """
    Decorator that logs how long the wrapped call took.

    Both outcomes are logged at DEBUG; a failing call re-raises its
    exception unchanged.
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = time.perf_counter() - start_time
                (logger or app_logger).debug(
                    f"{func.__name__} failed after {elapsed:.3f} seconds: {e}"
                )
                raise
            elapsed = time.perf_counter() - start_time
            (logger or app_logger).debug(f"{func.__name__} executed in {elapsed:.3f} seconds")
            return result

        return wrapper
    return decorator
