"""
Centralized Configuration for the Learning Engine

This module provides the configuration models for the engine and a loader
that merges defaults, an optional YAML/JSON config file and environment
variables (highest priority, optionally read from a ``.env`` file).
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from learning_engine.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class AdaptationConfig(BaseModel):
    """Thresholds of the difficulty state machine and the recommender."""
    low_score_threshold: float = Field(default=40.0, ge=0, le=100)
    high_score_threshold: float = Field(default=80.0, ge=0, le=100)
    consecutive_trigger: int = Field(default=2, ge=1)
    weak_topic_threshold: int = Field(default=50, ge=0, le=100)
    strong_topic_threshold: int = Field(default=80, ge=0, le=100)
    max_save_retries: int = Field(default=3, ge=0)

    @model_validator(mode="after")
    def validate_bands(self) -> "AdaptationConfig":
        """Low band must sit strictly below the high band"""
        if self.low_score_threshold >= self.high_score_threshold:
            raise ValueError(
                f"low_score_threshold ({self.low_score_threshold}) must be below "
                f"high_score_threshold ({self.high_score_threshold})"
            )
        if self.weak_topic_threshold > self.strong_topic_threshold:
            raise ValueError("weak_topic_threshold must not exceed strong_topic_threshold")
        return self


class DatabaseConfig(BaseModel):
    """Relational record store configuration"""
    url: Optional[str] = None
    echo: bool = False
    pool_size: int = Field(default=5, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    use_json: bool = False
    file_path: Optional[str] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class AppConfig(BaseModel):
    """Main engine configuration"""
    app_name: str = "learning-engine"
    adaptation: AdaptationConfig = Field(default_factory=AdaptationConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# Environment variable -> (section, field)
ENVIRONMENT_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "ADAPTIVE_LOW_SCORE_THRESHOLD": ("adaptation", "low_score_threshold"),
    "ADAPTIVE_HIGH_SCORE_THRESHOLD": ("adaptation", "high_score_threshold"),
    "ADAPTIVE_CONSECUTIVE_TRIGGER": ("adaptation", "consecutive_trigger"),
    "ADAPTIVE_WEAK_TOPIC_THRESHOLD": ("adaptation", "weak_topic_threshold"),
    "ADAPTIVE_STRONG_TOPIC_THRESHOLD": ("adaptation", "strong_topic_threshold"),
    "ADAPTIVE_MAX_SAVE_RETRIES": ("adaptation", "max_save_retries"),
    "DATABASE_URL": ("database", "url"),
    "DB_ECHO": ("database", "echo"),
    "DB_POOL_SIZE": ("database", "pool_size"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_JSON": ("logging", "use_json"),
    "LOG_FILE": ("logging", "file_path"),
}


class ConfigLoader:
    """
    Configuration loader for the engine.

    Loads configuration from:
    1. Default values
    2. Config file
    3. Environment variables (highest priority)
    """

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to config file (YAML or JSON)
            environ: Environment mapping to read overrides from (defaults to os.environ)
        """
        self.config_path = config_path or os.environ.get("CONFIG_PATH")
        self._environ = environ
        self._config: Optional[AppConfig] = None

    def load(self) -> AppConfig:
        """
        Load configuration from all sources.

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If the merged values fail validation
        """
        if self._config is not None:
            return self._config

        data: Dict[str, Any] = {}
        if self.config_path:
            data = self._load_from_file(self.config_path)

        if self._environ is None:
            load_dotenv()
            environ = os.environ
        else:
            environ = self._environ

        for variable, (section, key) in ENVIRONMENT_OVERRIDES.items():
            if variable in environ:
                data.setdefault(section, {})[key] = environ[variable]

        try:
            self._config = AppConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
        return self._config

    def _load_from_file(self, path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            path: Path to config file

        Returns:
            Loaded configuration dictionary
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        if path.suffix.lower() in ['.yaml', '.yml']:
            with open(path, 'r') as f:
                loaded = yaml.safe_load(f)
        elif path.suffix.lower() == '.json':
            with open(path, 'r') as f:
                loaded = json.load(f)
        else:
            raise ConfigurationError(f"Unsupported config file format: {path.suffix}", "CONFIG_PATH")

        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping", "CONFIG_PATH")
        return loaded


# Global configuration instance
config_loader = ConfigLoader()
config = config_loader.load()


def get_config() -> AppConfig:
    """Get the loaded configuration."""
    return config


def reload_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Reload the configuration.

    Args:
        config_path: Path to config file

    Returns:
        Reloaded configuration
    """
    global config_loader, config
    config_loader = ConfigLoader(config_path)
    config = config_loader.load()
    return config
