"""Environment configuration module.

This module MUST be imported before any other project modules that depend on environment variables.
It loads the .env file and resolves the settings the service is started with.

Usage:
    from motophoto.config.environment import load_settings

    settings = load_settings()

Note:
    This module handles loading of environment variables via python-dotenv.
    In production, environment variables should be set directly in the
    platform's environment configuration; a missing .env file is ignored.
"""

import logging
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..db.db_core import ConfigError, DEFAULT_DATABASE_URL

# Load environment variables - this must happen before settings are read
load_dotenv()

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS = ('development', 'production')

DEFAULT_HOST = '0.0.0.0'
DEFAULT_PORT = 3001
DEFAULT_SHUTDOWN_TIMEOUT = 10.0
DEFAULT_CONNECT_TIMEOUT = 5.0

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


def parse_log_level(value: Optional[str]) -> int:
    """Convert a LOG_LEVEL value to a logging level, falling back to INFO."""
    return LOG_LEVELS.get((value or '').strip().lower(), logging.INFO)


def parse_log_json(value: Optional[str]) -> bool:
    """LOG_JSON is enabled only by an explicit 'true' or '1'."""
    return (value or '').strip().lower() in ('true', '1')


class Settings(BaseSettings):
    """
    Resolved process settings.

    Field names map to upper-case environment variables (PORT, LOG_LEVEL, ...),
    except connect_timeout, which is read from DATABASE_CONNECT_TIMEOUT.
    Built once at startup and passed explicitly to the lifecycle manager,
    nothing reads the environment after that.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_ignore_empty=True,
        extra='ignore',
        frozen=True,
        populate_by_name=True,
    )

    environment: str = Field(
        default='development',
        description="'development' or 'production'",
    )

    host: str = Field(default=DEFAULT_HOST, min_length=1)

    # 0 asks the OS for a free port
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)

    database_url: str = Field(default=DEFAULT_DATABASE_URL, min_length=1)

    log_level: int = Field(default=logging.INFO)

    log_json: bool = Field(default=False)

    shutdown_timeout: float = Field(
        default=DEFAULT_SHUTDOWN_TIMEOUT,
        gt=0,
        description="Grace period for in-flight requests, in seconds",
    )

    connect_timeout: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT,
        gt=0,
        validation_alias='DATABASE_CONNECT_TIMEOUT',
        description="Timeout for the startup database ping, in seconds",
    )

    @field_validator('environment', mode='before')
    @classmethod
    def _known_environment(cls, value: Any) -> str:
        environment = str(value).strip().lower()
        if environment not in VALID_ENVIRONMENTS:
            logger.warning(
                f"Environment setting '{environment}' is invalid or not specified. "
                "Expected 'development' or 'production'. Defaulting to development environment."
            )
            return 'development'
        return environment

    @field_validator('host', 'database_url', mode='before')
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator('log_level', mode='before')
    @classmethod
    def _log_level(cls, value: Any) -> Any:
        return parse_log_level(value) if isinstance(value, str) else value

    @field_validator('log_json', mode='before')
    @classmethod
    def _log_json(cls, value: Any) -> Any:
        return parse_log_json(value) if isinstance(value, str) else value

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'


def load_settings() -> Settings:
    """
    Build Settings from the process environment and the .env file.

    Raises:
        ConfigError: If a setting has the wrong type or is out of range
    """
    try:
        return Settings()
    except ValidationError as e:
        problems = '; '.join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigError(f"Invalid settings: {problems}") from e


__all__ = ['Settings', 'load_settings', 'parse_log_level', 'parse_log_json']
