"""Database package initialization.

This module exposes the public interface of the database package.
"""

from .db_core import (
    DEFAULT_DATABASE_URL,
    ConfigError,
    ConnectivityError,
    DatabaseConfig,
    DatabaseError,
    DatabasePool,
    create_pool,
    parse_database_url,
)
from .examples import DEMO_EVENTS
from .repository import EventRepository, InMemoryEventRepository, NotFoundError

__all__ = [
    # Pool provider
    'DatabaseConfig',
    'DatabasePool',
    'create_pool',
    'parse_database_url',
    'DEFAULT_DATABASE_URL',

    # Exceptions
    'DatabaseError',
    'ConfigError',
    'ConnectivityError',
    'NotFoundError',

    # Repository
    'EventRepository',
    'InMemoryEventRepository',
    'DEMO_EVENTS',
]
