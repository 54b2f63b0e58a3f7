"""Pytest configuration and shared fixtures."""

import os

# Set up test environment BEFORE any imports that read it
os.environ.setdefault("ENVIRONMENT", "development")

import logging

import pytest
from fastapi.testclient import TestClient

from motophoto.api.app import create_application
from motophoto.config.environment import Settings
from motophoto.db import DEMO_EVENTS, InMemoryEventRepository


@pytest.fixture
def repository():
    return InMemoryEventRepository(DEMO_EVENTS)


@pytest.fixture
def settings():
    return Settings(host="127.0.0.1", port=0, shutdown_timeout=5.0)


@pytest.fixture
def app(repository, settings):
    return create_application(repository, settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def restore_root_logger():
    """Undo handler/level changes a test makes to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
