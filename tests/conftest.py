"""
Global test configuration and fixtures for the DynamoDB session store

Provides an in-memory DynamoDB client, a controllable clock and a store wired to
both, plus helpers for AWS config files.
"""

import json
import logging
from pathlib import Path

import pytest
import pytest_asyncio

from dynamodb_sessions.core.utils.logging_config import PACKAGE_LOGGER
from dynamodb_sessions.stores.dynamodb import DynamoDBSessionStore
from utils.fakes import FakeClock, FakeDynamoDBClient

TABLE = "sessions"


# ============================================================================
# Backend Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def fake_clock():
    """Clock the store reads instead of time.time"""
    return FakeClock()


@pytest.fixture(scope="function")
def dynamodb_client():
    """In-memory DynamoDB client with the sessions table already present"""
    return FakeDynamoDBClient(tables=[TABLE])


@pytest_asyncio.fixture(scope="function")
async def store(dynamodb_client, fake_clock):
    """Session store on the fake client, with its table bootstrap finished"""
    session_store = DynamoDBSessionStore(client=dynamodb_client, table=TABLE, clock=fake_clock)
    await session_store.bootstrap_task
    dynamodb_client.calls.clear()

    yield session_store

    await session_store.close()


@pytest.fixture(scope="function")
def package_logger():
    """Restore the package logger after a test reconfigures it"""
    logger = logging.getLogger(PACKAGE_LOGGER)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def sample_session():
    """Session payload as a connect-style middleware would hand it over"""
    return {
        "cookie": {"maxAge": 5000, "httpOnly": True, "path": "/"},
        "user": "alice",
        "roles": ["reader", "writer"],
        "cart": {"items": [{"sku": "A-1", "qty": 2}], "total": 19.5},
    }


@pytest.fixture(scope="function")
def aws_config_file(tmp_path):
    """Write an AWS SDK style JSON config file and return its path"""
    def _write(data) -> str:
        path: Path = tmp_path / "aws-config.json"
        path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
        return str(path)
    return _write


# ============================================================================
# Test Markers and Configuration
# ============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "unit: fast tests with no external services"
    )
    config.addinivalue_line(
        "markers", "integration: tests exercising the web middleware end to end"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on file location"""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
