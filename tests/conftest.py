"""
Global test configuration and fixtures for the session store

Provides a throwaway SQLite database with the sessions table created, stores
bound to it, and a controllable clock.
"""

import os
import tempfile
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, text

from sessionstore.core.config import TableNaming
from sessionstore.db.init_db import create_session_table
from sessionstore.stores.sql import SQLStore


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def test_engine():
    """Create a file-backed SQLite database for each test function"""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})

    yield engine

    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(scope="function")
def sessions_table(test_engine):
    """Default sessions(key, data, expiration) table with key as primary key"""
    return create_session_table(test_engine)


@pytest.fixture(scope="function")
def store(test_engine, sessions_table):
    """JSON store on the default table"""
    return SQLStore(test_engine)


@pytest.fixture(scope="function")
def fetch_rows(test_engine):
    """Read raw (key, data, expiration) rows for a key"""
    def _fetch(key, naming=None):
        naming = naming or TableNaming()
        query = text(
            f'SELECT "{naming.key_column}", "{naming.data_column}", "{naming.expiration_column}" '
            f'FROM "{naming.table}" WHERE "{naming.key_column}" = :key'
        )
        with test_engine.connect() as conn:
            return [tuple(row) for row in conn.execute(query, {"key": key})]
    return _fetch


# ============================================================================
# Clock Fixtures
# ============================================================================

class FrozenClock:
    """Clock the store reads through ``sessionstore.stores.sql._now``"""

    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(scope="function")
def clock():
    frozen = FrozenClock(1_700_000_000)
    with patch("sessionstore.stores.sql._now", new=frozen):
        yield frozen


# ============================================================================
# Test Markers and Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "critical: mark test as critical path functionality"
    )
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
