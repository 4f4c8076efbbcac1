# tests/conftest.py
"""
Shared test fixtures and configuration for pytest.
"""

import copy
import sqlite3

import pytest

from dbcsv import config
from dbcsv.defaults import settings


@pytest.fixture(autouse=True)
def isolated_settings():
    """Keep every test on the built-in defaults, with no config file lookup."""
    saved = copy.deepcopy(settings)
    config._config_manager = None
    config._config_searched = True
    yield
    settings.clear()
    settings.update(saved)
    config._config_manager = None
    config._config_searched = False


class FakeDBAPICursor:
    """
    Minimal PEP 249 cursor. Each entry in rows is returned by fetchone(); an
    exception instance is raised instead of returned.
    """

    def __init__(self, columns, rows, description_error=None):
        self._columns = columns
        self._rows = list(rows)
        self._description_error = description_error
        self.fetch_calls = 0

    @property
    def description(self):
        if self._description_error is not None:
            raise self._description_error
        if self._columns is None:
            return None
        return [(name, None, None, None, None, None, None) for name in self._columns]

    def fetchone(self):
        self.fetch_calls += 1
        if not self._rows:
            return None
        row = self._rows.pop(0)
        if isinstance(row, Exception):
            raise row
        return row


class FailingStream:
    """Text stream that raises OSError once more than `limit` writes were made."""

    encoding = 'utf-8'

    def __init__(self, limit):
        self.limit = limit
        self.chunks = []
        self.flushed = 0

    def write(self, text):
        if len(self.chunks) >= self.limit:
            raise OSError("No space left on device")
        self.chunks.append(text)
        return len(text)

    def flush(self):
        self.flushed += 1

    def getvalue(self):
        return ''.join(self.chunks)


class OperationalError(Exception):
    """Stands in for a driver's connection-level error."""


class DataError(Exception):
    """Stands in for a driver's PEP 249 DataError."""


@pytest.fixture
def fake_cursor_factory():
    return FakeDBAPICursor


@pytest.fixture
def users_db():
    """In-memory sqlite database with a small users table."""
    conn = sqlite3.connect(':memory:')
    conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, score REAL, avatar BLOB)")
    conn.executemany(
        "INSERT INTO users (id, name, score, avatar) VALUES (?, ?, ?, ?)",
        [
            (1, 'Alice', 12.5, bytes([0xAB, 0xCD])),
            (2, 'Bob', None, None),
            (3, 'Carol, Jr.', 100.0, b'hi'),
        ]
    )
    conn.commit()
    yield conn
    conn.close()
