"""
Shared pytest fixtures for portadb tests.

This module provides:
- A connected in-memory SQLite ``Database`` (native upsert path)
- The same database tagged ``other`` (emulated upsert path)
- A ``users(id PK, email UNIQUE, age)`` table on both

Usage:
    def test_something(db):
        db.insert("users", {"id": 1, "email": "a@x.com", "age": 20})
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from portadb import Database

USERS_DDL = (
    "CREATE TABLE users ("
    "id INTEGER PRIMARY KEY, "
    "email TEXT NOT NULL UNIQUE, "
    "age INTEGER)"
)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without an explicit marker as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Undo any configure_logging() call made by a test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def db() -> Generator[Database, None, None]:
    """Connected in-memory SQLite database with an empty ``users`` table."""
    database = Database()
    database.connect("memory")
    database.execute(USERS_DDL)
    yield database
    database.disconnect()


@pytest.fixture
def generic_db() -> Generator[Database, None, None]:
    """In-memory SQLite tagged ``other``: exercises the portable fallbacks."""
    database = Database()
    database.connect("memory", dialect="other")
    database.execute(USERS_DDL)
    yield database
    database.disconnect()


@pytest.fixture(params=["sqlite", "other"])
def any_db(request: pytest.FixtureRequest) -> Generator[Database, None, None]:
    """Parametric fixture: run each test on the native and emulated paths."""
    database = Database()
    database.connect("memory", dialect=request.param)
    database.execute(USERS_DDL)
    yield database
    database.disconnect()


@pytest.fixture
def seeded(any_db: Database) -> Database:
    """``users`` with ages 20, 30, 40."""
    for i, age in enumerate((20, 30, 40), start=1):
        any_db.insert("users", {"id": i, "email": f"u{i}@x.com", "age": age})
    return any_db


@pytest.fixture
def db_file(tmp_path: Path) -> str:
    """Path for a SQLite file database inside the test's tmp dir."""
    return str(tmp_path / "portadb.db")
