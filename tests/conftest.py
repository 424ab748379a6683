"""Shared pytest fixtures for dyntable tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from dyntable.runtime.catalog import SchemaCatalog
from dyntable.runtime.db_backend import DatabaseStore
from dyntable.runtime.record_engine import RecordEngine
from dyntable.runtime.table_manager import TableManager


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Return a temporary SQLite database path."""
    return tmp_path / "test.db"


@pytest.fixture
def store(db_path: Path) -> Iterator[DatabaseStore]:
    """Return an opened SQLite store, closed after the test."""
    store = DatabaseStore(db_path=db_path)
    store.open()
    yield store
    store.close()


@pytest.fixture
def catalog(store: DatabaseStore) -> SchemaCatalog:
    return SchemaCatalog(store)


@pytest.fixture
def tables(store: DatabaseStore, catalog: SchemaCatalog) -> TableManager:
    """Return a table manager with the default `users` table created."""
    manager = TableManager(store, catalog)
    manager.ensure_default_relations()
    return manager


@pytest.fixture
def engine(store: DatabaseStore, tables: TableManager) -> RecordEngine:
    return RecordEngine(store, tables)


@pytest.fixture
def events(tables: TableManager) -> str:
    """Create an `events` table from sample data and return its name."""
    descriptor = tables.create_relation(
        "events", sample_data={"title": "hi", "count": 3, "active": True}
    )
    return descriptor.name
