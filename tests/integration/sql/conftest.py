"""Pytest fixtures for SQL integration tests.

Runs against SQLite through aiosqlite, one database file per test.
"""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from chronicle.config import ChronicleSettings
from chronicle.eventstore import EventStore, SqlStorageBackend
from chronicle.messaging import InMemoryMessageBus, JsonMessageSerializer
from chronicle.publishing import EventPublisher
from chronicle.snapshots import SqlSnapshotStore


@pytest_asyncio.fixture
async def settings(tmp_path: Path) -> AsyncIterator[ChronicleSettings]:
    """Create settings pointing to a fresh database with the schema in place."""
    settings = ChronicleSettings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'events.db'}")
    await settings.on_startup()
    try:
        yield settings
    finally:
        await settings.on_shutdown()


@pytest.fixture
def engine(settings: ChronicleSettings) -> AsyncEngine:
    return settings.engine


@pytest.fixture
def sql_backend(settings: ChronicleSettings) -> SqlStorageBackend:
    return settings.storage_backend()


@pytest.fixture
def sql_snapshot_store(settings: ChronicleSettings) -> SqlSnapshotStore:
    return settings.snapshot_store()


@pytest.fixture
def sql_event_store(
    sql_backend: SqlStorageBackend, serializer: JsonMessageSerializer
) -> EventStore:
    return EventStore(sql_backend, serializer)


@pytest.fixture
def sql_publisher(
    sql_backend: SqlStorageBackend,
    serializer: JsonMessageSerializer,
    message_bus: InMemoryMessageBus,
) -> EventPublisher:
    return EventPublisher(sql_backend, serializer, message_bus)
