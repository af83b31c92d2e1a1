import pytest

from chronicle.config import ChronicleSettings
from chronicle.eventstore import SqlStorageBackend
from chronicle.snapshots import SqlSnapshotStore


def test_defaults():
    settings = ChronicleSettings()

    assert settings.database_url == "sqlite+aiosqlite:///./chronicle.db"
    assert settings.outbox_batch_size == 1000
    assert settings.relay_interval_seconds == 5.0


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CHRONICLE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("CHRONICLE_OUTBOX_BATCH_SIZE", "250")
    monkeypatch.setenv("CHRONICLE_RELAY_INTERVAL_SECONDS", "0.5")

    settings = ChronicleSettings()

    assert settings.database_url == "sqlite+aiosqlite:///:memory:"
    assert settings.outbox_batch_size == 250
    assert settings.relay_interval_seconds == 0.5


@pytest.mark.asyncio
async def test_engine_is_created_lazily_and_shared(tmp_path):
    settings = ChronicleSettings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'c.db'}")
    assert "engine" not in settings.__dict__

    backend = settings.storage_backend()
    snapshots = settings.snapshot_store()

    assert isinstance(backend, SqlStorageBackend)
    assert isinstance(snapshots, SqlSnapshotStore)
    assert backend.engine is snapshots.engine is settings.engine

    await settings.on_shutdown()
    assert "engine" not in settings.__dict__


@pytest.mark.asyncio
async def test_shutdown_without_engine_is_noop():
    await ChronicleSettings().on_shutdown()
