"""Database configuration using pydantic-settings."""

from functools import cached_property

from pydantic_settings import BaseSettings
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .eventstore import SqlStorageBackend
from .publishing import DEFAULT_BATCH_SIZE
from .snapshots import SqlSnapshotStore


class ChronicleSettings(BaseSettings):
    """Configuration and factory for the SQL storage resources.

    All settings can be configured via environment variables with the
    CHRONICLE_ prefix. For example:
    - CHRONICLE_DATABASE_URL=postgresql+asyncpg://localhost/events
    - CHRONICLE_OUTBOX_BATCH_SIZE=500
    - CHRONICLE_RELAY_INTERVAL_SECONDS=2.5

    The settings also act as a factory, providing a lazily created engine
    and the backends built on it.

    Attributes:
        database_url: SQLAlchemy URL with an async driver.
        echo: Log every SQL statement through SQLAlchemy's logger.
        pool_pre_ping: Test pooled connections before handing them out.
        outbox_batch_size: Aggregates flushed per outbox sweep pass.
        relay_interval_seconds: Pause between background outbox sweeps.

    Example:
        >>> settings = ChronicleSettings()
        >>> await settings.on_startup()  # creates missing tables
        >>>
        >>> backend = settings.storage_backend()
        >>> store = EventStore(backend, JsonMessageSerializer())
        >>> publisher = EventPublisher(
        ...     backend, JsonMessageSerializer(), bus, settings.outbox_batch_size
        ... )
        >>>
        >>> await settings.on_shutdown()  # disposes the engine
    """

    database_url: str = "sqlite+aiosqlite:///./chronicle.db"
    echo: bool = False
    pool_pre_ping: bool = True

    outbox_batch_size: int = DEFAULT_BATCH_SIZE
    relay_interval_seconds: float = 5.0

    model_config = {"env_prefix": "CHRONICLE_"}

    @cached_property
    def engine(self) -> AsyncEngine:
        """Get the SQLAlchemy async engine.

        The engine is lazily created and cached for reuse.
        """
        return create_async_engine(
            self.database_url,
            echo=self.echo,
            pool_pre_ping=self.pool_pre_ping,
        )

    def storage_backend(self) -> SqlStorageBackend:
        """Create a storage backend for the event store and publisher."""
        return SqlStorageBackend(self.engine)

    def snapshot_store(self) -> SqlSnapshotStore:
        """Create a snapshot store sharing the engine."""
        return SqlSnapshotStore(self.engine)

    async def on_startup(self) -> None:
        """Called when the application starts.

        Creates any missing tables. Deployments that manage the schema with
        migrations may skip this.
        """
        await self.storage_backend().create_schema()

    async def on_shutdown(self) -> None:
        """Called when the application shuts down.

        Disposes the engine and its connection pool if it was created.
        """
        if "engine" in self.__dict__:
            await self.engine.dispose()
            del self.__dict__["engine"]
