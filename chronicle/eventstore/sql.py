"""SQLAlchemy implementation of the storage contracts.

This module provides a relational backend using SQLAlchemy's async engine.
It runs on any engine with an async driver (PostgreSQL via asyncpg or
psycopg, SQLite via aiosqlite) and relies only on transactions, conditional
UPDATE row counts and primary key constraints.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import Row, delete, insert, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from ulid import ULID

from ..domain.exceptions import TransientStorageError
from .backend import EventStoreBackend, OutboxBackend
from .records import (
    AppendBatch,
    AppendResult,
    PendingEvent,
    PersistentEvent,
    UniqueIndexEntry,
)
from .schema import (
    aggregates,
    metadata,
    pending_events,
    persistent_events,
    unique_indexed_properties,
)

LOGGER = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)

EventT = TypeVar("EventT", bound=PersistentEvent)


class _AppendRejected(Exception):
    """Aborts the append transaction with a classified outcome."""

    def __init__(self, result: AppendResult):
        self.result = result


@asynccontextmanager
async def transaction(engine: AsyncEngine) -> AsyncIterator[AsyncConnection]:
    """Open a connection and transaction for one logical operation.

    The transaction commits when the block exits normally and rolls back on
    any exception, including cancellation. Connection-level failures are
    re-raised as TransientStorageError.
    """
    try:
        async with engine.begin() as conn:
            yield conn
    except TRANSIENT_ERRORS as err:
        raise TransientStorageError(f"Storage unavailable: {err}") from err


class SqlStorageBackend(EventStoreBackend, OutboxBackend):
    """Relational storage backend.

    Each operation opens its own connection and transaction, so a backend
    instance can be shared by any number of concurrent stores and
    publishers. Concurrency control is left entirely to the database:

    - The version register is advanced with
      `UPDATE aggregates SET version = :new WHERE version = :expected`;
      a row count other than one means another writer won. A new aggregate
      is registered with an INSERT whose primary key violation means the
      same.
    - Unique index entries are claimed with an INSERT guarded by the
      table's primary key; a violation means another aggregate owns the
      value.

    Attributes:
        engine: The SQLAlchemy async engine

    Examples:
        >>> engine = create_async_engine("postgresql+asyncpg://localhost/events")
        >>> backend = SqlStorageBackend(engine)
        >>> await backend.create_schema()
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def create_schema(self) -> None:
        """Create all tables that do not exist yet.

        Intended for tests and development; production schemas are expected
        to be managed by migrations.
        """
        async with transaction(self.engine) as conn:
            await conn.run_sync(metadata.create_all)

    async def append(self, batch: AppendBatch) -> AppendResult:
        try:
            async with transaction(self.engine) as conn:
                await self._advance_version(conn, batch)
                await self._insert_events(conn, batch)
                for entry in batch.unique_entries:
                    await self._claim_unique_value(conn, batch, entry)
        except _AppendRejected as rejected:
            LOGGER.debug(
                "Append rolled back",
                extra={
                    "aggregate_type": batch.aggregate_type,
                    "aggregate_id": str(batch.aggregate_id),
                    "expected_version": batch.expected_version,
                    "outcome": rejected.result.outcome.value,
                },
            )
            return rejected.result
        return AppendResult.committed()

    async def _advance_version(self, conn: AsyncConnection, batch: AppendBatch) -> None:
        if batch.expected_version == 0:
            try:
                await conn.execute(
                    insert(aggregates).values(
                        aggregate_type=batch.aggregate_type,
                        aggregate_id=batch.aggregate_id,
                        version=batch.new_version,
                    )
                )
            except IntegrityError as err:
                raise _AppendRejected(AppendResult.version_conflict()) from err
            return

        result = await conn.execute(
            update(aggregates)
            .where(
                aggregates.c.aggregate_type == batch.aggregate_type,
                aggregates.c.aggregate_id == batch.aggregate_id,
                aggregates.c.version == batch.expected_version,
            )
            .values(version=batch.new_version)
        )
        if result.rowcount != 1:
            raise _AppendRejected(AppendResult.version_conflict())

    async def _insert_events(self, conn: AsyncConnection, batch: AppendBatch) -> None:
        rows = [_event_to_row(event) for event in batch.events]
        try:
            await conn.execute(insert(persistent_events), rows)
            await conn.execute(insert(pending_events), rows)
        except IntegrityError as err:
            # Versions already taken means the register was stale
            raise _AppendRejected(AppendResult.version_conflict()) from err

    async def _claim_unique_value(
        self,
        conn: AsyncConnection,
        batch: AppendBatch,
        entry: UniqueIndexEntry,
    ) -> None:
        owner = await conn.scalar(
            select(unique_indexed_properties.c.aggregate_id).where(
                unique_indexed_properties.c.aggregate_type == entry.aggregate_type,
                unique_indexed_properties.c.property_name == entry.property_name,
                unique_indexed_properties.c.property_value == entry.property_value,
            )
        )
        if owner is not None:
            if owner != batch.aggregate_id:
                raise _AppendRejected(AppendResult.duplicate(entry))
            return

        try:
            await conn.execute(insert(unique_indexed_properties).values(**entry.model_dump()))
        except IntegrityError as err:
            # Claimed by a concurrent writer since the lookup above
            raise _AppendRejected(AppendResult.duplicate(entry)) from err

    async def load_events(
        self,
        aggregate_type: str,
        aggregate_id: UUID,
        after_version: int,
    ) -> list[PersistentEvent]:
        async with transaction(self.engine) as conn:
            result = await conn.execute(
                select(persistent_events)
                .where(
                    persistent_events.c.aggregate_type == aggregate_type,
                    persistent_events.c.aggregate_id == aggregate_id,
                    persistent_events.c.version > after_version,
                )
                .order_by(persistent_events.c.version)
            )
            return [_row_to_event(PersistentEvent, row) for row in result]

    async def find_aggregate_id(
        self,
        aggregate_type: str,
        property_name: str,
        property_value: str,
    ) -> UUID | None:
        async with transaction(self.engine) as conn:
            return await conn.scalar(
                select(unique_indexed_properties.c.aggregate_id).where(
                    unique_indexed_properties.c.aggregate_type == aggregate_type,
                    unique_indexed_properties.c.property_name == property_name,
                    unique_indexed_properties.c.property_value == property_value,
                )
            )

    async def get_version(self, aggregate_type: str, aggregate_id: UUID) -> int:
        async with transaction(self.engine) as conn:
            version = await conn.scalar(
                select(aggregates.c.version).where(
                    aggregates.c.aggregate_type == aggregate_type,
                    aggregates.c.aggregate_id == aggregate_id,
                )
            )
        return version or 0

    async def load_pending_events(
        self,
        aggregate_type: str,
        aggregate_id: UUID,
    ) -> list[PendingEvent]:
        async with transaction(self.engine) as conn:
            result = await conn.execute(
                select(pending_events)
                .where(
                    pending_events.c.aggregate_type == aggregate_type,
                    pending_events.c.aggregate_id == aggregate_id,
                )
                .order_by(pending_events.c.version)
            )
            return [_row_to_event(PendingEvent, row) for row in result]

    async def delete_pending_event(self, event: PendingEvent) -> bool:
        async with transaction(self.engine) as conn:
            result = await conn.execute(
                delete(pending_events).where(
                    pending_events.c.aggregate_type == event.aggregate_type,
                    pending_events.c.aggregate_id == event.aggregate_id,
                    pending_events.c.version == event.version,
                )
            )
            return result.rowcount == 1

    async def find_pending_aggregates(self, limit: int) -> list[tuple[str, UUID]]:
        async with transaction(self.engine) as conn:
            result = await conn.execute(
                select(pending_events.c.aggregate_type, pending_events.c.aggregate_id)
                .distinct()
                .limit(limit)
            )
            return [(row.aggregate_type, row.aggregate_id) for row in result]


def _event_to_row(event: PersistentEvent) -> dict[str, Any]:
    row = event.model_dump()
    if event.raised_at.tzinfo is not None:
        row["raised_at"] = event.raised_at.astimezone(timezone.utc)
    row["message_id"] = str(event.message_id)
    row["correlation_id"] = str(event.correlation_id) if event.correlation_id else None
    return row


def _row_to_event(event_class: type[EventT], row: Row[Any]) -> EventT:
    raised_at: datetime = row.raised_at
    if raised_at.tzinfo is None:
        # SQLite drops the offset; values are always written in UTC
        raised_at = raised_at.replace(tzinfo=timezone.utc)
    return event_class(
        aggregate_type=row.aggregate_type,
        aggregate_id=row.aggregate_id,
        version=row.version,
        event_type=row.event_type,
        payload=row.payload,
        raised_at=raised_at,
        message_id=ULID.from_str(row.message_id),
        operation_id=row.operation_id,
        correlation_id=ULID.from_str(row.correlation_id) if row.correlation_id else None,
        contributor=row.contributor,
    )
