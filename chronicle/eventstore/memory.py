import asyncio
from collections import defaultdict
from uuid import UUID

from .backend import EventStoreBackend, OutboxBackend
from .records import (
    AppendBatch,
    AppendResult,
    PendingEvent,
    PersistentEvent,
    UniqueIndexEntry,
)


class InMemoryStorageBackend(EventStoreBackend, OutboxBackend):
    """Dictionary-based storage backend for tests and single-process use.

    All mutations run under one asyncio lock, which gives the same atomicity
    a database transaction gives the SQL backend: an append either lands
    completely or not at all.

    **NOT suitable for production** due to:
    - No durability (data lost on restart)
    - No sharing across processes
    - Memory usage grows unbounded
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.versions: dict[tuple[str, UUID], int] = {}
        self.persistent_events: dict[tuple[str, UUID], list[PersistentEvent]] = defaultdict(list)
        self.pending_events: dict[tuple[str, UUID, int], PendingEvent] = {}
        self.unique_index: dict[tuple[str, str, str], UniqueIndexEntry] = {}

    async def append(self, batch: AppendBatch) -> AppendResult:
        stream = (batch.aggregate_type, batch.aggregate_id)
        async with self._lock:
            if self.versions.get(stream, 0) != batch.expected_version:
                return AppendResult.version_conflict()

            new_entries = []
            for entry in batch.unique_entries:
                existing = self.unique_index.get(entry.key)
                if existing is None:
                    new_entries.append(entry)
                elif existing.aggregate_id != batch.aggregate_id:
                    return AppendResult.duplicate(entry)

            # Nothing below can fail, so the unit is applied all at once.
            self.versions[stream] = batch.new_version
            self.persistent_events[stream].extend(batch.events)
            for event in batch.events:
                self.pending_events[event.key] = PendingEvent.from_persistent(event)
            for entry in new_entries:
                self.unique_index[entry.key] = entry

        return AppendResult.committed()

    async def load_events(
        self,
        aggregate_type: str,
        aggregate_id: UUID,
        after_version: int,
    ) -> list[PersistentEvent]:
        async with self._lock:
            return [
                event
                for event in self.persistent_events.get((aggregate_type, aggregate_id), [])
                if event.version > after_version
            ]

    async def find_aggregate_id(
        self,
        aggregate_type: str,
        property_name: str,
        property_value: str,
    ) -> UUID | None:
        entry = self.unique_index.get((aggregate_type, property_name, property_value))
        return entry.aggregate_id if entry else None

    async def get_version(self, aggregate_type: str, aggregate_id: UUID) -> int:
        return self.versions.get((aggregate_type, aggregate_id), 0)

    async def load_pending_events(
        self,
        aggregate_type: str,
        aggregate_id: UUID,
    ) -> list[PendingEvent]:
        async with self._lock:
            pending = [
                event
                for (event_type, event_id, _), event in self.pending_events.items()
                if event_type == aggregate_type and event_id == aggregate_id
            ]
        return sorted(pending, key=lambda event: event.version)

    async def delete_pending_event(self, event: PendingEvent) -> bool:
        async with self._lock:
            return self.pending_events.pop(event.key, None) is not None

    async def find_pending_aggregates(self, limit: int) -> list[tuple[str, UUID]]:
        async with self._lock:
            streams: dict[tuple[str, UUID], None] = {}
            for aggregate_type, aggregate_id, _ in self.pending_events:
                streams[(aggregate_type, aggregate_id)] = None
                if len(streams) >= limit:
                    break
        return list(streams)
