"""Storage contracts the event store and outbox publisher are written against.

A backend adapts one concrete engine to these contracts. It must provide an
atomic multi-row append with a compare-and-set on the version register and
a uniqueness constraint on the unique index, and it must classify engine
failures itself: lost races come back as an `AppendResult`, unreachable or
timed-out storage is raised as `TransientStorageError`.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from .records import AppendBatch, AppendResult, PendingEvent, PersistentEvent


class EventStoreBackend(ABC):
    """Append and read side of the event store."""

    @abstractmethod
    async def append(self, batch: AppendBatch) -> AppendResult:
        """Apply a batch as one atomic unit.

        In one transaction: move the version register of the aggregate from
        `batch.expected_version` to `batch.new_version` (creating the row for
        a new aggregate), insert a persistent and a pending row per event,
        and insert the unique index entries. Any rejection rolls back the
        whole unit.

        Returns:
            COMMITTED, VERSION_CONFLICT when the register was not at the
            expected version, or DUPLICATE_UNIQUE_PROPERTY when an entry is
            owned by a different aggregate.

        Raises:
            TransientStorageError: If the storage could not be reached.
        """
        ...

    @abstractmethod
    async def load_events(
        self,
        aggregate_type: str,
        aggregate_id: UUID,
        after_version: int,
    ) -> list[PersistentEvent]:
        """Load the events with a version strictly greater than `after_version`.

        Returns:
            Events in ascending version order, empty when there are none.
        """
        ...

    @abstractmethod
    async def find_aggregate_id(
        self,
        aggregate_type: str,
        property_name: str,
        property_value: str,
    ) -> UUID | None:
        """Find the aggregate owning a uniquely indexed property value."""
        ...

    @abstractmethod
    async def get_version(self, aggregate_type: str, aggregate_id: UUID) -> int:
        """Read the version register, 0 for an unknown aggregate."""
        ...


class OutboxBackend(ABC):
    """Outbox side of the store, drained by the publisher."""

    @abstractmethod
    async def load_pending_events(
        self,
        aggregate_type: str,
        aggregate_id: UUID,
    ) -> list[PendingEvent]:
        """Load all pending events of an aggregate in ascending version order."""
        ...

    @abstractmethod
    async def delete_pending_event(self, event: PendingEvent) -> bool:
        """Delete one pending event.

        Returns:
            True if the row was deleted, False if it was already gone
            (removed by a concurrent drain of the same aggregate).
        """
        ...

    @abstractmethod
    async def find_pending_aggregates(self, limit: int) -> list[tuple[str, UUID]]:
        """List up to `limit` distinct aggregates that have pending events."""
        ...
