import logging
from collections.abc import Mapping, Sequence
from uuid import UUID

from ulid import ULID

from ..domain import NIL_ID, DomainEvent
from ..domain.exceptions import (
    ConcurrencyError,
    DuplicateUniquePropertyError,
    EventValidationError,
)
from ..messaging import MessageSerializer
from .backend import EventStoreBackend
from .records import (
    METADATA_LENGTH,
    PROPERTY_NAME_LENGTH,
    PROPERTY_VALUE_LENGTH,
    TYPE_NAME_LENGTH,
    AppendBatch,
    AppendOutcome,
    PersistentEvent,
    UniqueIndexEntry,
)

LOGGER = logging.getLogger(__name__)


class EventStore:
    """Atomic, conflict-detecting storage of aggregate event histories.

    The event store validates and encodes events, then hands them to its
    backend as a single `AppendBatch`. Everything a batch writes (the new
    version, the event history rows, the outbox rows and the unique index
    entries) lands together or not at all.

    The store never retries. A lost version race surfaces as
    `ConcurrencyError`, which callers resolve by reloading the aggregate
    and re-running the business operation. A unique index collision
    surfaces as `DuplicateUniquePropertyError`, which reloading will not
    fix.

    Examples:
        >>> store = EventStore(InMemoryStorageBackend(), JsonMessageSerializer())
        >>> await store.append("User", user.id, 0, user.pending_events)
        1
        >>> await store.load_events("User", user.id)
        [UserCreated(...)]
    """

    __slots__ = ("backend", "serializer")

    def __init__(self, backend: EventStoreBackend, serializer: MessageSerializer):
        self.backend = backend
        self.serializer = serializer

    async def append(
        self,
        aggregate_type: str,
        aggregate_id: UUID,
        expected_version: int,
        events: Sequence[DomainEvent],
        operation_id: str | None = None,
        correlation_id: ULID | None = None,
        contributor: str | None = None,
        unique_properties: Mapping[str, str | None] | None = None,
    ) -> int:
        """Append new events to an aggregate's history.

        Args:
            aggregate_type: Type tag of the aggregate.
            aggregate_id: ID of the aggregate the events belong to.
            expected_version: Version the aggregate is expected to be at
                before the append, 0 for a new aggregate.
            events: Events carrying versions expected_version + 1 onwards.
            operation_id: Optional operation identifier stored with each event.
            correlation_id: Optional correlation ID stored with each event.
            contributor: Optional identity stored with each event.
            unique_properties: Uniquely indexed property values of the
                aggregate. None values are not indexed.

        Returns:
            The new version of the aggregate.

        Raises:
            EventValidationError: If the arguments can never be appended.
            ConcurrencyError: If the aggregate is no longer at expected_version.
            DuplicateUniquePropertyError: If a unique value belongs to another
                aggregate of the same type.
            TransientStorageError: If the storage could not be reached.
        """
        unique_properties = unique_properties or {}
        self._validate(
            aggregate_type,
            aggregate_id,
            expected_version,
            events,
            operation_id,
            contributor,
            unique_properties,
        )

        batch = AppendBatch(
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            expected_version=expected_version,
            events=tuple(
                PersistentEvent(
                    aggregate_type=aggregate_type,
                    aggregate_id=aggregate_id,
                    version=event.version,
                    event_type=event.event_type,
                    payload=self.serializer.serialize(event),
                    raised_at=event.raised_at,
                    message_id=ULID(),
                    operation_id=operation_id,
                    correlation_id=correlation_id,
                    contributor=contributor,
                )
                for event in events
            ),
            unique_entries=tuple(
                UniqueIndexEntry(
                    aggregate_type=aggregate_type,
                    property_name=name,
                    property_value=value,
                    aggregate_id=aggregate_id,
                )
                for name, value in unique_properties.items()
                if value is not None
            ),
        )

        result = await self.backend.append(batch)

        if result.outcome is AppendOutcome.VERSION_CONFLICT:
            raise ConcurrencyError(aggregate_type, aggregate_id, expected_version)
        if (entry := result.conflicting_entry) is not None:
            raise DuplicateUniquePropertyError(
                aggregate_type, entry.property_name, entry.property_value
            )

        LOGGER.debug(
            "Appended events",
            extra={
                "aggregate_type": aggregate_type,
                "aggregate_id": str(aggregate_id),
                "expected_version": expected_version,
                "new_version": batch.new_version,
                "event_count": len(batch.events),
            },
        )
        return batch.new_version

    async def load_events(
        self,
        aggregate_type: str,
        aggregate_id: UUID,
        from_version: int = 0,
    ) -> list[DomainEvent]:
        """Load the events with a version strictly greater than from_version.

        Returns:
            Deserialized events in ascending version order, empty when the
            aggregate has no events past from_version.
        """
        stored = await self.backend.load_events(aggregate_type, aggregate_id, from_version)
        return [self.serializer.deserialize(event.payload) for event in stored]

    async def find_id_by_unique_indexed_property(
        self,
        aggregate_type: str,
        property_name: str,
        value: str,
    ) -> UUID | None:
        """Find the aggregate that owns a uniquely indexed property value."""
        return await self.backend.find_aggregate_id(aggregate_type, property_name, value)

    async def get_version(self, aggregate_type: str, aggregate_id: UUID) -> int:
        """Get the durable version of an aggregate, 0 if it has no events."""
        return await self.backend.get_version(aggregate_type, aggregate_id)

    def _validate(
        self,
        aggregate_type: str,
        aggregate_id: UUID,
        expected_version: int,
        events: Sequence[DomainEvent],
        operation_id: str | None,
        contributor: str | None,
        unique_properties: Mapping[str, str | None],
    ) -> None:
        if not aggregate_type:
            raise EventValidationError("Aggregate type must not be empty")
        _check_length("Aggregate type", aggregate_type, TYPE_NAME_LENGTH)
        if aggregate_id == NIL_ID:
            raise EventValidationError("Aggregate id must not be empty")
        if expected_version < 0:
            raise EventValidationError(
                f"Expected version must not be negative, got {expected_version}"
            )
        if not events:
            raise EventValidationError("At least one event is required")
        _check_length("Operation id", operation_id, METADATA_LENGTH)
        _check_length("Contributor", contributor, METADATA_LENGTH)
        for name, value in unique_properties.items():
            _check_length("Unique property name", name, PROPERTY_NAME_LENGTH)
            _check_length(f"Unique property {name!r} value", value, PROPERTY_VALUE_LENGTH)

        for offset, event in enumerate(events, start=1):
            if event.aggregate_id != aggregate_id:
                raise EventValidationError(
                    f"Event for aggregate {event.aggregate_id} cannot be appended to "
                    f"{aggregate_type} {aggregate_id}"
                )
            if event.version != expected_version + offset:
                raise EventValidationError(
                    f"Expected event version {expected_version + offset} for "
                    f"{aggregate_type} {aggregate_id}, got {event.version}"
                )
            _check_length("Event type", event.event_type, TYPE_NAME_LENGTH)


def _check_length(label: str, value: str | None, limit: int) -> None:
    if value is not None and len(value) > limit:
        raise EventValidationError(f"{label} must be at most {limit} characters, got {len(value)}")
