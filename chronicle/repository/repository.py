import logging
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel
from ulid import ULID

from ..domain import EventSourced
from ..eventstore import EventStore
from ..publishing import EventPublisher
from ..snapshots import NullSnapshotStore, Snapshot, SnapshotStore, SnapshotStrategy

LOGGER = logging.getLogger(__name__)

A = TypeVar("A", bound=EventSourced)


class AggregateFactory(Generic[A]):
    """Factory for creating, rehydrating and capturing aggregates of one type.

    The defaults work for aggregates that are pydantic models, such as
    subclasses of `Aggregate`: new instances are built with `cls(id=...)`
    and snapshots hold the model JSON. Aggregates of any other shape
    subclass the factory and override `create`, `restore` and `snapshot`.
    """

    def __init__(self, aggregate_cls: type[A]):
        self._aggregate_cls = aggregate_cls

    @property
    def aggregate_type(self) -> str:
        """Type tag the aggregates of this factory are stored under."""
        return self._aggregate_cls.aggregate_type

    def create(self, aggregate_id: UUID) -> A:
        """Create a new aggregate instance with the given ID."""
        return self._aggregate_cls(id=aggregate_id)  # type: ignore[call-arg]

    def restore(self, snapshot: Snapshot) -> A:
        """Rehydrate an aggregate from snapshot state."""
        if not issubclass(self._aggregate_cls, BaseModel):
            raise self._override_required("restore")
        aggregate = self._aggregate_cls.model_validate_json(snapshot.state)
        aggregate.version = snapshot.version
        return aggregate

    def snapshot(self, aggregate: A) -> Snapshot:
        """Capture the state of a saved aggregate."""
        if not isinstance(aggregate, BaseModel):
            raise self._override_required("snapshot")
        return Snapshot(
            aggregate_type=self.aggregate_type,
            aggregate_id=aggregate.id,
            version=aggregate.version,
            state=aggregate.model_dump_json(),
        )

    def _override_required(self, method: str) -> NotImplementedError:
        return NotImplementedError(
            f"{type(self).__name__} must override {method}() for "
            f"{self._aggregate_cls.__name__}, which is not a pydantic model"
        )


class EventSourcedRepository(Generic[A]):
    """Saves aggregates as events and loads them back by replaying.

    The repository mediates between the event store, the outbox publisher
    and the snapshot store. It holds no state of its own, so any number of
    repositories in any number of processes can work on the same aggregates;
    conflicting writes are detected by the event store.

    Snapshots are written after a successful save when the snapshot
    strategy asks for one. Without a snapshot store nothing is snapshotted;
    with one and no strategy every save is snapshotted.

    Examples:
        >>> repository = EventSourcedRepository(
        ...     event_store, publisher, AggregateFactory(User)
        ... )
        >>> user = User.register("alice")
        >>> await repository.save_and_publish(user)
        >>> loaded = await repository.find(user.id)
        >>> loaded.username
        'alice'
    """

    __slots__ = (
        "event_store",
        "event_publisher",
        "factory",
        "snapshot_store",
        "snapshot_strategy",
    )

    def __init__(
        self,
        event_store: EventStore,
        event_publisher: EventPublisher,
        factory: AggregateFactory[A],
        snapshot_store: SnapshotStore | None = None,
        snapshot_strategy: SnapshotStrategy | None = None,
    ):
        self.event_store = event_store
        self.event_publisher = event_publisher
        self.factory = factory
        self.snapshot_store = snapshot_store or NullSnapshotStore()
        if snapshot_strategy is None:
            snapshot_strategy = (
                SnapshotStrategy.never() if snapshot_store is None else SnapshotStrategy.always()
            )
        self.snapshot_strategy = snapshot_strategy

    @property
    def aggregate_type(self) -> str:
        return self.factory.aggregate_type

    async def save(
        self,
        aggregate: A,
        operation_id: str | None = None,
        correlation_id: ULID | None = None,
        contributor: str | None = None,
    ) -> None:
        """Store the pending events of an aggregate.

        On success the aggregate's pending events are cleared. On failure
        they are left in place and nothing is snapshotted.

        Raises:
            ConcurrencyError: If the aggregate was changed since it was loaded.
            DuplicateUniquePropertyError: If a uniquely indexed value is
                owned by another aggregate.
            TransientStorageError: If the storage could not be reached.
        """
        # Nothing changed, e.g. a command that was a no-op for this aggregate
        if not (pending := list(aggregate.pending_events)):
            return

        expected_version = aggregate.version - len(pending)
        await self.event_store.append(
            self.aggregate_type,
            aggregate.id,
            expected_version,
            pending,
            operation_id=operation_id,
            correlation_id=correlation_id,
            contributor=contributor,
            unique_properties=aggregate.unique_indexed_properties(),
        )
        aggregate.clear_pending_events()

        if self.snapshot_strategy.should_snapshot(aggregate, expected_version):
            await self._save_snapshot(aggregate)

    async def save_and_publish(
        self,
        aggregate: A,
        operation_id: str | None = None,
        correlation_id: ULID | None = None,
        contributor: str | None = None,
    ) -> None:
        """Store the pending events of an aggregate, then publish them.

        Publishing only happens once the events are stored. If publishing
        fails the error propagates, but the events stay stored and pending;
        the next outbox sweep delivers them.
        """
        await self.save(
            aggregate,
            operation_id=operation_id,
            correlation_id=correlation_id,
            contributor=contributor,
        )
        await self.event_publisher.flush_pending_events(self.aggregate_type, aggregate.id)

    async def find(self, aggregate_id: UUID) -> A | None:
        """Load an aggregate by replaying its events.

        Starts from the latest snapshot when there is one and replays only
        the events stored after it.

        Returns:
            The aggregate, or None if it has no events.

        Raises:
            EventValidationError: If the stored history is not a gapless
                version sequence.
        """
        aggregate = await self._restore_snapshot(aggregate_id)

        if aggregate is None:
            events = await self.event_store.load_events(self.aggregate_type, aggregate_id)
            if not events:
                return None
            aggregate = self.factory.create(aggregate_id)
        else:
            events = await self.event_store.load_events(
                self.aggregate_type, aggregate_id, aggregate.version
            )

        for event in events:
            aggregate.apply(event)
        return aggregate

    async def find_id_by_unique_indexed_property(
        self,
        property_name: str,
        value: str,
    ) -> UUID | None:
        """Find the aggregate of this repository's type owning a unique value."""
        return await self.event_store.find_id_by_unique_indexed_property(
            self.aggregate_type, property_name, value
        )

    async def _restore_snapshot(self, aggregate_id: UUID) -> A | None:
        try:
            snapshot = await self.snapshot_store.find(self.aggregate_type, aggregate_id)
            return self.factory.restore(snapshot) if snapshot else None
        except Exception:
            # Snapshots only shorten replay; load the full history instead
            LOGGER.warning(
                "Failed to restore snapshot",
                extra={"aggregate_type": self.aggregate_type, "aggregate_id": str(aggregate_id)},
                exc_info=True,
            )
            return None

    async def _save_snapshot(self, aggregate: A) -> None:
        try:
            await self.snapshot_store.save(self.factory.snapshot(aggregate))
        except Exception:
            LOGGER.warning(
                "Failed to save snapshot",
                extra={
                    "aggregate_type": self.aggregate_type,
                    "aggregate_id": str(aggregate.id),
                    "version": aggregate.version,
                },
                exc_info=True,
            )
