"""Chronicle - Event-sourced persistence with a transactional outbox.

This module provides the public API for storing aggregates as events and
reliably publishing those events.
"""

from .config import ChronicleSettings
from .domain import (
    Aggregate,
    ConcurrencyError,
    DomainEvent,
    DuplicateUniquePropertyError,
    EventSourced,
    EventValidationError,
    OutboxFlushError,
    TransientStorageError,
)
from .eventstore import EventStore, InMemoryStorageBackend, SqlStorageBackend
from .messaging import Envelope, InMemoryMessageBus, JsonMessageSerializer, MessageBus
from .publishing import EventPublisher, OutboxRelay, SweepResult
from .repository import AggregateFactory, EventSourcedRepository
from .routing import applies_event
from .snapshots import (
    InMemorySnapshotStore,
    Snapshot,
    SnapshotAfterN,
    SnapshotStore,
    SnapshotStrategy,
    SqlSnapshotStore,
)

__all__ = [
    # Configuration
    "ChronicleSettings",
    # Domain primitives
    "Aggregate",
    "DomainEvent",
    "EventSourced",
    # Errors
    "ConcurrencyError",
    "DuplicateUniquePropertyError",
    "EventValidationError",
    "OutboxFlushError",
    "TransientStorageError",
    # Storage
    "EventStore",
    "InMemoryStorageBackend",
    "SqlStorageBackend",
    # Messaging
    "Envelope",
    "MessageBus",
    "InMemoryMessageBus",
    "JsonMessageSerializer",
    # Publishing
    "EventPublisher",
    "OutboxRelay",
    "SweepResult",
    # Repository
    "AggregateFactory",
    "EventSourcedRepository",
    # Snapshots
    "Snapshot",
    "SnapshotStore",
    "InMemorySnapshotStore",
    "SqlSnapshotStore",
    "SnapshotStrategy",
    "SnapshotAfterN",
    # Decorators
    "applies_event",
]
