"""Event storage: the store, its backend contracts and reference backends.

- EventStore: Validating, atomic append and ordered read of event histories
- EventStoreBackend / OutboxBackend: Contracts a storage engine implements
- InMemoryStorageBackend: Backend for tests and single-process use
- SqlStorageBackend: SQLAlchemy backend for relational databases
"""

from .backend import EventStoreBackend, OutboxBackend
from .memory import InMemoryStorageBackend
from .records import (
    AppendBatch,
    AppendOutcome,
    AppendResult,
    PendingEvent,
    PersistentEvent,
    UniqueIndexEntry,
)
from .sql import SqlStorageBackend
from .store import EventStore

__all__ = [
    "EventStore",
    "EventStoreBackend",
    "OutboxBackend",
    "InMemoryStorageBackend",
    "SqlStorageBackend",
    "AppendBatch",
    "AppendOutcome",
    "AppendResult",
    "PendingEvent",
    "PersistentEvent",
    "UniqueIndexEntry",
]
