"""Domain primitives for event-sourced aggregates.

This module contains the building blocks that users extend to create their
domain models:

- Aggregate: Base class for aggregates that raise and apply events
- EventSourced: The capability protocol the repository relies on
- DomainEvent: Base class for events
- The error taxonomy shared by the store, publisher and repository
"""

from .aggregate import Aggregate, EventSourced
from .event import NIL_ID, DomainEvent, utc_now
from .exceptions import (
    ChronicleError,
    ConcurrencyError,
    DuplicateUniquePropertyError,
    EventValidationError,
    OutboxFlushError,
    TransientStorageError,
)

__all__ = [
    "Aggregate",
    "EventSourced",
    "DomainEvent",
    "NIL_ID",
    "utc_now",
    "ChronicleError",
    "ConcurrencyError",
    "DuplicateUniquePropertyError",
    "EventValidationError",
    "OutboxFlushError",
    "TransientStorageError",
]
