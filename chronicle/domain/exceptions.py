"""Error taxonomy for the event store, outbox publisher and repository."""

from uuid import UUID


class ChronicleError(Exception):
    """Base class for every error raised by chronicle."""


class EventValidationError(ChronicleError, ValueError):
    """Raised when an operation is called with arguments that can never succeed.

    Validation happens before any storage I/O, so nothing has been written
    when this is raised.
    """


class ConcurrencyError(ChronicleError):
    """Raised when an optimistic concurrency check fails.

    This exception indicates that another writer appended events to the
    aggregate between when it was loaded and when changes were saved.
    Callers should reload the aggregate and retry the business operation.
    """

    def __init__(self, aggregate_type: str, aggregate_id: UUID, expected_version: int):
        self.aggregate_type = aggregate_type
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        super().__init__(
            f"Aggregate {aggregate_type} {aggregate_id} is no longer "
            f"at version {expected_version}"
        )


class DuplicateUniquePropertyError(ChronicleError):
    """Raised when a uniquely indexed value is already owned by another aggregate.

    This is a business rule rejection rather than a transient condition;
    reloading the aggregate and retrying will fail the same way.
    """

    def __init__(self, aggregate_type: str, property_name: str, property_value: str):
        self.aggregate_type = aggregate_type
        self.property_name = property_name
        self.property_value = property_value
        super().__init__(
            f"{aggregate_type}.{property_name} value {property_value!r} "
            "is already taken by another aggregate"
        )


class TransientStorageError(ChronicleError):
    """Raised when the storage backend is unreachable or timed out."""


class OutboxFlushError(ChronicleError):
    """Raised by a sweep when one or more aggregate flushes failed.

    Attributes:
        failures: Mapping of (aggregate_type, aggregate_id) to the exception
            raised while flushing that aggregate. The events of these
            aggregates are still pending.
    """

    def __init__(self, failures: dict[tuple[str, UUID], BaseException]):
        self.failures = failures
        super().__init__(f"Failed to flush pending events for {len(failures)} aggregate(s)")
