"""Storage records for the version register, event log, outbox and unique index."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from ulid import ULID

# Widths of the string columns in the relational schema
TYPE_NAME_LENGTH = 255
METADATA_LENGTH = 100
PROPERTY_NAME_LENGTH = 100
PROPERTY_VALUE_LENGTH = 255


class PersistentEvent(BaseModel):
    """An immutable entry in an aggregate's event history.

    Unique on (aggregate_type, aggregate_id, version).
    """

    model_config = ConfigDict(frozen=True)

    aggregate_type: str
    aggregate_id: UUID
    version: int = Field(ge=1)
    event_type: str
    payload: str
    raised_at: datetime
    message_id: ULID
    operation_id: str | None = None
    correlation_id: ULID | None = None
    contributor: str | None = None

    @property
    def key(self) -> tuple[str, UUID, int]:
        return (self.aggregate_type, self.aggregate_id, self.version)


class PendingEvent(PersistentEvent):
    """An event that is durably stored but not yet handed to the transport.

    Created in the same transaction as its PersistentEvent and deleted by
    the outbox publisher once the transport accepted it.
    """

    @classmethod
    def from_persistent(cls, event: PersistentEvent) -> "PendingEvent":
        return cls(**event.model_dump())


class UniqueIndexEntry(BaseModel):
    """Claim of one aggregate on a property value within its aggregate type."""

    model_config = ConfigDict(frozen=True)

    aggregate_type: str
    property_name: str
    property_value: str
    aggregate_id: UUID

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.aggregate_type, self.property_name, self.property_value)


class AppendBatch(BaseModel):
    """Everything one atomic append writes."""

    model_config = ConfigDict(frozen=True)

    aggregate_type: str
    aggregate_id: UUID
    expected_version: int = Field(ge=0)
    events: tuple[PersistentEvent, ...]
    unique_entries: tuple[UniqueIndexEntry, ...] = ()

    @property
    def new_version(self) -> int:
        return self.expected_version + len(self.events)


class AppendOutcome(str, Enum):
    """Result of an atomic append, classified by the backend."""

    COMMITTED = "committed"
    VERSION_CONFLICT = "version_conflict"
    DUPLICATE_UNIQUE_PROPERTY = "duplicate_unique_property"


class AppendResult(BaseModel):
    """Discriminated outcome of `EventStoreBackend.append`.

    Attributes:
        outcome: What happened to the batch.
        conflicting_entry: For DUPLICATE_UNIQUE_PROPERTY, the entry of the
            batch that collided.
    """

    model_config = ConfigDict(frozen=True)

    outcome: AppendOutcome
    conflicting_entry: UniqueIndexEntry | None = None

    @model_validator(mode="after")
    def check_conflicting_entry(self) -> "AppendResult":
        if (self.outcome is AppendOutcome.DUPLICATE_UNIQUE_PROPERTY) != (
            self.conflicting_entry is not None
        ):
            raise ValueError("conflicting_entry is set exactly for duplicate outcomes")
        return self

    @classmethod
    def committed(cls) -> "AppendResult":
        return cls(outcome=AppendOutcome.COMMITTED)

    @classmethod
    def version_conflict(cls) -> "AppendResult":
        return cls(outcome=AppendOutcome.VERSION_CONFLICT)

    @classmethod
    def duplicate(cls, entry: UniqueIndexEntry) -> "AppendResult":
        return cls(outcome=AppendOutcome.DUPLICATE_UNIQUE_PROPERTY, conflicting_entry=entry)
