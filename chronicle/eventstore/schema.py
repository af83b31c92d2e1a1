"""Relational schema for the SQL storage backend and snapshot store.

Tables:
    - aggregates: version register, one row per aggregate
    - persistent_events: append-only event history
    - pending_events: outbox rows, deleted once published
    - unique_indexed_properties: aggregate-type scoped unique values
    - snapshots: latest snapshot per aggregate
"""

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)

from .records import (
    METADATA_LENGTH,
    PROPERTY_NAME_LENGTH,
    PROPERTY_VALUE_LENGTH,
    TYPE_NAME_LENGTH,
)

metadata = MetaData()


aggregates = Table(
    "aggregates",
    metadata,
    Column("aggregate_type", String(TYPE_NAME_LENGTH), primary_key=True),
    Column("aggregate_id", Uuid, primary_key=True),
    Column("version", Integer, nullable=False),
)


def _event_columns(keyed: bool = False) -> list[Column]:
    return [
        Column("aggregate_type", String(TYPE_NAME_LENGTH), nullable=False, primary_key=keyed),
        Column("aggregate_id", Uuid, nullable=False, primary_key=keyed),
        Column("version", Integer, nullable=False, primary_key=keyed, autoincrement=False),
        Column("event_type", String(TYPE_NAME_LENGTH), nullable=False),
        Column("payload", Text, nullable=False),
        Column("raised_at", DateTime(timezone=True), nullable=False),
        Column("message_id", String(26), nullable=False),
        Column("operation_id", String(METADATA_LENGTH), nullable=True),
        Column("correlation_id", String(26), nullable=True),
        Column("contributor", String(METADATA_LENGTH), nullable=True),
    ]


persistent_events = Table(
    "persistent_events",
    metadata,
    Column("sequence", Integer, primary_key=True, autoincrement=True),
    *_event_columns(),
    UniqueConstraint(
        "aggregate_type", "aggregate_id", "version", name="uq_persistent_events_stream_version"
    ),
)


pending_events = Table(
    "pending_events",
    metadata,
    *_event_columns(keyed=True),
)


unique_indexed_properties = Table(
    "unique_indexed_properties",
    metadata,
    Column("aggregate_type", String(TYPE_NAME_LENGTH), primary_key=True),
    Column("property_name", String(PROPERTY_NAME_LENGTH), primary_key=True),
    Column("property_value", String(PROPERTY_VALUE_LENGTH), primary_key=True),
    Column("aggregate_id", Uuid, nullable=False),
)


snapshots = Table(
    "snapshots",
    metadata,
    Column("aggregate_type", String(TYPE_NAME_LENGTH), primary_key=True),
    Column("aggregate_id", Uuid, primary_key=True),
    Column("version", Integer, nullable=False),
    Column("state", Text, nullable=False),
)
