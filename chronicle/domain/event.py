from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Get the current UTC timestamp.

    Returns:
        Current datetime with UTC timezone information

    Note:
        Used as default_factory for DomainEvent.raised_at to ensure all
        events are timestamped in UTC regardless of system timezone.
    """
    return datetime.now(tz=timezone.utc)


NIL_ID = UUID(int=0)


class DomainEvent(BaseModel):
    """Immutable record of a state change in an aggregate.

    Each event represents a fact that occurred in the past. Concrete events
    subclass DomainEvent and declare their own fields; the base class carries
    the metadata that places the event in its aggregate's history:

    - **aggregate_id**: the aggregate that raised the event
    - **version**: position in the aggregate's history (1-indexed)
    - **raised_at**: when the event occurred (UTC)

    Events are normally stamped by `Aggregate.raise_event()` rather than
    constructed with explicit metadata.

    Examples:
        >>> class UsernameChanged(DomainEvent):
        ...     username: str
        >>>
        >>> user.raise_event(UsernameChanged(username="alice"))
        >>> user.pending_events[-1].version
        2
    """

    aggregate_id: UUID = Field(
        default=NIL_ID,
        description="ID of the aggregate that raised this event",
    )
    version: int = Field(
        default=0,
        description="Position in the aggregate's history (1-indexed, monotonically increasing)",
    )
    raised_at: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC timezone)",
    )

    @property
    def event_type(self) -> str:
        """Fully qualified name of the event class, as `module:qualname`."""
        cls = type(self)
        return f"{cls.__module__}:{cls.__qualname__}"
