from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, ClassVar, Protocol, TypeVar, runtime_checkable
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ..routing import setup_event_applying
from .event import DomainEvent
from .exceptions import EventValidationError

if TYPE_CHECKING:
    from ..routing import MessageRouter


E = TypeVar("E", bound=DomainEvent)


@runtime_checkable
class EventSourced(Protocol):
    """Minimal capability set the repository needs from an aggregate.

    Anything exposing these members can be saved and restored by an
    EventSourcedRepository; the `Aggregate` base class is one implementation.
    """

    aggregate_type: ClassVar[str]
    id: UUID
    version: int

    @property
    def pending_events(self) -> Sequence[DomainEvent]: ...

    def apply(self, event: DomainEvent) -> None: ...

    def clear_pending_events(self) -> None: ...

    def unique_indexed_properties(self) -> dict[str, str | None]: ...


class Aggregate(BaseModel):
    """Base class for event-sourced aggregates.

    Aggregates maintain a consistency boundary and express every state change
    as a domain event. New events are raised with `raise_event()`, which
    stamps the event with the aggregate's id and next version, applies it and
    records it as pending until the repository stores it. Replaying stored
    events goes through `apply()` only, so replayed events are never pending.

    Event application is routed by type annotation. Mark applier methods with
    `@applies_event`; events without an applier still advance the version.

    Examples:
        >>> class UsernameChanged(DomainEvent):
        ...     username: str
        >>>
        >>> class User(Aggregate):
        ...     unique_indexed: ClassVar[tuple[str, ...]] = ("username",)
        ...     username: str = ""
        ...
        ...     def change_username(self, username: str) -> None:
        ...         self.raise_event(UsernameChanged(username=username))
        ...
        ...     @applies_event
        ...     def apply_username_changed(self, evt: UsernameChanged) -> None:
        ...         self.username = evt.username

    Attributes:
        aggregate_type: Type tag under which events, versions and unique
            index entries are stored. Defaults to the class name.
        unique_indexed: Names of fields whose values must be unique across
            all aggregates of this type.
        id: Unique identifier for this aggregate instance.
        version: Version of the last applied event, 0 for a new aggregate.
        pending_events: Events raised but not yet stored. Excluded from
            serialization, so snapshots never carry them.
    """

    aggregate_type: ClassVar[str] = "Aggregate"
    unique_indexed: ClassVar[tuple[str, ...]] = ()

    id: UUID = Field(default_factory=uuid4)
    version: int = 0
    pending_events: list[DomainEvent] = Field(default_factory=list, exclude=True)

    _event_router: ClassVar["MessageRouter"]

    def __init_subclass__(cls, **kwargs: object) -> None:
        """Set up event routing and the type tag when a subclass is defined."""
        super().__init_subclass__(**kwargs)  # type: ignore[arg-type]
        cls._event_router = setup_event_applying(cls)
        if "aggregate_type" not in cls.__dict__:
            cls.aggregate_type = cls.__name__

    def raise_event(self, event: E) -> E:
        """Record a new domain event and apply it to the aggregate state.

        Args:
            event: The event data. Its aggregate_id and version are
                overwritten with this aggregate's id and next version.

        Returns:
            The stamped event, as stored in pending_events.
        """
        stamped = event.model_copy(update={"aggregate_id": self.id, "version": self.version + 1})
        self.apply(stamped)
        self.pending_events.append(stamped)
        return stamped

    def apply(self, event: DomainEvent) -> None:
        """Apply an event to the aggregate state and advance the version.

        Raises:
            EventValidationError: If the event belongs to another aggregate
                or is not the next version in sequence.
        """
        if event.aggregate_id != self.id:
            raise EventValidationError(
                f"Event for aggregate {event.aggregate_id} cannot be applied to {self.id}"
            )
        if event.version != self.version + 1:
            raise EventValidationError(
                f"Expected event version {self.version + 1} for {self.aggregate_type} "
                f"{self.id}, got {event.version}"
            )
        self._event_router.route(self, event)
        self.version = event.version

    def replay_events(self, events: Iterable[DomainEvent]) -> None:
        """Replay stored events, in order, to rebuild the aggregate's state."""
        for event in events:
            self.apply(event)

    def clear_pending_events(self) -> None:
        """Forget pending events once they have been stored."""
        self.pending_events.clear()

    def unique_indexed_properties(self) -> dict[str, str | None]:
        """Current values of the uniquely indexed fields.

        Empty values are reported as None and are not indexed.
        """
        properties: dict[str, str | None] = {}
        for name in self.unique_indexed:
            value = getattr(self, name)
            properties[name] = str(value) if value not in (None, "") else None
        return properties
