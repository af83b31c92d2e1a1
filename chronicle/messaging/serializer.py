"""Serialization of domain events to and from stored payloads."""

import importlib
import json
from abc import ABC, abstractmethod

from ..domain import DomainEvent
from ..domain.exceptions import EventValidationError

TYPE_KEY = "$type"


class MessageSerializer(ABC):
    """Converts domain events to payload strings and back.

    Implementations must round-trip exactly for every event type the
    system stores: `deserialize(serialize(event)) == event`.
    """

    @abstractmethod
    def serialize(self, event: DomainEvent) -> str: ...

    @abstractmethod
    def deserialize(self, payload: str) -> DomainEvent: ...


class JsonMessageSerializer(MessageSerializer):
    """JSON serializer that records the event class alongside its fields.

    The payload is the pydantic JSON of the event with an extra `$type` key
    holding the class as `module:qualname`. Deserialization imports the
    module, resolves the (possibly nested) class and validates the remaining
    fields against it. Classes defined inside functions cannot be resolved
    and are rejected when serializing, so they are never stored.

    Examples:
        >>> serializer = JsonMessageSerializer()
        >>> payload = serializer.serialize(UsernameChanged(username="alice"))
        >>> serializer.deserialize(payload)
        UsernameChanged(aggregate_id=..., version=0, raised_at=..., username='alice')
    """

    def serialize(self, event: DomainEvent) -> str:
        event_type = event.event_type
        if "<locals>" in event_type:
            raise EventValidationError(
                f"Event class {event_type} is defined inside a function and cannot be loaded back"
            )
        document = event.model_dump(mode="json")
        document[TYPE_KEY] = event_type
        return json.dumps(document)

    def deserialize(self, payload: str) -> DomainEvent:
        document = json.loads(payload)
        event_class = self._load_class(document.pop(TYPE_KEY))
        return event_class.model_validate(document)  # type: ignore[no-any-return]

    def _load_class(self, type_name: str) -> type:
        """Dynamically load a class by its `module:qualname` name.

        Nested classes are resolved attribute by attribute from the module.

        Raises:
            ModuleNotFoundError: If module cannot be imported
            AttributeError: If class not found in module
        """
        module_name, _, qualname = type_name.partition(":")
        target: object = importlib.import_module(module_name)
        for part in qualname.split("."):
            target = getattr(target, part)
        return target  # type: ignore[return-value]
