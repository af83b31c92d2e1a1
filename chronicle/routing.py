import inspect
from collections.abc import Callable
from functools import singledispatch
from typing import Any, TypeVar, get_type_hints

T = TypeVar("T")


def _ignore(message: object, instance: object) -> None:
    """Silently ignore unregistered message types."""


def _extract_handler_type(func: Callable[..., Any], param_index: int = 1) -> type:
    """Extract the type annotation from a handler method.

    Args:
        func: The handler method to inspect.
        param_index: Index of the parameter to extract
            (0=self, 1=first arg, etc.)

    Returns:
        The annotated type of the parameter, used as the routing key.

    Raises:
        ValueError: If the parameter is missing or lacks a type annotation.
    """
    func_name = getattr(func, "__name__", repr(func))
    params = list(inspect.signature(func).parameters.values())

    if len(params) <= param_index:
        raise ValueError(f"Handler {func_name} must have at least {param_index + 1} parameters")

    param = params[param_index]
    # Resolves string annotations from modules using postponed evaluation
    try:
        hints = get_type_hints(func)
    except NameError:
        hints = {}
    annotation = hints.get(param.name, param.annotation)
    if annotation is inspect.Parameter.empty:
        raise ValueError(
            f"Handler {func_name} parameter '{param.name}' must have a type annotation"
        )
    if not isinstance(annotation, type):
        raise ValueError(
            f"Handler {func_name} parameter '{param.name}' must be annotated with a class, "
            f"got {annotation!r}"
        )
    return annotation


class MessageRouter:
    """Router dispatching messages to type-specific handler methods.

    Uses singledispatch so a handler registered for a base class also
    receives its subclasses, with the most specific registration winning.
    """

    __slots__ = ("_dispatch",)

    def __init__(self, default_handler: Callable[[object, object], object] = _ignore):
        @singledispatch
        def dispatch(message: object, instance: object) -> object:
            return default_handler(message, instance)

        self._dispatch = dispatch

    def register(self, message_type: type, handler: Callable[[object, object], object]) -> None:
        """Register a handler for a specific message type.

        Args:
            message_type: The message class this handler processes.
            handler: The unbound method to call for this message type.
        """

        def wrapper(msg: object, inst: object, h: Any = handler) -> object:
            return h(inst, msg)

        self._dispatch.register(message_type)(wrapper)

    def route(self, instance: Any, message: Any) -> object:
        """Route a message to the handler registered for its type."""
        return self._dispatch(message, instance)


class HandlerDecorator:
    """Decorator marking methods as handlers for the annotated message type."""

    def __init__(self, marker_attr: str, type_attr: str):
        self.marker_attr = marker_attr
        self.type_attr = type_attr

    def __call__(self, func: Callable[..., T]) -> Callable[..., T]:
        setattr(func, self.type_attr, _extract_handler_type(func, param_index=1))
        setattr(func, self.marker_attr, True)
        return func


applies_event = HandlerDecorator("_is_event_applier", "_applies_event_type")

applies_event.__doc__ = """Decorator marking a method as an event applier.

The event type is automatically extracted from the method's type annotation.

Example:
    >>> class User(Aggregate):
    ...     username: str = ""
    ...
    ...     @applies_event
    ...     def apply_username_changed(self, evt: UsernameChanged) -> None:
    ...         self.username = evt.username
"""


def setup_routing(cls: type, marker_attr: str, type_attr: str) -> MessageRouter:
    """Scan a class hierarchy for decorated methods and register them.

    Subclass methods are registered after base class methods so an override
    for the same message type wins.
    """
    router = MessageRouter()

    for klass in reversed(cls.__mro__):
        for value in klass.__dict__.values():
            if getattr(value, marker_attr, None) is True:
                router.register(getattr(value, type_attr), value)

    return router


def setup_event_applying(cls: type) -> MessageRouter:
    """Set up event applying for an aggregate class."""
    return setup_routing(
        cls,
        marker_attr="_is_event_applier",
        type_attr="_applies_event_type",
    )
