from .repository import AggregateFactory, EventSourcedRepository

__all__ = ["AggregateFactory", "EventSourcedRepository"]
