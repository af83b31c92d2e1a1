"""Messaging collaborators used by the outbox publisher.

- Envelope: A domain event plus its delivery metadata
- MessageBus: Transport interface the publisher sends batches to
- MessageSerializer: Payload codec for stored events
"""

from .bus import InMemoryMessageBus, MessageBus
from .envelope import Envelope
from .serializer import JsonMessageSerializer, MessageSerializer

__all__ = [
    "Envelope",
    "MessageBus",
    "InMemoryMessageBus",
    "MessageSerializer",
    "JsonMessageSerializer",
]
