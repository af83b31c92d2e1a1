"""Message bus interface and an in-memory implementation.

This module provides:
- MessageBus: Abstract interface for handing envelopes to a transport
- InMemoryMessageBus: Recording implementation for tests and local runs
"""

from abc import ABC, abstractmethod

from .envelope import Envelope


class MessageBus(ABC):
    """Abstract interface for publishing envelopes to a message transport.

    The outbox publisher calls `send()` once per aggregate with that
    aggregate's pending events in version order. Implementations might use
    a message broker (RabbitMQ, Kafka, Azure Service Bus) or a pub/sub
    system. A send either succeeds for the whole batch or raises; the
    publisher keeps the events pending when it raises.

    Delivery is at-least-once: a batch may be sent again when the rows it
    came from could not be removed afterwards. Consumers should deduplicate
    on `Envelope.message_id`.
    """

    @abstractmethod
    async def send(self, envelopes: list[Envelope]) -> None:
        """Send an ordered batch of envelopes.

        Args:
            envelopes: Envelopes to send, in the order consumers should
                observe them.

        Raises:
            Exception: Any failure to hand the batch to the transport.
        """
        ...


class InMemoryMessageBus(MessageBus):
    """Message bus that records every batch it is given.

    This is a minimal implementation for testing. It never fails and does
    not deliver to anyone; inspect `sent_batches` or `sent` instead.
    """

    def __init__(self) -> None:
        self.sent_batches: list[list[Envelope]] = []

    @property
    def sent(self) -> list[Envelope]:
        """All envelopes sent so far, flattened in send order."""
        return [envelope for batch in self.sent_batches for envelope in batch]

    async def send(self, envelopes: list[Envelope]) -> None:
        self.sent_batches.append(list(envelopes))
