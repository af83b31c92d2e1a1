"""Outbox publishing.

- EventPublisher: Drains pending events of one or all aggregates to a bus
- OutboxRelay: Background task running periodic sweeps
"""

from .publisher import DEFAULT_BATCH_SIZE, EventPublisher, SweepResult
from .relay import OutboxRelay

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "EventPublisher",
    "OutboxRelay",
    "SweepResult",
]
