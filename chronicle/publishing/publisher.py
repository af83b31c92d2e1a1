import asyncio
import logging
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ..domain import NIL_ID
from ..domain.exceptions import EventValidationError, OutboxFlushError
from ..eventstore import OutboxBackend, PendingEvent
from ..messaging import Envelope, MessageBus, MessageSerializer

LOGGER = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000


class SweepResult(BaseModel):
    """Summary of one `flush_all_pending_events` sweep.

    Attributes:
        passes: Number of passes that found aggregates with pending events.
        aggregates_flushed: Number of per-aggregate flushes that succeeded.
        events_sent: Number of events handed to the message bus.
    """

    model_config = ConfigDict(frozen=True)

    passes: int = 0
    aggregates_flushed: int = 0
    events_sent: int = 0


class EventPublisher:
    """Drains the outbox of pending events into a message bus.

    Delivery is at-least-once. The pending rows of an aggregate are sent
    as one ordered batch and only deleted after the bus accepted it, so a
    crash between the two steps leads to a redelivery, never to a loss.

    Any number of publishers may drain the same storage concurrently,
    including two drains of the same aggregate (an inline publish racing
    the background sweep). No locking is involved: a pending row that was
    already deleted by the other drain counts as delivered.

    Examples:
        >>> publisher = EventPublisher(backend, JsonMessageSerializer(), bus)
        >>> await publisher.flush_pending_events("User", user.id)
        2
        >>> await publisher.flush_all_pending_events()
        SweepResult(passes=1, aggregates_flushed=12, events_sent=30)
    """

    def __init__(
        self,
        backend: OutboxBackend,
        serializer: MessageSerializer,
        message_bus: MessageBus,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.backend = backend
        self.serializer = serializer
        self.message_bus = message_bus
        self.batch_size = batch_size
        self._background_tasks: set[asyncio.Task[SweepResult]] = set()

    async def flush_pending_events(self, aggregate_type: str, aggregate_id: UUID) -> int:
        """Send all pending events of one aggregate and remove them from the outbox.

        Args:
            aggregate_type: Type tag of the aggregate.
            aggregate_id: ID of the aggregate to flush.

        Returns:
            The number of events sent, 0 when nothing was pending.

        Raises:
            EventValidationError: If aggregate_id is the nil UUID.
            Exception: Whatever the message bus raised. The events stay
                pending in that case.
        """
        if aggregate_id == NIL_ID:
            raise EventValidationError("Aggregate id must not be empty")

        pending = await self.backend.load_pending_events(aggregate_type, aggregate_id)
        if not pending:
            return 0

        await self.message_bus.send([self._restore_envelope(event) for event in pending])

        for event in pending:
            await self._remove(event)

        LOGGER.debug(
            "Flushed pending events",
            extra={
                "aggregate_type": aggregate_type,
                "aggregate_id": str(aggregate_id),
                "event_count": len(pending),
                "first_version": pending[0].version,
                "last_version": pending[-1].version,
            },
        )
        return len(pending)

    async def flush_all_pending_events(self) -> SweepResult:
        """Flush every aggregate that has pending events.

        The sweep works in passes. Each pass asks the storage for up to
        `batch_size` distinct aggregates with pending events and flushes
        them concurrently, waiting for all of them before the next pass.
        The sweep ends as soon as a pass finds nothing pending.

        A failed flush leaves that aggregate's events pending and does not
        affect the other flushes of the pass. The sweep finishes the pass,
        then stops and reports the failures.

        Returns:
            Counts of the completed sweep.

        Raises:
            OutboxFlushError: If any aggregate could not be flushed.
        """
        passes = aggregates_flushed = events_sent = 0

        while True:
            streams = await self.backend.find_pending_aggregates(self.batch_size)
            if not streams:
                break

            passes += 1
            results = await asyncio.gather(
                *(
                    self.flush_pending_events(aggregate_type, aggregate_id)
                    for aggregate_type, aggregate_id in streams
                ),
                return_exceptions=True,
            )

            failures: dict[tuple[str, UUID], BaseException] = {}
            for stream, result in zip(streams, results):
                if isinstance(result, BaseException):
                    failures[stream] = result
                    LOGGER.warning(
                        "Failed to flush pending events",
                        extra={
                            "aggregate_type": stream[0],
                            "aggregate_id": str(stream[1]),
                            "error": repr(result),
                        },
                    )
                else:
                    aggregates_flushed += 1
                    events_sent += result

            if failures:
                raise OutboxFlushError(failures)

        sweep = SweepResult(
            passes=passes,
            aggregates_flushed=aggregates_flushed,
            events_sent=events_sent,
        )
        if passes:
            LOGGER.info("Outbox sweep completed", extra=sweep.model_dump())
        return sweep

    def enqueue_all(self) -> asyncio.Task[SweepResult]:
        """Start a sweep in the background without waiting for it.

        Failures of the sweep are logged, never raised.

        Returns:
            The background task, for callers that want to await it anyway.
        """
        task = asyncio.create_task(self.flush_all_pending_events())
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_sweep_done)
        return task

    def _on_background_sweep_done(self, task: "asyncio.Task[SweepResult]") -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        if (error := task.exception()) is not None:
            LOGGER.error("Background outbox sweep failed", exc_info=error)

    def _restore_envelope(self, event: PendingEvent) -> Envelope:
        return Envelope(
            message_id=event.message_id,
            operation_id=event.operation_id,
            correlation_id=event.correlation_id,
            contributor=event.contributor,
            message=self.serializer.deserialize(event.payload),
        )

    async def _remove(self, event: PendingEvent) -> None:
        if not await self.backend.delete_pending_event(event):
            # Another drain of this aggregate removed it first
            LOGGER.debug(
                "Pending event already deleted",
                extra={
                    "aggregate_type": event.aggregate_type,
                    "aggregate_id": str(event.aggregate_id),
                    "version": event.version,
                },
            )
