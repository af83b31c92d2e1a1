"""Background relay that keeps the outbox drained."""

import asyncio
import contextlib
import logging

from ..domain.exceptions import OutboxFlushError
from .publisher import EventPublisher, SweepResult

LOGGER = logging.getLogger(__name__)


class OutboxRelay:
    """Runs outbox sweeps on a fixed interval in a background task.

    Inline publishing after a save is best effort; the relay is what
    guarantees that every stored event is eventually delivered. Several
    relays may run against the same storage at once.

    Attributes:
        publisher: The publisher whose sweeps the relay runs.
        interval_seconds: Pause between the end of one sweep and the start
            of the next.
        shutdown_timeout: Seconds `stop()` waits for a running sweep before
            cancelling it.

    Examples:
        >>> relay = OutboxRelay(publisher, interval_seconds=5.0)
        >>> await relay.start()
        >>> ...
        >>> await relay.stop()
    """

    def __init__(
        self,
        publisher: EventPublisher,
        interval_seconds: float = 5.0,
        shutdown_timeout: float = 30.0,
    ):
        self.publisher = publisher
        self.interval_seconds = interval_seconds
        self.shutdown_timeout = shutdown_timeout
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start sweeping in the background."""
        if self._running:
            LOGGER.warning("Outbox relay already running")
            return

        self._running = True
        self._stopping.clear()
        self._task = asyncio.create_task(self._run_loop())
        LOGGER.info(
            "Outbox relay started",
            extra={
                "interval_seconds": self.interval_seconds,
                "batch_size": self.publisher.batch_size,
            },
        )

    async def stop(self) -> None:
        """Stop the relay, letting a running sweep finish first.

        A sweep still running after `shutdown_timeout` seconds is cancelled.
        Its remaining events stay pending.
        """
        if not self._running:
            return

        self._running = False
        self._stopping.set()

        if self._task:
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=self.shutdown_timeout)
            except TimeoutError:
                LOGGER.warning("Outbox relay shutdown timed out, cancelling")
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
            self._task = None

        LOGGER.info("Outbox relay stopped")

    async def run_once(self) -> SweepResult | None:
        """Run a single sweep, logging instead of raising its failures.

        Returns:
            The sweep counts, or None if the sweep failed.
        """
        try:
            return await self.publisher.flush_all_pending_events()
        except OutboxFlushError as err:
            LOGGER.warning(
                "Outbox sweep left aggregates pending",
                extra={"failed_aggregates": len(err.failures)},
            )
        except Exception:
            LOGGER.exception("Error in outbox relay sweep")
        return None

    async def _run_loop(self) -> None:
        while self._running:
            await self.run_once()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
