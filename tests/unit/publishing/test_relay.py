import asyncio
import logging

import pytest

from chronicle.eventstore import EventStore, InMemoryStorageBackend
from chronicle.messaging import InMemoryMessageBus, JsonMessageSerializer
from chronicle.publishing import EventPublisher, OutboxRelay, SweepResult
from tests.fixtures.test_app import FailingMessageBus, User


async def store_user(event_store: EventStore, username: str) -> User:
    user = User.register(username, f"{username}@example.com")
    await event_store.append("User", user.id, 0, user.pending_events)
    return user


@pytest.mark.asyncio
async def test_run_once_sweeps_outbox(
    event_store: EventStore,
    publisher: EventPublisher,
    message_bus: InMemoryMessageBus,
):
    await store_user(event_store, "alice")
    relay = OutboxRelay(publisher)

    result = await relay.run_once()

    assert result == SweepResult(passes=1, aggregates_flushed=1, events_sent=1)
    assert len(message_bus.sent) == 1


@pytest.mark.asyncio
async def test_run_once_logs_failed_sweep(
    event_store: EventStore,
    backend: InMemoryStorageBackend,
    serializer: JsonMessageSerializer,
    caplog: pytest.LogCaptureFixture,
):
    await store_user(event_store, "alice")
    relay = OutboxRelay(EventPublisher(backend, serializer, FailingMessageBus(fail_all=True)))

    with caplog.at_level(logging.WARNING):
        assert await relay.run_once() is None

    assert any(r.getMessage() == "Outbox sweep left aggregates pending" for r in caplog.records)
    assert len(backend.pending_events) == 1


@pytest.mark.asyncio
async def test_background_relay_delivers_new_events(
    event_store: EventStore,
    publisher: EventPublisher,
    backend: InMemoryStorageBackend,
    message_bus: InMemoryMessageBus,
):
    relay = OutboxRelay(publisher, interval_seconds=0.01)
    await relay.start()
    try:
        await store_user(event_store, "alice")
        await store_user(event_store, "bob")
        for _ in range(200):
            if not backend.pending_events:
                break
            await asyncio.sleep(0.01)
    finally:
        await relay.stop()

    assert backend.pending_events == {}
    assert {e.message.username for e in message_bus.sent} == {"alice", "bob"}


@pytest.mark.asyncio
async def test_stop_interrupts_interval_wait(publisher: EventPublisher):
    relay = OutboxRelay(publisher, interval_seconds=60)
    await relay.start()
    await asyncio.sleep(0)

    await asyncio.wait_for(relay.stop(), timeout=5)

    assert not relay.running


@pytest.mark.asyncio
async def test_start_twice_keeps_single_task(
    publisher: EventPublisher, caplog: pytest.LogCaptureFixture
):
    relay = OutboxRelay(publisher, interval_seconds=60)
    await relay.start()
    try:
        await relay.start()
    finally:
        await relay.stop()

    assert any(r.getMessage() == "Outbox relay already running" for r in caplog.records)


@pytest.mark.asyncio
async def test_stop_without_start_is_noop(publisher: EventPublisher):
    await OutboxRelay(publisher).stop()
