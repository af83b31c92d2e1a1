"""Central test fixtures - imports from unified test_app."""

from uuid import UUID, uuid4

import pytest

from chronicle.eventstore import EventStore, InMemoryStorageBackend
from chronicle.messaging import InMemoryMessageBus, JsonMessageSerializer
from chronicle.publishing import EventPublisher
from chronicle.repository import AggregateFactory, EventSourcedRepository
from chronicle.snapshots import InMemorySnapshotStore

# Import all test domain objects from unified test app
from tests.fixtures.test_app import BankAccount, User


@pytest.fixture
def aggregate_id() -> UUID:
    """Generate a unique aggregate ID."""
    return uuid4()


@pytest.fixture
def serializer() -> JsonMessageSerializer:
    return JsonMessageSerializer()


@pytest.fixture
def backend() -> InMemoryStorageBackend:
    """Create an in-memory storage backend."""
    return InMemoryStorageBackend()


@pytest.fixture
def message_bus() -> InMemoryMessageBus:
    """Create an in-memory message bus."""
    return InMemoryMessageBus()


@pytest.fixture
def event_store(backend: InMemoryStorageBackend, serializer: JsonMessageSerializer) -> EventStore:
    return EventStore(backend, serializer)


@pytest.fixture
def publisher(
    backend: InMemoryStorageBackend,
    serializer: JsonMessageSerializer,
    message_bus: InMemoryMessageBus,
) -> EventPublisher:
    return EventPublisher(backend, serializer, message_bus)


@pytest.fixture
def snapshot_store() -> InMemorySnapshotStore:
    """Create an in-memory snapshot store."""
    return InMemorySnapshotStore()


@pytest.fixture
def user_repository(
    event_store: EventStore,
    publisher: EventPublisher,
) -> EventSourcedRepository[User]:
    """Create a User repository without snapshots."""
    return EventSourcedRepository(event_store, publisher, AggregateFactory(User))


@pytest.fixture
def account_repository(
    event_store: EventStore,
    publisher: EventPublisher,
) -> EventSourcedRepository[BankAccount]:
    """Create a BankAccount repository without snapshots."""
    return EventSourcedRepository(event_store, publisher, AggregateFactory(BankAccount))
