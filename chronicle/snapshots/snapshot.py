from abc import ABC, abstractmethod
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..domain import EventSourced


class Snapshot(BaseModel):
    """Serialized aggregate state as of a given version.

    Snapshots only shorten replay. An aggregate loaded from a snapshot
    still has every event after `version` replayed onto it, so a missing
    or stale snapshot never changes the loaded state.
    """

    model_config = ConfigDict(frozen=True)

    aggregate_type: str
    aggregate_id: UUID
    version: int = Field(ge=1)
    state: str


class SnapshotStrategy(ABC):
    """Decides after a successful save whether to write a snapshot.

    `should_snapshot` receives the aggregate as saved and the version it
    was at before the save.
    """

    @staticmethod
    def always() -> "SnapshotStrategy":
        return SnapshotAfterN(1)

    @staticmethod
    def never() -> "SnapshotStrategy":
        return NeverSnapshot()

    @abstractmethod
    def should_snapshot(self, aggregate: EventSourced, previous_version: int) -> bool:
        pass


class NeverSnapshot(SnapshotStrategy):
    def should_snapshot(self, _: EventSourced, previous_version: int) -> bool:
        return False


class SnapshotAfterN(SnapshotStrategy):
    """Snapshot whenever a save moves the aggregate past a multiple of n.

    Saves usually append several events at once, so the check is whether a
    multiple of n lies within the versions the save appended rather than
    whether the new version is an exact multiple.
    """

    def __init__(self, version_increment: int):
        if version_increment < 1:
            raise ValueError(f"version_increment must be positive, got {version_increment}")
        self.version_increment = version_increment

    def should_snapshot(self, aggregate: EventSourced, previous_version: int) -> bool:
        n = self.version_increment
        return aggregate.version // n > previous_version // n


class SnapshotStore(ABC):
    """Storage for the latest snapshot of each aggregate."""

    @staticmethod
    def null() -> "SnapshotStore":
        """A snapshot store that does not store any snapshots."""
        return NullSnapshotStore()

    @abstractmethod
    async def find(self, aggregate_type: str, aggregate_id: UUID) -> Snapshot | None:
        """Load the latest snapshot of an aggregate.

        Returns:
            The snapshot, or None if the aggregate has none.
        """
        pass

    @abstractmethod
    async def save(self, snapshot: Snapshot) -> None:
        """Store a snapshot, replacing an older one of the same aggregate.

        A snapshot older than the one already stored must be ignored, so
        two writers racing on the same aggregate can never move the stored
        snapshot backwards.
        """
        pass


class NullSnapshotStore(SnapshotStore):
    """A snapshot store that does not store any snapshots."""

    async def find(self, aggregate_type: str, aggregate_id: UUID) -> Snapshot | None:
        return None

    async def save(self, snapshot: Snapshot) -> None:
        pass


class InMemorySnapshotStore(SnapshotStore):
    """A snapshot store that keeps the latest snapshot per aggregate in memory.

    This is not intended for production use. It is intended for testing
    purposes only.
    """

    def __init__(self) -> None:
        self.snapshots: dict[tuple[str, UUID], Snapshot] = {}

    async def find(self, aggregate_type: str, aggregate_id: UUID) -> Snapshot | None:
        return self.snapshots.get((aggregate_type, aggregate_id))

    async def save(self, snapshot: Snapshot) -> None:
        key = (snapshot.aggregate_type, snapshot.aggregate_id)
        current = self.snapshots.get(key)
        if current is None or current.version < snapshot.version:
            self.snapshots[key] = snapshot
