"""Aggregate snapshots.

Snapshots let the repository skip replaying history that is already
summarized. They are an optimization only; loading works the same without
them.
"""

from .snapshot import (
    InMemorySnapshotStore,
    NeverSnapshot,
    NullSnapshotStore,
    Snapshot,
    SnapshotAfterN,
    SnapshotStore,
    SnapshotStrategy,
)
from .sql import SqlSnapshotStore

__all__ = [
    "Snapshot",
    "SnapshotStore",
    "NullSnapshotStore",
    "InMemorySnapshotStore",
    "SqlSnapshotStore",
    "SnapshotStrategy",
    "NeverSnapshot",
    "SnapshotAfterN",
]
