import logging
from uuid import UUID

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from ..eventstore.schema import snapshots
from ..eventstore.sql import transaction
from .snapshot import Snapshot, SnapshotStore

LOGGER = logging.getLogger(__name__)


class SqlSnapshotStore(SnapshotStore):
    """Snapshot store backed by the `snapshots` table.

    Keeps one row per aggregate. Saving only ever moves the row forward:
    the update is conditional on the stored version being older, and a
    concurrent first insert is settled by the primary key.

    Attributes:
        engine: The SQLAlchemy async engine
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def find(self, aggregate_type: str, aggregate_id: UUID) -> Snapshot | None:
        async with transaction(self.engine) as conn:
            result = await conn.execute(
                select(snapshots).where(
                    snapshots.c.aggregate_type == aggregate_type,
                    snapshots.c.aggregate_id == aggregate_id,
                )
            )
            row = result.first()

        if row is None:
            return None
        return Snapshot(
            aggregate_type=row.aggregate_type,
            aggregate_id=row.aggregate_id,
            version=row.version,
            state=row.state,
        )

    async def save(self, snapshot: Snapshot) -> None:
        key = (
            snapshots.c.aggregate_type == snapshot.aggregate_type,
            snapshots.c.aggregate_id == snapshot.aggregate_id,
        )
        try:
            async with transaction(self.engine) as conn:
                current = await conn.scalar(select(snapshots.c.version).where(*key))
                if current is None:
                    await conn.execute(insert(snapshots).values(**snapshot.model_dump()))
                elif current < snapshot.version:
                    await conn.execute(
                        update(snapshots)
                        .where(*key, snapshots.c.version < snapshot.version)
                        .values(version=snapshot.version, state=snapshot.state)
                    )
        except IntegrityError:
            LOGGER.debug(
                "Snapshot written concurrently, keeping the other writer's",
                extra={
                    "aggregate_type": snapshot.aggregate_type,
                    "aggregate_id": str(snapshot.aggregate_id),
                    "version": snapshot.version,
                },
            )
