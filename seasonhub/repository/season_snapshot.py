import logging
from typing import Any, List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.core.exceptions import SnapshotIntegrityError, SnapshotNotFoundError
from seasonhub.models.season_snapshot import SeasonSnapshot, compute_checksum

logger = logging.getLogger(__name__)


class SeasonSnapshotStore:
    """Append-only store; there is deliberately no update or delete path."""

    def stage(
        self,
        db: AsyncSession,
        season_id: int,
        snapshot_type: str,
        data: Any,
        *,
        created_by: Optional[int] = None,
        description: Optional[str] = None,
        is_immutable: bool = True,
    ) -> SeasonSnapshot:
        """Add a snapshot to the session without committing (caller owns the transaction)."""
        snapshot = SeasonSnapshot.build(
            season_id,
            snapshot_type,
            data,
            created_by=created_by,
            description=description,
            is_immutable=is_immutable,
        )
        db.add(snapshot)
        return snapshot

    async def create(
        self,
        db: AsyncSession,
        season_id: int,
        snapshot_type: str,
        data: Any,
        *,
        created_by: Optional[int] = None,
        description: Optional[str] = None,
        is_immutable: bool = True,
    ) -> SeasonSnapshot:
        snapshot = self.stage(
            db,
            season_id,
            snapshot_type,
            data,
            created_by=created_by,
            description=description,
            is_immutable=is_immutable,
        )
        await db.commit()
        await db.refresh(snapshot)
        logger.info(f"Snapshot {snapshot.id} ({snapshot_type}) created for season {season_id}")
        return snapshot

    async def get(self, db: AsyncSession, snapshot_id: int, season_id: Optional[int] = None) -> SeasonSnapshot:
        stmt = select(SeasonSnapshot).where(SeasonSnapshot.id == snapshot_id)
        if season_id is not None:
            stmt = stmt.where(SeasonSnapshot.season_id == season_id)
        snapshot = (await db.execute(stmt)).scalars().first()
        if snapshot is None:
            raise SnapshotNotFoundError()
        return snapshot

    async def list_for_season(self, db: AsyncSession, season_id: int) -> List[SeasonSnapshot]:
        result = await db.execute(
            select(SeasonSnapshot)
            .where(SeasonSnapshot.season_id == season_id)
            .order_by(desc(SeasonSnapshot.snapshot_date), desc(SeasonSnapshot.id))
        )
        return result.scalars().all()

    @staticmethod
    def verify_integrity(snapshot: SeasonSnapshot) -> bool:
        return compute_checksum(snapshot.snapshot_data) == snapshot.checksum

    def assert_integrity(self, snapshot: SeasonSnapshot) -> None:
        if not self.verify_integrity(snapshot):
            logger.error(
                f"Snapshot {snapshot.id} of season {snapshot.season_id} failed checksum verification "
                f"(stored {snapshot.checksum})"
            )
            raise SnapshotIntegrityError(snapshot.id)

snapshot_store = SeasonSnapshotStore()
