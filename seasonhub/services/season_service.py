import logging
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.core import constants
from seasonhub.core.audit import publish_audit_log
from seasonhub.core.config import settings
from seasonhub.core.exceptions import (
    SeasonAlreadyClosedError,
    SeasonImmutableError,
    SeasonNotClosedError,
    SeasonNotFoundError,
)
from seasonhub.models.season import Season
from seasonhub.models.season_snapshot import SeasonSnapshot
from seasonhub.repository.season import SeasonRepository
from seasonhub.repository.season_snapshot import snapshot_store
from seasonhub.repository.user_season_role import user_season_role_repo
from seasonhub.schemas.season import SeasonClone, SeasonCreate, SeasonResponse, SeasonStatistics, SeasonUpdate
from seasonhub.schemas.snapshot import SnapshotCreate

logger = logging.getLogger(__name__)


class SeasonService:
    """Season lifecycle on top of the cached repository.

    Close and reopen stage their snapshot inside the same transaction as the
    season update, so either both are stored or neither is.
    """

    def __init__(self, repository: SeasonRepository):
        self.repo = repository

    async def _load(self, db: AsyncSession, season_id: int) -> Season:
        row = await self.repo.get_row(db, season_id)
        if row is None:
            raise SeasonNotFoundError()
        return row

    # --- CRUD ---

    async def create_season(self, db: AsyncSession, obj_in: SeasonCreate, user_id: Optional[int] = None) -> SeasonResponse:
        if user_id is not None and obj_in.created_by is None:
            obj_in = obj_in.model_copy(update={"created_by": user_id})
        season = await self.repo.create(db, obj_in)
        logger.info(f"Season {season.id} created for school {season.school_id} ({season.start_date}..{season.end_date})")
        await publish_audit_log(constants.AUDIT_SEASON_CREATED, {
            "season_id": season.id,
            "school_id": season.school_id,
            "user_id": user_id,
        })
        return season

    async def update_season(self, db: AsyncSession, season_id: int, obj_in: SeasonUpdate, user_id: Optional[int] = None) -> SeasonResponse:
        data = obj_in.model_dump(exclude_unset=True)
        season = await self.repo.update(db, season_id, data, check=self._check_mutable)
        await publish_audit_log(constants.AUDIT_SEASON_UPDATED, {
            "season_id": season_id,
            "fields": sorted(data),
            "user_id": user_id,
        })
        return season

    async def delete_season(self, db: AsyncSession, season_id: int, user_id: Optional[int] = None) -> None:
        row = await self._load(db, season_id)
        school_id = row.school_id
        await self.repo.delete(db, season_id, check=self._check_mutable)
        await publish_audit_log(constants.AUDIT_SEASON_DELETED, {
            "season_id": season_id,
            "school_id": school_id,
            "user_id": user_id,
        })

    # --- Lifecycle ---
    # Preconditions are checked on the row locked by the repository, never on an earlier read

    @staticmethod
    def _check_mutable(row: Season, changes: dict) -> None:
        if row.is_closed or row.is_historical:
            raise SeasonImmutableError()

    @staticmethod
    def _check_activatable(row: Season, changes: dict) -> None:
        if row.is_closed:
            raise SeasonAlreadyClosedError("Closed seasons cannot be activated")

    @staticmethod
    def _check_closable(row: Season, changes: dict) -> None:
        if row.is_closed:
            raise SeasonAlreadyClosedError()
        if row.closed_at is not None:
            changes.pop("closed_at", None)

    @staticmethod
    def _check_reopenable(row: Season, changes: dict) -> None:
        if not row.is_closed:
            raise SeasonNotClosedError()

    async def activate_season(self, db: AsyncSession, season_id: int, user_id: Optional[int] = None) -> SeasonResponse:
        season = await self.repo.update(db, season_id, {"is_active": True}, check=self._check_activatable)
        logger.info(f"Season {season_id} activated")
        await publish_audit_log(constants.AUDIT_SEASON_ACTIVATED, {"season_id": season_id, "user_id": user_id})
        return season

    async def deactivate_season(self, db: AsyncSession, season_id: int, user_id: Optional[int] = None) -> SeasonResponse:
        season = await self.repo.update(db, season_id, {"is_active": False})
        logger.info(f"Season {season_id} deactivated")
        await publish_audit_log(constants.AUDIT_SEASON_DEACTIVATED, {"season_id": season_id, "user_id": user_id})
        return season

    async def close_season(self, db: AsyncSession, season_id: int, user_id: Optional[int] = None) -> SeasonResponse:
        """
        Close a season: inactive, closed, historical.
        closed_at is written only the first time a season is closed.
        """
        changes = {
            "is_active": False,
            "is_closed": True,
            "is_historical": True,
            "closed_by": user_id,
            "closed_at": datetime.now(timezone.utc),
        }
        season = await self.repo.update(
            db,
            season_id,
            changes,
            before_commit=self._snapshot_hook(db, constants.SNAPSHOT_TYPE_SEASON_CLOSE, user_id, "Season closed"),
            check=self._check_closable,
        )
        logger.info(f"Season {season_id} closed by user {user_id}")
        await publish_audit_log(constants.AUDIT_SEASON_CLOSED, {"season_id": season_id, "user_id": user_id})
        return season

    async def reopen_season(self, db: AsyncSession, season_id: int, user_id: Optional[int] = None) -> SeasonResponse:
        season = await self.repo.update(
            db,
            season_id,
            {"is_closed": False, "is_historical": False},
            before_commit=self._snapshot_hook(db, constants.SNAPSHOT_TYPE_SEASON_REOPEN, user_id, "Season reopened"),
            check=self._check_reopenable,
        )
        logger.info(f"Season {season_id} reopened by user {user_id} (closed_at kept: {season.closed_at})")
        await publish_audit_log(constants.AUDIT_SEASON_REOPENED, {"season_id": season_id, "user_id": user_id})
        return season

    async def clone_season(
        self,
        db: AsyncSession,
        season_id: int,
        start_date: date,
        end_date: date,
        name: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> SeasonResponse:
        """Copy a season's settings onto new dates. The copy starts inactive."""
        source = await self.repo.get_or_404(db, season_id)
        clone = SeasonClone(start_date=start_date, end_date=end_date, name=name)
        obj_in = SeasonCreate(
            school_id=source.school_id,
            name=clone.name or f"{source.name or 'Season'} (copy)",
            start_date=clone.start_date,
            end_date=clone.end_date,
            hour_start=source.hour_start,
            hour_end=source.hour_end,
            vacation_days=source.vacation_days,
            is_active=False,
            created_by=user_id,
        )
        season = await self.create_season(db, obj_in, user_id=user_id)
        logger.info(f"Season {season_id} cloned into season {season.id}")
        return season

    # --- Reporting / maintenance ---

    async def get_statistics(self, db: AsyncSession, school_id: int) -> SeasonStatistics:
        seasons = await self.repo.list_for_school(db, school_id)
        today = date.today()
        return SeasonStatistics(
            school_id=school_id,
            total_seasons=len(seasons),
            active_seasons=sum(1 for s in seasons if s.is_active),
            closed_seasons=sum(1 for s in seasons if s.is_closed),
            historical_seasons=sum(1 for s in seasons if s.is_historical),
            current_seasons=sum(1 for s in seasons if s.start_date <= today <= s.end_date),
        )

    async def auto_close_expired_seasons(
        self,
        db: AsyncSession,
        school_id: Optional[int] = None,
        today: Optional[date] = None,
    ) -> List[int]:
        """
        Close every open season whose end_date is more than the grace period in the past.
        Returns the ids of the seasons that were closed.
        """
        today = today or date.today()
        cutoff = today - timedelta(days=settings.SEASON_AUTO_CLOSE_GRACE_DAYS)
        stmt = select(Season.id).where(
            Season.is_closed == False,
            Season.deleted_at.is_(None),
            Season.end_date < cutoff,
        )
        if school_id is not None:
            stmt = stmt.where(Season.school_id == school_id)
        expired_ids = (await db.execute(stmt.order_by(Season.id))).scalars().all()

        closed = []
        for season_id in expired_ids:
            try:
                await self.close_season(db, season_id)
                closed.append(season_id)
            except SeasonAlreadyClosedError:
                logger.info(f"Season {season_id} was closed concurrently, skipping")
        if closed:
            logger.info(f"Auto-closed {len(closed)} expired season(s): {closed}")
        return closed

    # --- Snapshots ---

    async def create_snapshot(self, db: AsyncSession, season_id: int, obj_in: SnapshotCreate, user_id: Optional[int] = None) -> SeasonSnapshot:
        await self._load(db, season_id)
        return await snapshot_store.create(
            db,
            season_id,
            obj_in.snapshot_type,
            obj_in.snapshot_data,
            created_by=user_id,
            description=obj_in.description,
            is_immutable=obj_in.is_immutable,
        )

    def _snapshot_hook(self, db: AsyncSession, snapshot_type: str, user_id: Optional[int], description: str):
        async def stage(row: Season) -> None:
            assignments = await user_season_role_repo.get_by_season(db, season_id=row.id)
            payload = {
                "season": SeasonResponse.model_validate(row).model_dump(mode="json"),
                "roles": [{"user_id": a.user_id, "role": a.role} for a in assignments],
            }
            snapshot_store.stage(db, row.id, snapshot_type, payload, created_by=user_id, description=description)

        return stage
