import logging
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.core.cache import SeasonCache, SeasonCacheKeys
from seasonhub.core.exceptions import (
    InvalidDateRangeError,
    SeasonImmutableError,
    SeasonNotFoundError,
    SeasonOverlapError,
    SeasonValidationError,
)
from seasonhub.models.season import Season
from seasonhub.schemas.season import SeasonCreate, SeasonResponse, SeasonUpdate

logger = logging.getLogger(__name__)

# Columns a merge may touch; lifecycle columns are written by SeasonService only
UPDATABLE_FIELDS = {
    "name", "start_date", "end_date", "hour_start", "hour_end", "vacation_days", "school_id",
    "is_active", "is_closed", "is_historical", "closed_at", "closed_by",
}
LIFECYCLE_FIELDS = {"is_closed", "is_historical", "closed_at", "closed_by"}
NON_NULLABLE_FIELDS = {"start_date", "end_date", "school_id", "is_active", "is_closed", "is_historical"}

BeforeCommitHook = Callable[[Season], Awaitable[None]]
# Runs against the locked row before the merge; may raise or drop keys from the changes
LockedRowCheck = Callable[[Season, Dict[str, Any]], None]


class SeasonRepository:
    """Season store with a read-through cache.

    Every mutator commits first and only then deletes the enumerated cache
    keys of the mutation, so a reader can never repopulate the cache from a
    row that is about to change. Validation always happens before any write.
    """

    def __init__(self, cache: SeasonCache):
        self.cache = cache

    # ------------------------------------------------------------------ reads

    async def list_all(self, db: AsyncSession) -> List[SeasonResponse]:
        async def load():
            stmt = (
                select(Season)
                .where(Season.deleted_at.is_(None))
                .order_by(desc(Season.start_date), desc(Season.id))
            )
            return (await db.execute(stmt)).scalars().all()

        return await self._cached_many(SeasonCacheKeys.ALL, load)

    async def find(self, db: AsyncSession, season_id: int) -> Optional[SeasonResponse]:
        key = SeasonCacheKeys.season(season_id)
        cached = await self.cache.get_json(key)
        if cached is not None:
            return SeasonResponse.model_validate(cached)

        row = await self.get_row(db, season_id)
        if row is None:
            return None
        season = SeasonResponse.model_validate(row)
        await self.cache.set_json(key, season.model_dump(mode="json"))
        return season

    async def get_or_404(self, db: AsyncSession, season_id: int) -> SeasonResponse:
        season = await self.find(db, season_id)
        if season is None:
            raise SeasonNotFoundError()
        return season

    async def get_current(self, db: AsyncSession, school_id: int) -> Optional[SeasonResponse]:
        key = SeasonCacheKeys.current(school_id)
        cached = await self.cache.get_json(key)
        if cached is not None:
            return SeasonResponse.model_validate(cached)

        result = await db.execute(self._active_stmt(school_id).limit(1))
        row = result.scalars().first()
        if row is None:
            return None
        season = SeasonResponse.model_validate(row)
        await self.cache.set_json(key, season.model_dump(mode="json"))
        return season

    async def get_active(self, db: AsyncSession, school_id: int) -> List[SeasonResponse]:
        async def load():
            return (await db.execute(self._active_stmt(school_id))).scalars().all()

        return await self._cached_many(SeasonCacheKeys.active(school_id), load)

    async def list_for_school(self, db: AsyncSession, school_id: int) -> List[SeasonResponse]:
        async def load():
            stmt = (
                select(Season)
                .where(Season.school_id == school_id, Season.deleted_at.is_(None))
                .order_by(desc(Season.start_date), desc(Season.id))
            )
            return (await db.execute(stmt)).scalars().all()

        return await self._cached_many(SeasonCacheKeys.school_list(school_id), load)

    async def get_row(self, db: AsyncSession, season_id: int, *, for_update: bool = False) -> Optional[Season]:
        """Uncached ORM row, ignoring tombstoned seasons."""
        stmt = select(Season).where(Season.id == season_id, Season.deleted_at.is_(None))
        if for_update:
            # Overwrite whatever this session already holds with the locked values
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalars().first()

    # -------------------------------------------------------------- mutations

    async def create(self, db: AsyncSession, obj_in: Union[SeasonCreate, Dict[str, Any]]) -> SeasonResponse:
        if isinstance(obj_in, dict):
            obj_in = SeasonCreate.model_validate(obj_in)

        self._validate_date_range(obj_in.start_date, obj_in.end_date)
        await self._ensure_no_overlap(db, obj_in.school_id, obj_in.start_date, obj_in.end_date)

        row = Season(**obj_in.model_dump())
        db.add(row)
        await db.commit()
        await db.refresh(row)

        await self._invalidate(SeasonCacheKeys.for_create(row.school_id))
        return SeasonResponse.model_validate(row)

    async def update(
        self,
        db: AsyncSession,
        season_id: int,
        obj_in: Union[SeasonUpdate, Dict[str, Any]],
        *,
        before_commit: Optional[BeforeCommitHook] = None,
        check: Optional[LockedRowCheck] = None,
    ) -> SeasonResponse:
        data = self._coerce_update(obj_in)

        row = await self.get_row(db, season_id, for_update=True)
        if row is None:
            raise SeasonNotFoundError()
        if check is not None:
            check(row, data)

        changes = {field: value for field, value in data.items() if getattr(row, field) != value}
        if not changes:
            return SeasonResponse.model_validate(row)

        if "closed_at" in changes and row.closed_at is not None:
            raise SeasonImmutableError("closed_at cannot change once a season has been closed")

        old_school_id = row.school_id
        start_date = changes.get("start_date", row.start_date)
        end_date = changes.get("end_date", row.end_date)
        school_id = changes.get("school_id", row.school_id)
        self._validate_date_range(start_date, end_date)
        if changes.keys() & {"start_date", "end_date", "school_id"}:
            await self._ensure_no_overlap(db, school_id, start_date, end_date, exclude_id=row.id)

        is_closed = changes.get("is_closed", row.is_closed)
        is_active = changes.get("is_active", row.is_active)
        if is_closed and is_active:
            raise SeasonValidationError(
                "A closed season cannot be active",
                errors={"is_active": ["A closed season cannot be active"]},
            )

        for field, value in changes.items():
            setattr(row, field, value)
        db.add(row)
        if before_commit is not None:
            await before_commit(row)
        await db.commit()
        await db.refresh(row)

        await self._invalidate(SeasonCacheKeys.for_mutation(row.id, [old_school_id, row.school_id]))
        logger.info(f"Season {row.id} updated: {sorted(changes)}")
        return SeasonResponse.model_validate(row)

    async def delete(self, db: AsyncSession, season_id: int, *, check: Optional[LockedRowCheck] = None) -> None:
        row = await self.get_row(db, season_id, for_update=True)
        if row is None:
            raise SeasonNotFoundError()
        if check is not None:
            check(row, {})

        row.deleted_at = datetime.now(timezone.utc)
        db.add(row)
        await db.commit()

        await self._invalidate(SeasonCacheKeys.for_mutation(row.id, [row.school_id]))
        logger.info(f"Season {row.id} soft-deleted (school {row.school_id})")

    # ---------------------------------------------------------------- helpers

    @staticmethod
    def _active_stmt(school_id: int):
        return (
            select(Season)
            .where(
                Season.school_id == school_id,
                Season.is_active == True,
                Season.is_closed == False,
                Season.deleted_at.is_(None),
            )
            .order_by(desc(Season.start_date), desc(Season.id))
        )

    @staticmethod
    def _coerce_update(obj_in: Union[SeasonUpdate, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(obj_in, dict):
            unknown = set(obj_in) - UPDATABLE_FIELDS
            if unknown:
                raise SeasonValidationError(
                    "Unknown season fields",
                    errors={field: ["Field cannot be updated"] for field in sorted(unknown)},
                )
            lifecycle = {k: v for k, v in obj_in.items() if k in LIFECYCLE_FIELDS}
            try:
                editable = SeasonUpdate.model_validate(
                    {k: v for k, v in obj_in.items() if k not in LIFECYCLE_FIELDS}
                )
            except ValidationError as e:
                errors: Dict[str, List[str]] = {}
                for err in e.errors():
                    field = ".".join(str(part) for part in err["loc"]) or "__root__"
                    errors.setdefault(field, []).append(err["msg"])
                raise SeasonValidationError("Invalid season fields", errors=errors)
            data = {**editable.model_dump(exclude_unset=True), **lifecycle}
        else:
            data = obj_in.model_dump(exclude_unset=True)

        nulls = sorted(field for field in NON_NULLABLE_FIELDS if field in data and data[field] is None)
        if nulls:
            raise SeasonValidationError(
                "Fields cannot be null",
                errors={field: ["Field cannot be null"] for field in nulls},
            )
        return data

    async def _cached_many(self, key: str, load) -> List[SeasonResponse]:
        cached = await self.cache.get_json(key)
        if isinstance(cached, list):
            return [SeasonResponse.model_validate(item) for item in cached]

        seasons = [SeasonResponse.model_validate(row) for row in await load()]
        await self.cache.set_json(key, [s.model_dump(mode="json") for s in seasons])
        return seasons

    @staticmethod
    def _validate_date_range(start_date: date, end_date: date) -> None:
        if start_date is None or end_date is None:
            raise SeasonValidationError(
                "start_date and end_date are required",
                errors={"start_date": ["Required"], "end_date": ["Required"]},
            )
        if not start_date < end_date:
            raise InvalidDateRangeError()

    @staticmethod
    async def _ensure_no_overlap(
        db: AsyncSession,
        school_id: int,
        start_date: date,
        end_date: date,
        exclude_id: Optional[int] = None,
    ) -> None:
        # Inclusive bounds: sharing a boundary day counts as an overlap
        stmt = select(Season.id).where(
            Season.school_id == school_id,
            Season.deleted_at.is_(None),
            Season.start_date <= end_date,
            Season.end_date >= start_date,
        )
        if exclude_id is not None:
            stmt = stmt.where(Season.id != exclude_id)
        clash = (await db.execute(stmt.limit(1))).scalar_one_or_none()
        if clash is not None:
            logger.info(f"Rejected season dates {start_date}..{end_date} for school {school_id}: overlaps season {clash}")
            raise SeasonOverlapError()

    async def _invalidate(self, keys: List[str]) -> None:
        try:
            await self.cache.delete(*keys)
        except Exception:
            logger.error(f"Season cache invalidation failed for {keys}", exc_info=True)
            raise
