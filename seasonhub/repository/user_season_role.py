from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.models.user_season_role import UserSeasonRole
from seasonhub.repository.base import BaseRepository
from seasonhub.schemas.role import UserSeasonRoleCreate, UserSeasonRoleUpdate

class UserSeasonRoleRepository(BaseRepository[UserSeasonRole, UserSeasonRoleCreate, UserSeasonRoleUpdate]):
    async def get_live(self, db: AsyncSession, *, user_id: int, season_id: int) -> Optional[UserSeasonRole]:
        result = await db.execute(
            select(UserSeasonRole).where(
                UserSeasonRole.user_id == user_id,
                UserSeasonRole.season_id == season_id,
                UserSeasonRole.deleted_at.is_(None),
            )
        )
        return result.scalars().first()

    async def upsert(self, db: AsyncSession, *, user_id: int, season_id: int, role: str) -> UserSeasonRole:
        """Overwrite the live assignment's role, or create one."""
        assignment = await self.get_live(db, user_id=user_id, season_id=season_id)
        if assignment:
            assignment.role = role
        else:
            assignment = UserSeasonRole(user_id=user_id, season_id=season_id, role=role)
        db.add(assignment)
        try:
            await db.commit()
        except IntegrityError:
            # A concurrent first assignment won the live slot; overwrite it instead
            await db.rollback()
            assignment = await self.get_live(db, user_id=user_id, season_id=season_id)
            if assignment is None:
                raise
            assignment.role = role
            db.add(assignment)
            await db.commit()
        await db.refresh(assignment)
        return assignment

    async def tombstone(self, db: AsyncSession, *, user_id: int, season_id: int) -> bool:
        assignment = await self.get_live(db, user_id=user_id, season_id=season_id)
        if not assignment:
            return False
        assignment.deleted_at = datetime.now(timezone.utc)
        db.add(assignment)
        await db.commit()
        return True

    async def get_by_user(self, db: AsyncSession, *, user_id: int) -> List[UserSeasonRole]:
        result = await db.execute(
            select(UserSeasonRole)
            .where(UserSeasonRole.user_id == user_id, UserSeasonRole.deleted_at.is_(None))
            .order_by(UserSeasonRole.season_id)
        )
        return result.scalars().all()

    async def get_by_season(self, db: AsyncSession, *, season_id: int) -> List[UserSeasonRole]:
        result = await db.execute(
            select(UserSeasonRole)
            .where(UserSeasonRole.season_id == season_id, UserSeasonRole.deleted_at.is_(None))
            .order_by(UserSeasonRole.user_id)
        )
        return result.scalars().all()

user_season_role_repo = UserSeasonRoleRepository(UserSeasonRole)
