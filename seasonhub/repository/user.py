from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from seasonhub.core.security import get_password_hash
from seasonhub.repository.base import BaseRepository
from seasonhub.models.user import User
from seasonhub.schemas.user import UserCreate, UserUpdate

class UserRepository(BaseRepository[User, UserCreate, UserUpdate]):
    async def get_by_email(self, db: AsyncSession, *, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def get_active_by_email(self, db: AsyncSession, *, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email, User.is_active == True))
        return result.scalars().first()

    async def create(self, db: AsyncSession, *, obj_in: UserCreate, is_superadmin: bool = False) -> User:
        user = User(
            email=obj_in.email,
            hashed_password=get_password_hash(obj_in.password),
            first_name=obj_in.first_name,
            last_name=obj_in.last_name,
            is_active=True,
            is_superadmin=is_superadmin,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

user_repo = UserRepository(User)
