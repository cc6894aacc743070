from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.core.rate_limit_config import get_rate_limiter
from seasonhub.core.database import get_db
from seasonhub.core.deps import get_current_user
from seasonhub.models import User
from seasonhub.schemas.role import UserSeasonEntry
from seasonhub.services.permission_service import get_user_seasons

router = APIRouter(prefix="/me", tags=["me"])

@router.get("/seasons", response_model=List[UserSeasonEntry], dependencies=[Depends(get_rate_limiter("/me/seasons"))])
async def get_my_seasons(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Seasons the current user holds a role in.
    """
    return await get_user_seasons(db, current_user.id)
