from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.core.database import get_db
from seasonhub.core.deps import (
    context_rate_limit,
    get_context_service,
    get_current_principal,
    get_season_repository,
)
from seasonhub.core.exceptions import PermissionDeniedError
from seasonhub.core.session import Principal
from seasonhub.repository.season import SeasonRepository
from seasonhub.schemas.context import ContextResponse, SchoolContextUpdate, SeasonContextUpdate
from seasonhub.services.context_service import ContextService
from seasonhub.services.permission_service import resolve_permissions

router = APIRouter(prefix="/context", tags=["context"])

@router.get("", response_model=ContextResponse)
async def get_context(
    principal: Principal = Depends(get_current_principal),
    service: ContextService = Depends(get_context_service),
):
    return await service.get(principal)

@router.post("/school", response_model=ContextResponse, dependencies=[Depends(context_rate_limit)])
async def select_school(
    body: SchoolContextUpdate,
    principal: Principal = Depends(get_current_principal),
    service: ContextService = Depends(get_context_service),
):
    """
    Select the working school. The selected season is kept; a season of another
    school is then refused by season-scoped endpoints.
    """
    return await service.set_school(principal, body.school_id)

@router.post("/season", response_model=ContextResponse, dependencies=[Depends(context_rate_limit)])
async def select_season(
    body: SeasonContextUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    service: ContextService = Depends(get_context_service),
    repo: SeasonRepository = Depends(get_season_repository),
):
    """
    Select the working season (and its school). Requires a role in that season.
    """
    season = await repo.get_or_404(db, body.season_id)
    if not principal.user.is_superadmin and not await resolve_permissions(db, principal.user_id, season.id):
        raise PermissionDeniedError("No permissions in this season")
    return await service.set_season(principal, season.id, season.school_id)
