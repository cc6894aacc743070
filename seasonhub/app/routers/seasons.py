from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.core import constants
from seasonhub.core.database import get_db
from seasonhub.core.deps import (
    RequireSeasonPermission,
    SeasonScope,
    get_current_admin_user,
    get_current_principal,
    get_season_repository,
    get_season_service,
    get_session_store,
)
from seasonhub.core.exceptions import SeasonNotFoundError, SeasonValidationError
from seasonhub.core.rate_limit_config import get_rate_limiter
from seasonhub.core.session import Principal, SessionStore
from seasonhub.models import User
from seasonhub.repository.season import SeasonRepository
from seasonhub.repository.season_snapshot import snapshot_store
from seasonhub.schemas.role import SeasonRoleAssign, SeasonRoleResponse
from seasonhub.schemas.season import SeasonClone, SeasonCreate, SeasonResponse, SeasonStatistics, SeasonUpdate
from seasonhub.schemas.snapshot import SnapshotCreate, SnapshotResponse, SnapshotVerification
from seasonhub.services import permission_service
from seasonhub.services.season_service import SeasonService

router = APIRouter(prefix="/seasons", tags=["seasons"])

can_view = RequireSeasonPermission(constants.PERMISSION_SEASONS_VIEW)
can_manage = RequireSeasonPermission(constants.PERMISSION_SEASONS_MANAGE)
can_close = RequireSeasonPermission(constants.PERMISSION_SEASONS_CLOSE)
can_manage_roles = RequireSeasonPermission(constants.PERMISSION_ROLES_MANAGE)
can_view_snapshots = RequireSeasonPermission(constants.PERMISSION_SNAPSHOTS_VIEW)
can_create_snapshots = RequireSeasonPermission(constants.PERMISSION_SNAPSHOTS_CREATE)


async def _school_from_context(principal: Principal, store: SessionStore, school_id: Optional[int]) -> Optional[int]:
    if school_id is not None or not principal.session_id:
        return school_id
    context = await store.read_context(principal.session_id) or {}
    return context.get(constants.CONTEXT_SCHOOL_KEY)

def _require_school(school_id: Optional[int]) -> int:
    if school_id is None:
        raise SeasonValidationError("school_id is required", errors={"school_id": ["Select a school or pass school_id"]})
    return school_id

# --- Collection ---

@router.get("", response_model=List[SeasonResponse], dependencies=[Depends(get_rate_limiter("/seasons"))])
async def list_seasons(
    school_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    store: SessionStore = Depends(get_session_store),
    repo: SeasonRepository = Depends(get_season_repository),
):
    """
    Seasons of the given (or selected) school; every season when no school is known.
    """
    school_id = await _school_from_context(principal, store, school_id)
    if school_id is None:
        return await repo.list_all(db)
    return await repo.list_for_school(db, school_id)

@router.get("/current", response_model=SeasonResponse, dependencies=[Depends(get_rate_limiter("/seasons"))])
async def get_current_season(
    school_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    store: SessionStore = Depends(get_session_store),
    repo: SeasonRepository = Depends(get_season_repository),
):
    school_id = _require_school(await _school_from_context(principal, store, school_id))
    season = await repo.get_current(db, school_id)
    if season is None:
        raise SeasonNotFoundError("No current season for this school")
    return season

@router.get("/stats", response_model=SeasonStatistics, dependencies=[Depends(get_rate_limiter("/seasons/stats"))])
async def get_season_statistics(
    school_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    store: SessionStore = Depends(get_session_store),
    service: SeasonService = Depends(get_season_service),
):
    school_id = _require_school(await _school_from_context(principal, store, school_id))
    return await service.get_statistics(db, school_id)

@router.post("", response_model=SeasonResponse, status_code=201, dependencies=[Depends(get_rate_limiter("/seasons/write"))])
async def create_season(
    body: SeasonCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_current_admin_user),
    service: SeasonService = Depends(get_season_service),
):
    """
    Create a season (platform administrators). The creator is given the admin
    role in the new season so it can be managed right away.
    """
    season = await service.create_season(db, body, user_id=admin.id)
    await permission_service.assign_role(db, admin.id, season.id, "admin")
    return season

# --- Single season ---

@router.get("/{season_id}", response_model=SeasonResponse, dependencies=[Depends(get_rate_limiter("/seasons"))])
async def get_season(
    season_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_view),
    repo: SeasonRepository = Depends(get_season_repository),
):
    return await repo.get_or_404(db, season_id)

@router.put("/{season_id}", response_model=SeasonResponse, dependencies=[Depends(get_rate_limiter("/seasons/write"))])
async def update_season(
    season_id: int,
    body: SeasonUpdate,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_manage),
    service: SeasonService = Depends(get_season_service),
):
    return await service.update_season(db, season_id, body, user_id=scope.user_id)

@router.delete("/{season_id}", dependencies=[Depends(get_rate_limiter("/seasons/write"))])
async def delete_season(
    season_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_manage),
    service: SeasonService = Depends(get_season_service),
):
    await service.delete_season(db, season_id, user_id=scope.user_id)
    return {"message": "Season deleted"}

@router.post("/{season_id}/activate", response_model=SeasonResponse, dependencies=[Depends(get_rate_limiter("/seasons/write"))])
async def activate_season(
    season_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_manage),
    service: SeasonService = Depends(get_season_service),
):
    return await service.activate_season(db, season_id, user_id=scope.user_id)

@router.post("/{season_id}/deactivate", response_model=SeasonResponse, dependencies=[Depends(get_rate_limiter("/seasons/write"))])
async def deactivate_season(
    season_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_manage),
    service: SeasonService = Depends(get_season_service),
):
    return await service.deactivate_season(db, season_id, user_id=scope.user_id)

@router.post("/{season_id}/close", response_model=SeasonResponse, dependencies=[Depends(get_rate_limiter("/seasons/write"))])
async def close_season(
    season_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_close),
    service: SeasonService = Depends(get_season_service),
):
    """
    Close the season and record a `season_close` snapshot of its state.
    """
    return await service.close_season(db, season_id, user_id=scope.user_id)

@router.post("/{season_id}/reopen", response_model=SeasonResponse, dependencies=[Depends(get_rate_limiter("/seasons/write"))])
async def reopen_season(
    season_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_close),
    service: SeasonService = Depends(get_season_service),
):
    return await service.reopen_season(db, season_id, user_id=scope.user_id)

@router.post("/{season_id}/clone", response_model=SeasonResponse, status_code=201, dependencies=[Depends(get_rate_limiter("/seasons/write"))])
async def clone_season(
    season_id: int,
    body: SeasonClone,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_manage),
    service: SeasonService = Depends(get_season_service),
):
    season = await service.clone_season(db, season_id, body.start_date, body.end_date, body.name, user_id=scope.user_id)
    await permission_service.assign_role(db, scope.user_id, season.id, scope.role)
    return season

# --- Roles ---

@router.get("/{season_id}/roles", response_model=List[SeasonRoleResponse], dependencies=[Depends(get_rate_limiter("/seasons/{season_id}/roles"))])
async def list_season_roles(
    season_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_view),
):
    return await permission_service.list_season_roles(db, season_id)

@router.put("/{season_id}/roles", response_model=SeasonRoleResponse, dependencies=[Depends(get_rate_limiter("/seasons/{season_id}/roles"))])
async def assign_season_role(
    season_id: int,
    body: SeasonRoleAssign,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_manage_roles),
):
    assignment = await permission_service.assign_role(db, body.user_id, season_id, body.role)
    return SeasonRoleResponse(
        user_id=assignment.user_id,
        season_id=assignment.season_id,
        role=assignment.role,
        permissions=await permission_service.resolve_permissions(db, assignment.user_id, season_id),
    )

@router.delete("/{season_id}/roles/{user_id}", dependencies=[Depends(get_rate_limiter("/seasons/{season_id}/roles"))])
async def revoke_season_role(
    season_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_manage_roles),
):
    await permission_service.revoke_role(db, user_id, season_id)
    return {"message": "Role revoked"}

# --- Snapshots ---

@router.get("/{season_id}/snapshots", response_model=List[SnapshotResponse], dependencies=[Depends(get_rate_limiter("/seasons/{season_id}/snapshots"))])
async def list_snapshots(
    season_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_view_snapshots),
):
    return await snapshot_store.list_for_season(db, season_id)

@router.post("/{season_id}/snapshots", response_model=SnapshotResponse, status_code=201, dependencies=[Depends(get_rate_limiter("/seasons/{season_id}/snapshots"))])
async def create_snapshot(
    season_id: int,
    body: SnapshotCreate,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_create_snapshots),
    service: SeasonService = Depends(get_season_service),
):
    return await service.create_snapshot(db, season_id, body, user_id=scope.user_id)

@router.get("/{season_id}/snapshots/{snapshot_id}", response_model=SnapshotResponse, dependencies=[Depends(get_rate_limiter("/seasons/{season_id}/snapshots"))])
async def get_snapshot(
    season_id: int,
    snapshot_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_view_snapshots),
):
    """
    Snapshots are only served after their checksum has been verified.
    """
    snapshot = await snapshot_store.get(db, snapshot_id, season_id=season_id)
    snapshot_store.assert_integrity(snapshot)
    return snapshot

@router.get("/{season_id}/snapshots/{snapshot_id}/verify", response_model=SnapshotVerification, dependencies=[Depends(get_rate_limiter("/seasons/{season_id}/snapshots"))])
async def verify_snapshot(
    season_id: int,
    snapshot_id: int,
    db: AsyncSession = Depends(get_db),
    scope: SeasonScope = Depends(can_view_snapshots),
):
    snapshot = await snapshot_store.get(db, snapshot_id, season_id=season_id)
    return SnapshotVerification(
        snapshot_id=snapshot.id,
        checksum=snapshot.checksum,
        valid=snapshot_store.verify_integrity(snapshot),
    )
