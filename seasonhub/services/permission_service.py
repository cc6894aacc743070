import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from seasonhub.core import constants
from seasonhub.core.audit import publish_audit_log
from seasonhub.core.exceptions import RoleAssignmentNotFoundError, SeasonNotFoundError, UserNotFoundError
from seasonhub.models import Season, UserSeasonRole
from seasonhub.repository.role import KnownRole, RoleResolution, UnknownRole, role_catalog_repo
from seasonhub.repository.user import user_repo
from seasonhub.repository.user_season_role import user_season_role_repo
from seasonhub.schemas.role import SeasonRoleResponse, UserSeasonEntry

logger = logging.getLogger(__name__)

async def assign_role(db: AsyncSession, user_id: int, season_id: int, role: str) -> UserSeasonRole:
    """
    Upsert the (user, season) role.
    The role name is not checked against the catalog here: an unknown role is
    stored and later resolves to UnknownRole (no permissions).
    """
    if not await user_repo.get(db, id=user_id):
        raise UserNotFoundError()
    season = await db.get(Season, season_id)
    if season is None or season.deleted_at is not None:
        raise SeasonNotFoundError()

    if not await role_catalog_repo.exists(db, role):
        logger.warning(f"Assigning role '{role}' absent from the catalog (user {user_id}, season {season_id})")

    assignment = await user_season_role_repo.upsert(db, user_id=user_id, season_id=season_id, role=role)
    await publish_audit_log(constants.AUDIT_ROLE_ASSIGNED, {
        "user_id": user_id,
        "season_id": season_id,
        "role": role,
    })
    return assignment

async def revoke_role(db: AsyncSession, user_id: int, season_id: int) -> None:
    if not await user_season_role_repo.tombstone(db, user_id=user_id, season_id=season_id):
        raise RoleAssignmentNotFoundError()
    await publish_audit_log(constants.AUDIT_ROLE_REVOKED, {"user_id": user_id, "season_id": season_id})

async def resolve_role(db: AsyncSession, user_id: int, season_id: int) -> RoleResolution:
    assignment = await user_season_role_repo.get_live(db, user_id=user_id, season_id=season_id)
    if assignment is None:
        return UnknownRole(name=None)

    resolution = await role_catalog_repo.lookup(db, assignment.role)
    if isinstance(resolution, UnknownRole):
        logger.warning(f"Role '{assignment.role}' of user {user_id} in season {season_id} is not in the catalog")
    return resolution

async def resolve_permissions(db: AsyncSession, user_id: int, season_id: int) -> List[str]:
    """
    Effective permission names for (user, season).
    Empty when there is no assignment or the role is unknown; callers must
    treat an empty list as deny.
    """
    resolution = await resolve_role(db, user_id, season_id)
    return list(resolution.permissions)

async def has_permission(db: AsyncSession, user_id: int, season_id: int, permission: str) -> bool:
    return permission in await resolve_permissions(db, user_id, season_id)

async def get_user_seasons(db: AsyncSession, user_id: int) -> List[UserSeasonEntry]:
    entries = []
    for assignment in await user_season_role_repo.get_by_user(db, user_id=user_id):
        season = assignment.season
        if season is None or season.deleted_at is not None:
            continue
        entries.append(UserSeasonEntry(
            season_id=assignment.season_id,
            season_name=season.name,
            school_id=season.school_id,
            role=assignment.role,
        ))
    return entries

async def list_season_roles(db: AsyncSession, season_id: int) -> List[SeasonRoleResponse]:
    responses = []
    for assignment in await user_season_role_repo.get_by_season(db, season_id=season_id):
        resolution = await role_catalog_repo.lookup(db, assignment.role)
        responses.append(SeasonRoleResponse(
            user_id=assignment.user_id,
            season_id=assignment.season_id,
            role=assignment.role,
            permissions=resolution.permissions if isinstance(resolution, KnownRole) else [],
        ))
    return responses
