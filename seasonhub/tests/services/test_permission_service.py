import pytest
from datetime import datetime, timezone
from sqlalchemy import select

from seasonhub.core.constants import DEFAULT_ROLE_CATALOG
from seasonhub.core.exceptions import RoleAssignmentNotFoundError, SeasonNotFoundError, UserNotFoundError
from seasonhub.models import UserSeasonRole
from seasonhub.repository.role import KnownRole, UnknownRole
from seasonhub.repository.user_season_role import user_season_role_repo
from seasonhub.services import permission_service


@pytest.mark.asyncio
async def test_manager_resolves_catalog_permissions(db_session, role_catalog, test_user, season_factory):
    season = await season_factory()
    await permission_service.assign_role(db_session, test_user.id, season.id, "manager")

    role = await permission_service.resolve_role(db_session, test_user.id, season.id)
    assert isinstance(role, KnownRole)
    assert role.name == "manager"
    assert set(await permission_service.resolve_permissions(db_session, test_user.id, season.id)) == set(DEFAULT_ROLE_CATALOG["manager"])
    assert await permission_service.has_permission(db_session, test_user.id, season.id, "seasons.manage")
    assert not await permission_service.has_permission(db_session, test_user.id, season.id, "roles.manage")

@pytest.mark.asyncio
async def test_no_assignment_resolves_to_unknown_without_name(db_session, role_catalog, test_user, season_factory):
    season = await season_factory()

    role = await permission_service.resolve_role(db_session, test_user.id, season.id)
    assert role == UnknownRole(name=None)
    assert await permission_service.resolve_permissions(db_session, test_user.id, season.id) == []

@pytest.mark.asyncio
async def test_role_missing_from_catalog_is_inert(db_session, role_catalog, test_user, season_factory):
    season = await season_factory()
    assignment = await permission_service.assign_role(db_session, test_user.id, season.id, "ghost")

    assert assignment.role == "ghost"
    role = await permission_service.resolve_role(db_session, test_user.id, season.id)
    assert role == UnknownRole(name="ghost")
    assert await permission_service.resolve_permissions(db_session, test_user.id, season.id) == []

@pytest.mark.asyncio
async def test_reassignment_updates_live_row(db_session, role_catalog, test_user, season_factory):
    season = await season_factory()
    first = await permission_service.assign_role(db_session, test_user.id, season.id, "monitor")
    second = await permission_service.assign_role(db_session, test_user.id, season.id, "admin")

    assert first.id == second.id
    rows = (await db_session.execute(select(UserSeasonRole))).scalars().all()
    assert len(rows) == 1
    assert rows[0].role == "admin"

@pytest.mark.asyncio
async def test_revoke_then_assign_creates_new_live_row(db_session, role_catalog, test_user, season_factory):
    season = await season_factory()
    await permission_service.assign_role(db_session, test_user.id, season.id, "manager")

    await permission_service.revoke_role(db_session, test_user.id, season.id)
    assert await permission_service.resolve_permissions(db_session, test_user.id, season.id) == []

    await permission_service.assign_role(db_session, test_user.id, season.id, "monitor")
    rows = (await db_session.execute(select(UserSeasonRole).order_by(UserSeasonRole.id))).scalars().all()
    assert len(rows) == 2
    assert rows[0].deleted_at is not None
    assert rows[1].deleted_at is None and rows[1].role == "monitor"

@pytest.mark.asyncio
async def test_revoke_without_assignment_fails(db_session, test_user, season_factory):
    season = await season_factory()
    with pytest.raises(RoleAssignmentNotFoundError):
        await permission_service.revoke_role(db_session, test_user.id, season.id)

@pytest.mark.asyncio
async def test_assign_requires_existing_user_and_season(db_session, test_user, season_factory):
    season = await season_factory()
    with pytest.raises(UserNotFoundError):
        await permission_service.assign_role(db_session, 9999, season.id, "manager")
    with pytest.raises(SeasonNotFoundError):
        await permission_service.assign_role(db_session, test_user.id, 9999, "manager")

@pytest.mark.asyncio
async def test_assignment_is_audited(db_session, test_user, season_factory, mock_external_services):
    season = await season_factory()
    await permission_service.assign_role(db_session, test_user.id, season.id, "manager")
    assert mock_external_services["rabbitmq"].called

@pytest.mark.asyncio
async def test_user_seasons_skip_deleted_seasons(db_session, test_user, season_factory, assign):
    kept = await season_factory(school_id=1, name="Winter")
    dropped = await season_factory(school_id=2, name="Gone")
    await assign(test_user, kept, "manager")
    await assign(test_user, dropped, "monitor")

    dropped.deleted_at = datetime.now(timezone.utc)
    await db_session.commit()

    entries = await permission_service.get_user_seasons(db_session, test_user.id)
    assert [(e.season_id, e.season_name, e.school_id, e.role) for e in entries] == [(kept.id, "Winter", 1, "manager")]

@pytest.mark.asyncio
async def test_list_season_roles(db_session, role_catalog, test_user, user_factory, season_factory, assign):
    season = await season_factory()
    other = await user_factory("other@test.com")
    await assign(test_user, season, "admin")
    await assign(other, season, "ghost")

    roles = {r.user_id: r for r in await permission_service.list_season_roles(db_session, season.id)}
    assert set(roles[test_user.id].permissions) == set(DEFAULT_ROLE_CATALOG["admin"])
    assert roles[other.id].role == "ghost"
    assert roles[other.id].permissions == []

@pytest.mark.asyncio
async def test_concurrent_first_assignment_overwrites_winner(db_session, session_factory, test_user, season_factory, monkeypatch):
    season = await season_factory()
    user_id, season_id = test_user.id, season.id
    original_get_live = user_season_role_repo.get_live
    raced = []

    async def get_live_losing_race(db, *, user_id, season_id):
        if not raced:
            raced.append(True)
            # Another request creates the live assignment between our read and our insert
            async with session_factory() as other:
                other.add(UserSeasonRole(user_id=user_id, season_id=season_id, role="monitor"))
                await other.commit()
            return None
        return await original_get_live(db, user_id=user_id, season_id=season_id)

    monkeypatch.setattr(user_season_role_repo, "get_live", get_live_losing_race)

    assignment = await user_season_role_repo.upsert(db_session, user_id=user_id, season_id=season_id, role="admin")

    assert assignment.role == "admin"
    rows = (await db_session.execute(select(UserSeasonRole).where(UserSeasonRole.deleted_at.is_(None)))).scalars().all()
    assert [(r.user_id, r.season_id, r.role) for r in rows] == [(user_id, season_id, "admin")]
