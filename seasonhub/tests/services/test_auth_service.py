import json
import pytest
from types import SimpleNamespace

from seasonhub.core.constants import DEFAULT_ROLE_CATALOG
from seasonhub.core.exceptions import InvalidCredentialsError
from seasonhub.core.security import decode_token
from seasonhub.core.session import Principal
from seasonhub.services.auth_service import authenticate_user, login_with_season_context, logout_user


@pytest.mark.asyncio
async def test_season_login_opens_session_with_season_context(db_session, session_store, redis_data, role_catalog, test_user, season_factory, assign):
    season = await season_factory(school_id=7)
    await assign(test_user, season, "manager")

    result = await login_with_season_context(db_session, session_store, "test@test.com", "test1234", season.id)

    assert result.role == "manager"
    assert result.season_id == season.id
    assert set(result.permissions) == set(DEFAULT_ROLE_CATALOG["manager"])
    assert result.user.id == test_user.id
    assert result.user.name == "Ana Test"
    assert result.user.email == "test@test.com"

    payload = decode_token(result.token)
    assert payload["sub"] == str(test_user.id)
    assert payload["scopes"] == ["season:manager"]
    # Context lives in the session blob, not in the token
    assert "school_id" not in payload
    blob = json.loads(redis_data[f"session:{payload['jti']}"])
    assert blob["context"] == {"school_id": 7, "season_id": season.id}

@pytest.mark.asyncio
@pytest.mark.parametrize("email,password,with_role", [
    ("test@test.com", "wrong-password", True),
    ("nobody@test.com", "test1234", True),
    ("test@test.com", "test1234", False),
])
async def test_season_login_failures_are_uniform(db_session, session_store, role_catalog, test_user, season_factory, assign, email, password, with_role):
    season = await season_factory()
    if with_role:
        await assign(test_user, season, "manager")

    with pytest.raises(InvalidCredentialsError) as exc_info:
        await login_with_season_context(db_session, session_store, email, password, season.id)
    assert exc_info.value.message == "Invalid credentials"
    assert exc_info.value.code == "INVALID_CREDENTIALS"

@pytest.mark.asyncio
async def test_season_login_rejects_inactive_user(db_session, session_store, role_catalog, user_factory, season_factory, assign):
    season = await season_factory()
    user = await user_factory("inactive@test.com", "secret123", is_active=False)
    await assign(user, season, "admin")

    with pytest.raises(InvalidCredentialsError):
        await login_with_season_context(db_session, session_store, "inactive@test.com", "secret123", season.id)

@pytest.mark.asyncio
async def test_new_season_login_revokes_previous_session(db_session, session_store, role_catalog, test_user, season_factory, assign):
    first_season = await season_factory(school_id=1)
    second_season = await season_factory(school_id=2)
    await assign(test_user, first_season, "manager")
    await assign(test_user, second_season, "monitor")

    first = await login_with_season_context(db_session, session_store, "test@test.com", "test1234", first_season.id)
    second = await login_with_season_context(db_session, session_store, "test@test.com", "test1234", second_season.id)

    assert not await session_store.exists(decode_token(first.token)["jti"])
    assert await session_store.exists(decode_token(second.token)["jti"])
    assert second.role == "monitor"

@pytest.mark.asyncio
async def test_password_login_starts_with_empty_context(db_session, session_store, test_user):
    form = SimpleNamespace(username="test@test.com", password="test1234")
    token = await authenticate_user(db_session, session_store, form)

    assert token.token_type == "bearer"
    jti = decode_token(token.access_token)["jti"]
    assert await session_store.read_context(jti) == {}

@pytest.mark.asyncio
async def test_password_login_wrong_password(db_session, session_store, test_user):
    form = SimpleNamespace(username="test@test.com", password="nope")
    with pytest.raises(InvalidCredentialsError):
        await authenticate_user(db_session, session_store, form)

@pytest.mark.asyncio
async def test_logout_deletes_session(db_session, session_store, test_user):
    form = SimpleNamespace(username="test@test.com", password="test1234")
    token = await authenticate_user(db_session, session_store, form)
    jti = decode_token(token.access_token)["jti"]

    await logout_user(session_store, Principal(user=test_user, session_id=jti))
    assert not await session_store.exists(jti)
