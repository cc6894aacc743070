import pytest
from datetime import datetime, timezone
from unittest.mock import patch
from httpx import AsyncClient

from seasonhub.core.constants import CONTEXT_RATE_LIMIT_TIMES


@pytest.mark.asyncio
async def test_context_starts_empty(client: AsyncClient, test_user, auth_headers):
    headers = await auth_headers(test_user)
    response = await client.get("/api/v1/context", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"school_id": None, "season_id": None}

@pytest.mark.asyncio
async def test_select_school_keeps_season(client: AsyncClient, test_user, auth_headers):
    headers = await auth_headers(test_user, {"school_id": 1, "season_id": 9})

    response = await client.post("/api/v1/context/school", json={"school_id": 2}, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"school_id": 2, "season_id": 9}
    assert (await client.get("/api/v1/context", headers=headers)).json() == {"school_id": 2, "season_id": 9}

@pytest.mark.asyncio
async def test_select_school_validates_payload(client: AsyncClient, test_user, auth_headers):
    headers = await auth_headers(test_user)
    response = await client.post("/api/v1/context/school", json={"school_id": "abc"}, headers=headers)
    assert response.status_code == 422

@pytest.mark.asyncio
async def test_select_season_requires_role(client: AsyncClient, role_catalog, test_user, season_factory, assign, auth_headers):
    season = await season_factory(school_id=3)
    headers = await auth_headers(test_user)

    denied = await client.post("/api/v1/context/season", json={"season_id": season.id}, headers=headers)
    assert denied.status_code == 403
    assert denied.json()["code"] == "FORBIDDEN"

    await assign(test_user, season, "monitor")
    allowed = await client.post("/api/v1/context/season", json={"season_id": season.id}, headers=headers)
    assert allowed.status_code == 200
    assert allowed.json() == {"school_id": 3, "season_id": season.id}

@pytest.mark.asyncio
async def test_select_missing_season(client: AsyncClient, test_user, auth_headers):
    headers = await auth_headers(test_user)
    response = await client.post("/api/v1/context/season", json={"season_id": 404}, headers=headers)
    assert response.status_code == 404
    assert response.json()["code"] == "SEASON_NOT_FOUND"

@pytest.mark.asyncio
async def test_context_changes_are_rate_limited_per_principal(client: AsyncClient, test_user, user_factory, auth_headers):
    other = await user_factory("other@test.com")
    headers = await auth_headers(test_user)
    other_headers = await auth_headers(other)
    fixed_now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    with patch("seasonhub.core.deps.datetime") as mock_dt:
        mock_dt.now.return_value = fixed_now
        for _ in range(CONTEXT_RATE_LIMIT_TIMES):
            response = await client.post("/api/v1/context/school", json={"school_id": 1}, headers=headers)
            assert response.status_code == 200

        limited = await client.post("/api/v1/context/school", json={"school_id": 1}, headers=headers)
        assert limited.status_code == 429

        # Another principal has its own window
        response = await client.post("/api/v1/context/school", json={"school_id": 1}, headers=other_headers)
        assert response.status_code == 200

    # Reads are not limited
    assert (await client.get("/api/v1/context", headers=headers)).status_code == 200

@pytest.mark.asyncio
async def test_anonymous_context_changes_are_limited_by_address(client: AsyncClient):
    fixed_now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    with patch("seasonhub.core.deps.datetime") as mock_dt:
        mock_dt.now.return_value = fixed_now
        for _ in range(CONTEXT_RATE_LIMIT_TIMES):
            response = await client.post("/api/v1/context/school", json={"school_id": 1})
            assert response.status_code == 401

        response = await client.post("/api/v1/context/school", json={"school_id": 1})
        assert response.status_code == 429
