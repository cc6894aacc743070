import pytest
from datetime import date, timedelta
from unittest.mock import patch

from seasonhub.core import constants
from seasonhub.models import Season
from seasonhub.repository.season_snapshot import snapshot_store
from seasonhub.worker.season_manager import build_scheduler, scheduled_auto_close


@pytest.mark.asyncio
async def test_scheduled_auto_close_closes_expired_seasons(db_session, session_factory, season_factory, mock_external_services):
    """
    The daily job closes seasons ended before the grace period and leaves a close snapshot.
    """
    today = date.today()
    expired = await season_factory(school_id=1, start=today - timedelta(days=200), end=today - timedelta(days=30), is_active=True)
    current = await season_factory(school_id=2, start=today - timedelta(days=30), end=today + timedelta(days=30), is_active=True)
    await db_session.commit()

    with patch("seasonhub.worker.season_manager.AsyncSessionLocal", session_factory):
        closed = await scheduled_auto_close(redis_client=mock_external_services["redis"])

    assert closed == [expired.id]

    db_session.expire_all()
    expired_row = await db_session.get(Season, expired.id)
    current_row = await db_session.get(Season, current.id)
    assert expired_row.is_closed is True
    assert expired_row.is_active is False
    assert expired_row.closed_by is None
    assert current_row.is_closed is False

    snapshots = await snapshot_store.list_for_season(db_session, expired.id)
    assert [s.snapshot_type for s in snapshots] == [constants.SNAPSHOT_TYPE_SEASON_CLOSE]

@pytest.mark.asyncio
async def test_scheduled_auto_close_survives_failures(mock_external_services):
    class BrokenSession:
        async def __aenter__(self):
            raise ConnectionError("db down")

        async def __aexit__(self, *args):
            return None

    with patch("seasonhub.worker.season_manager.AsyncSessionLocal", lambda: BrokenSession()):
        assert await scheduled_auto_close(redis_client=mock_external_services["redis"]) == []

def test_scheduler_registers_daily_job():
    scheduler = build_scheduler()
    job = scheduler.get_job("season_auto_close")
    assert job is not None
    assert job.func is scheduled_auto_close
