import asyncio
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import redis.asyncio as async_redis

from seasonhub.core.config import settings
from seasonhub.core.cache import SeasonCache
from seasonhub.core.database import AsyncSessionLocal
from seasonhub.repository.season import SeasonRepository
from seasonhub.services.season_service import SeasonService

logger = logging.getLogger(__name__)

async def scheduled_auto_close(redis_client: async_redis.Redis = None):
    """
    Close seasons whose end date is past the grace period.
    Runs daily; one failing run is logged and retried by the next one.
    """
    logger.info("Starting scheduled season auto-close...")
    owns_client = redis_client is None
    if owns_client:
        redis_client = async_redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            decode_responses=True
        )

    try:
        service = SeasonService(SeasonRepository(SeasonCache(redis_client)))
        async with AsyncSessionLocal() as db:
            closed = await service.auto_close_expired_seasons(db)
        logger.info(f"Season auto-close complete: {len(closed)} season(s) closed")
        return closed
    except Exception as e:
        logger.error(f"Season auto-close failed: {e}", exc_info=True)
        return []
    finally:
        if owns_client:
            await redis_client.aclose()

def build_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    # Every day at 02:00 (server time)
    scheduler.add_job(scheduled_auto_close, CronTrigger(hour=2, minute=0), id="season_auto_close", replace_existing=True)
    return scheduler

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    async def main():
        scheduler = build_scheduler()
        scheduler.start()
        logger.info("Season Manager Scheduler Started (daily auto-close at 02:00)")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.shutdown()

    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
