# create_tables.py
import asyncio
import logging
from seasonhub.core.database import engine
from seasonhub.models import Base

logger = logging.getLogger(__name__)

async def init_db():
    logger.info("Creating tables...")
    async with engine.begin() as conn:
        # create_all is synchronous, run it through run_sync
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables created successfully")

if __name__ == "__main__":
    async def _main():
        await init_db()
        await engine.dispose()

    asyncio.run(_main())
