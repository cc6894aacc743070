import asyncio
import logging
from seasonhub.core.database import AsyncSessionLocal
from seasonhub.core.constants import DEFAULT_ROLE_CATALOG
from seasonhub.repository.role import role_catalog_repo

logger = logging.getLogger(__name__)

async def init_roles():
    """Seed the role catalog. Roles that already exist are left as they are."""
    async with AsyncSessionLocal() as db:
        try:
            await role_catalog_repo.seed(db, DEFAULT_ROLE_CATALOG)
            logger.info(f"Role catalog ready: {sorted(DEFAULT_ROLE_CATALOG)}")
        except Exception as e:
            logger.error(f"Error seeding roles: {e}", exc_info=True)
            await db.rollback()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_roles())
