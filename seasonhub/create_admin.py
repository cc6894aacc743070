import asyncio
import logging
from sqlalchemy import select
from seasonhub.core.database import AsyncSessionLocal
from seasonhub.models import User
from seasonhub.core.security import get_password_hash
from seasonhub.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

async def create_admin_user():
    """Create the platform administrator, or reset its password if it exists."""
    email = settings.ADMIN_EMAIL
    password = settings.ADMIN_PASSWORD

    if not email or not password:
        logger.error("ADMIN_EMAIL or ADMIN_PASSWORD not set in settings.")
        return

    async with AsyncSessionLocal() as db:
        try:
            result = await db.execute(select(User).where(User.email == email))
            user = result.scalars().first()

            if not user:
                logger.info(f"Creating admin user: {email}")
                user = User(
                    email=email,
                    hashed_password=get_password_hash(password),
                    first_name="Admin",
                    last_name="",
                    is_active=True,
                    is_superadmin=True
                )
                db.add(user)
                await db.commit()
                logger.info("Admin user created successfully.")
            else:
                logger.info(f"Admin user {email} already exists. Updating password and ensuring superadmin status.")
                user.hashed_password = get_password_hash(password)
                user.is_superadmin = True
                await db.commit()
                logger.info("Admin password updated.")

        except Exception as e:
            logger.error(f"Error creating admin user: {e}", exc_info=True)
            await db.rollback()

if __name__ == "__main__":
    asyncio.run(create_admin_user())
