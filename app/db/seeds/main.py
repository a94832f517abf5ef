"""
Seeds the reference data the roster depends on.

Programs carry the program-to-college map used by coordinator scoping;
admins give one account per role.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.logging import get_logger

from .programs_seed import seed_programs
from .admins_seed import seed_admins

logger = get_logger()


async def seed_all_data(db_session: AsyncSession):
    try:
        logger.info("Starting database seeding...")
        await seed_programs(db_session)
        await seed_admins(db_session)
        logger.info("Database seeding completed successfully!")
    except Exception as e:
        logger.error(f"Database seeding failed: {e}")
        await db_session.rollback()
        raise
