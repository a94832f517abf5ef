from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Admin, AdminRole
from app.utils.logging import get_logger

logger = get_logger()


async def seed_admins(db_session: AsyncSession):
    """Seed one admin per role so every scope branch can be exercised"""

    await db_session.execute(delete(Admin))

    admins = [
        Admin(username="superadmin", role=AdminRole.ADMIN),
        Admin(
            username="coordinator.cics",
            role=AdminRole.COORDINATOR,
            college_code="CICS",
        ),
        Admin(
            username="coordinator.bsit",
            role=AdminRole.COORDINATOR,
            programs=["BSIT"],
        ),
        Admin(
            username="adviser.4bsit2",
            role=AdminRole.ADVISER,
            sections=["4BSIT-2"],
        ),
    ]

    db_session.add_all(admins)
    await db_session.commit()
    logger.info(f"Seeded {len(admins)} admins")
