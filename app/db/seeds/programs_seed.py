from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Program
from app.utils.logging import get_logger

logger = get_logger()

# (program_code, program_name, college_code)
PROGRAMS = [
    ("BSIT", "Bachelor of Science in Information Technology", "CICS"),
    ("BSCS", "Bachelor of Science in Computer Science", "CICS"),
    ("BSIS", "Bachelor of Science in Information Systems", "CICS"),
    ("BSA", "Bachelor of Science in Accountancy", "COA"),
    ("BSBA", "Bachelor of Science in Business Administration", "CBA"),
    ("BSN", "Bachelor of Science in Nursing", "CON"),
]


async def seed_programs(db_session: AsyncSession):
    """Seed the program-to-college mapping - clear existing and add new"""

    await db_session.execute(delete(Program))

    programs = [
        Program(program_code=code, program_name=name, college_code=college)
        for code, name, college in PROGRAMS
    ]

    db_session.add_all(programs)
    await db_session.commit()
    logger.info(f"Seeded {len(programs)} programs")
