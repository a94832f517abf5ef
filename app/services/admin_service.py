from typing import Annotated, Dict, Optional

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Admin, Program
from app.db.session import get_async_session
from app.services.roster.scope import AdminContext
from app.utils.context import set_admin_id
from app.utils.errors import AuthorizationError
from app.utils.logging import get_logger

logger = get_logger()


class AdminService:
    """Looks up the acting admin and the program catalogue"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_admin(self, admin_id: str) -> Optional[Admin]:
        return await self.db.get(Admin, admin_id)

    async def build_context(self, admin_id: Optional[str]) -> AdminContext:
        if not admin_id:
            raise AuthorizationError("Missing X-Admin-ID header", "ADMIN_REQUIRED")

        admin = await self.get_admin(admin_id)
        if admin is None or not admin.is_active:
            raise AuthorizationError("Unknown or inactive admin", "ADMIN_NOT_FOUND")

        return AdminContext.build(
            admin_id=admin.id,
            username=admin.username,
            role=admin.role,
            sections=admin.sections or [],
            programs=admin.programs or [],
            college_code=admin.college_code,
        )

    async def load_program_college_map(self) -> Dict[str, str]:
        """Program code and program name, both uppercased, to college code."""
        result = await self.db.execute(select(Program))
        mapping: Dict[str, str] = {}
        for program in result.scalars().all():
            mapping[program.program_code.strip().upper()] = program.college_code
            mapping[program.program_name.strip().upper()] = program.college_code
        return mapping


def get_admin_service(
    db: AsyncSession = Depends(get_async_session),
) -> AdminService:
    return AdminService(db)


async def get_admin_context(
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
    x_admin_id: Annotated[Optional[str], Header()] = None,
) -> AdminContext:
    ctx = await admin_service.build_context(x_admin_id)
    set_admin_id(ctx.admin_id)
    logger.debug(f"Acting admin {ctx.username} ({ctx.role.value})")
    return ctx


async def get_program_college_map(
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Dict[str, str]:
    return await admin_service.load_program_college_map()
