from fastapi import APIRouter

from .students import students_router
from .requirements import requirements_router
from .notifications import notifications_router

staff_router = APIRouter()

# Include sub-routers
staff_router.include_router(
    students_router, prefix="/students", tags=["Staff - Student Roster"]
)
staff_router.include_router(
    requirements_router,
    prefix="/requirements",
    tags=["Staff - Requirement Review"],
)
staff_router.include_router(
    notifications_router,
    prefix="/notifications",
    tags=["Staff - Notifications"],
)
