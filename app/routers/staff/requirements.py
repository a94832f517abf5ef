from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.schemas.staff.student_schemas import ReviewRequirementRequest
from app.services.admin_service import get_admin_context
from app.services.roster.scope import AdminContext
from app.services.roster_service import RosterService, get_roster_service
from app.utils.responses import ResponseBuilder

requirements_router = APIRouter()


@requirements_router.get("/summary")
async def get_requirement_summary(
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    """
    Requirement completion across every student in the caller's scope

    Counts per requirement type plus fully submitted / fully approved students.
    """
    summary = await roster_service.requirement_summary(ctx)
    return ResponseBuilder.success(
        request=request,
        data=summary.model_dump(mode="json", by_alias=True),
        message="Requirement summary retrieved successfully",
    )


@requirements_router.get("/{record_id}")
async def get_student_requirements(
    record_id: str,
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    status = await roster_service.requirement_status(record_id, ctx)
    return ResponseBuilder.success(
        request=request,
        data=status.model_dump(mode="json", by_alias=True),
        message="Requirement status retrieved successfully",
    )


@requirements_router.put("/{record_id}/review")
async def review_requirement(
    record_id: str,
    data: ReviewRequirementRequest,
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    entry = await roster_service.review_requirement(
        record_id, data.requirement_type, data.status, ctx
    )
    return ResponseBuilder.success(
        request=request,
        data=entry.model_dump(mode="json", by_alias=True),
        message=f"Requirement marked {data.status.value}",
    )
