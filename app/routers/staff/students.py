from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status

from app.schemas.roster_schemas import RosterFilters, SortDirection, SortSpec
from app.schemas.staff.student_schemas import (
    BlockStatusRequest,
    BulkDeleteRequest,
    HireStatusRequest,
    StudentCreateRequest,
)
from app.services.admin_service import get_admin_context
from app.services.roster.scope import AdminContext
from app.services.roster_service import RosterService, get_roster_service
from app.utils.errors import RosterValidationError
from app.utils.responses import ResponseBuilder

students_router = APIRouter()


def _dump(model):
    return model.model_dump(mode="json", by_alias=True)


@students_router.get("/")
async def list_students(
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
    search: Optional[str] = Query(None, description="Name, student ID, program, section or email"),
    program: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    contact: Optional[str] = Query(None),
    hired: Optional[str] = Query(None, description="Yes or No"),
    location_preference: Optional[str] = Query(None, alias="locationPreference"),
    section: Optional[str] = Query(None),
    approved_requirement: Optional[str] = Query(None, alias="approvedRequirement"),
    blocked: Optional[str] = Query(None, description="Yes or No"),
    sort_key: str = Query("lastName", alias="sortKey"),
    sort_direction: SortDirection = Query(SortDirection.ASC, alias="sortDirection"),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=100, alias="perPage"),
):
    """
    Scoped student roster

    - Only students inside the caller's adviser/coordinator scope are returned
    - Search and filters are case-insensitive and AND-combined
    - Each row carries the student's per-requirement status
    """
    filters = RosterFilters(
        program=program,
        email=email,
        contact=contact,
        hired=hired,
        location_preference=location_preference,
        section=section,
        approved_requirement=approved_requirement,
        blocked=blocked,
    )
    result = await roster_service.list_students(
        ctx,
        query=search,
        filters=filters,
        sort=SortSpec(key=sort_key, direction=sort_direction),
        page=page,
        per_page=per_page,
    )
    return ResponseBuilder.paginated(
        request=request,
        data=[_dump(row) for row in result.items],
        page=result.page,
        per_page=result.per_page,
        total=result.total,
        message="Students retrieved successfully",
    )


@students_router.post("/")
async def create_student(
    data: StudentCreateRequest,
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    """
    Add a single student and their login account

    The account password follows the import password policy (the student ID by default).
    """
    record = await roster_service.create_student(data.to_candidate(), ctx)
    return ResponseBuilder.success(
        request=request,
        data=_dump(record),
        message=f"Student {record.student_id} added",
        status_code=status.HTTP_201_CREATED,
    )


@students_router.post("/import")
async def import_students(
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
    file: UploadFile = File(..., description="CSV export of the student list"),
):
    """
    Import students from a CSV file

    - Every row is validated independently; one bad row never stops the batch
    - Duplicates inside the file and against the roster are rejected per row
    - A login account is created for each imported student
    """
    if file.filename and not file.filename.lower().endswith(".csv"):
        raise RosterValidationError("Only .csv files can be imported", field="file")

    content = await file.read()
    result = await roster_service.import_csv(content, ctx)
    data = _dump(result)

    if result.failure_count:
        return ResponseBuilder.warning(
            request=request,
            data=data,
            message=result.summary,
            warnings=[f"Row {error.row}: {error.error}" for error in result.errors],
        )
    return ResponseBuilder.success(request=request, data=data, message=result.summary)


@students_router.get("/archive")
async def list_archived_students(
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    snapshots = await roster_service.list_archived(ctx)
    return ResponseBuilder.success(
        request=request,
        data=[_dump(snapshot) for snapshot in snapshots],
        message="Archived students retrieved successfully",
    )


@students_router.post("/archive/{record_id}/restore")
async def restore_student(
    record_id: str,
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    record = await roster_service.restore_student(record_id, ctx)
    return ResponseBuilder.success(
        request=request,
        data=_dump(record),
        message=f"Student {record.student_id} restored",
    )


@students_router.post("/bulk-delete")
async def bulk_delete_students(
    data: BulkDeleteRequest,
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    result = await roster_service.delete_students(data.record_ids, ctx)
    message = f"Deleted {len(result.deleted)} of {len(data.record_ids)} students"
    if result.failed:
        return ResponseBuilder.warning(
            request=request,
            data=_dump(result),
            message=message,
            warnings=[f"{record_id}: {reason}" for record_id, reason in result.failed.items()],
        )
    return ResponseBuilder.success(request=request, data=_dump(result), message=message)


@students_router.delete("/{record_id}")
async def delete_student(
    record_id: str,
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    """Archive the student, then remove them from the live roster"""
    snapshot = await roster_service.delete_student(record_id, ctx)
    return ResponseBuilder.success(
        request=request,
        data=_dump(snapshot),
        message=f"Student {snapshot.record.student_id} archived and deleted",
    )


@students_router.patch("/{record_id}/hire")
async def set_hire_status(
    record_id: str,
    data: HireStatusRequest,
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    record = await roster_service.set_hired(record_id, data.hired, ctx)
    return ResponseBuilder.success(
        request=request, data=_dump(record), message="Hire status updated"
    )


@students_router.patch("/{record_id}/block")
async def set_block_status(
    record_id: str,
    data: BlockStatusRequest,
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    roster_service: Annotated[RosterService, Depends(get_roster_service)],
):
    record = await roster_service.set_blocked(record_id, data.blocked, ctx)
    return ResponseBuilder.success(
        request=request, data=_dump(record), message="Block status updated"
    )
