from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from app.schemas.staff.student_schemas import SendNotificationRequest
from app.services.admin_service import get_admin_context
from app.services.notification_service import NotificationService, get_notification_service
from app.services.roster.scope import AdminContext
from app.utils.responses import ResponseBuilder

notifications_router = APIRouter()


@notifications_router.post("/")
async def send_notification(
    data: SendNotificationRequest,
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
):
    """
    Send a message to all students in scope, one section, or selected students

    Older notifications from the same sender beyond the retention limit are pruned.
    """
    receipt = await notification_service.send(ctx, data.message, data.target)
    return ResponseBuilder.success(
        request=request,
        data=receipt.model_dump(mode="json", by_alias=True),
        message=f"Notification sent to {receipt.recipient_count} students",
        status_code=status.HTTP_201_CREATED,
    )


@notifications_router.get("/")
async def list_sent_notifications(
    request: Request,
    ctx: Annotated[AdminContext, Depends(get_admin_context)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
):
    """Notifications the caller has sent that are still within retention, newest first"""
    sent = await notification_service.list_sent(ctx)
    return ResponseBuilder.success(
        request=request,
        data=[n.model_dump(mode="json", by_alias=True) for n in sent],
        message=f"{len(sent)} notifications",
    )
