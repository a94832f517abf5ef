from typing import Annotated, Dict, List, Optional

from fastapi import Depends

from app.config.settings import settings
from app.db.models import AdminRole, NotificationTargetType
from app.providers.sql_notification_sink import SqlNotificationSink
from app.providers.sql_roster_store import SqlRosterStore
from app.schemas.roster_schemas import (
    NotificationReceipt,
    NotificationTarget,
    SentNotification,
    StudentRecord,
)
from app.services.admin_service import get_program_college_map
from app.services.roster.interfaces import NotificationSink, RosterStore
from app.services.roster.roster_source import RosterSource, live_roster
from app.services.roster.scope import AdminContext, ScopeResolver
from app.utils.errors import AuthorizationError, BusinessLogicError, RosterValidationError
from app.utils.logging import get_logger

logger = get_logger()


def _same_section(left: Optional[str], right: Optional[str]) -> bool:
    return (left or "").strip().upper() == (right or "").strip().upper()


class NotificationService:
    """Fans a staff message out to students inside the sender's scope"""

    def __init__(
        self,
        roster_store: RosterStore,
        sink: NotificationSink,
        program_college_map: Optional[Dict[str, str]] = None,
        retention: int = settings.NOTIFICATION_RETENTION_PER_SENDER,
        roster_source: Optional[RosterSource] = None,
    ):
        self.roster_store = roster_store
        self.roster_source = roster_source or RosterSource()
        self.sink = sink
        self.scope_resolver = ScopeResolver(program_college_map)
        self.retention = retention

    async def resolve_recipients(
        self, ctx: AdminContext, target: NotificationTarget
    ) -> List[str]:
        scoped: List[StudentRecord] = self.scope_resolver.filter(
            ctx, await self.roster_source.read(self.roster_store)
        )

        if target.type == NotificationTargetType.ALL:
            return [student.id for student in scoped]

        if target.type == NotificationTargetType.SECTION:
            if not target.section or not target.section.strip():
                raise RosterValidationError("A section is required", field="section")
            if ctx.role == AdminRole.ADVISER and not any(
                _same_section(target.section, s) for s in ctx.sections
            ):
                raise AuthorizationError(
                    f"Section {target.section} is not assigned to you", "SECTION_OUT_OF_SCOPE"
                )
            return [s.id for s in scoped if _same_section(s.section, target.section)]

        if not target.student_ids:
            raise RosterValidationError("Select at least one student", field="studentIds")
        visible = {student.id for student in scoped}
        outside = [record_id for record_id in target.student_ids if record_id not in visible]
        if outside:
            raise AuthorizationError(
                f"{len(outside)} selected students are outside your scope",
                "STUDENT_OUT_OF_SCOPE",
            )
        return list(dict.fromkeys(target.student_ids))

    async def send(
        self, ctx: AdminContext, message: str, target: NotificationTarget
    ) -> NotificationReceipt:
        message = (message or "").strip()
        if not message:
            raise RosterValidationError("Message cannot be empty", field="message")

        recipients = await self.resolve_recipients(ctx, target)
        if not recipients:
            raise BusinessLogicError("No students match this notification target", "NO_RECIPIENTS")

        notification_id = await self.sink.send(ctx.admin_id, message, target, recipients)
        pruned = await self.sink.prune(ctx.admin_id, self.retention)
        logger.info(
            f"{ctx.username} notified {len(recipients)} students ({target.type.value}); pruned {pruned}"
        )
        return NotificationReceipt(
            notification_id=notification_id, recipient_count=len(recipients), pruned=pruned
        )

    async def list_sent(self, ctx: AdminContext) -> List[SentNotification]:
        return await self.sink.list_for_sender(ctx.admin_id)


def get_notification_service(
    program_college_map: Annotated[Dict[str, str], Depends(get_program_college_map)],
) -> NotificationService:
    return NotificationService(
        roster_store=SqlRosterStore(),
        sink=SqlNotificationSink(),
        program_college_map=program_college_map,
        roster_source=live_roster,
    )
