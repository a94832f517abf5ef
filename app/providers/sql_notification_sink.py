from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import Notification, NotificationTargetType
from app.db.session import AsyncSessionLocal
from app.schemas.roster_schemas import NotificationTarget, SentNotification
from app.services.roster.interfaces import NotificationSink
from app.utils.datetime_utils import naive_utc_now


class SqlNotificationSink(NotificationSink):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def send(
        self,
        sender_id: str,
        message: str,
        target: NotificationTarget,
        recipient_ids: List[str],
    ) -> str:
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.max(Notification.sequence)).where(
                    Notification.sender_id == sender_id
                )
            )
            last_sequence = result.scalar_one_or_none() or 0

            notification = Notification(
                sender_id=sender_id,
                message=message,
                target_type=target.type,
                target_section=target.section,
                recipient_ids=list(recipient_ids),
                sequence=last_sequence + 1,
                created_at=naive_utc_now(),
            )
            db.add(notification)
            await db.commit()
            return notification.id

    async def prune(self, sender_id: str, keep: int) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Notification)
                .where(Notification.sender_id == sender_id)
                .order_by(Notification.sequence.desc())
                .offset(max(keep, 0))
            )
            stale = result.scalars().all()
            for notification in stale:
                await db.delete(notification)
            await db.commit()
            return len(stale)

    async def list_for_sender(self, sender_id: str) -> List[SentNotification]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Notification)
                .where(Notification.sender_id == sender_id)
                .order_by(Notification.sequence.desc())
            )
            return [
                SentNotification(
                    id=n.id,
                    message=n.message,
                    target=NotificationTarget(
                        type=n.target_type,
                        section=n.target_section,
                        student_ids=list(n.recipient_ids or [])
                        if n.target_type == NotificationTargetType.STUDENTS
                        else [],
                    ),
                    recipient_count=len(n.recipient_ids or []),
                    created_at=n.created_at,
                )
                for n in result.scalars().all()
            ]
