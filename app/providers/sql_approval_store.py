from typing import AsyncIterator, Dict

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import RequirementApproval
from app.db.session import AsyncSessionLocal
from app.providers.change_feed import ChangeFeed, approval_feed
from app.providers.retry import with_retry
from app.schemas.roster_schemas import ApprovalEntry, ApprovalMap, ApprovalSnapshot
from app.services.roster.interfaces import ApprovalStore
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import NetworkError


class SqlApprovalStore(ApprovalStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        feed: ChangeFeed = approval_feed,
    ):
        self.session_factory = session_factory
        self.feed = feed

    async def _read_all(self) -> ApprovalMap:
        try:
            async with self.session_factory() as db:
                result = await db.execute(select(RequirementApproval))
                rows = result.scalars().all()
        except OperationalError as e:
            raise NetworkError(f"Approval read failed: {e.orig}") from e

        approvals: Dict[str, Dict[str, ApprovalEntry]] = {}
        for row in rows:
            approvals.setdefault(row.student_record_id, {})[row.requirement_type] = ApprovalEntry(
                status=row.status,
                timestamp=row.reviewed_at,
                reviewer=row.reviewer,
            )
        return approvals

    async def list_all(self) -> ApprovalMap:
        return await with_retry(self._read_all, "Approval list")

    async def _snapshot(self) -> ApprovalSnapshot:
        version = self.feed.version
        return ApprovalSnapshot(version=version, approvals=await self.list_all())

    def subscribe(self) -> AsyncIterator[ApprovalSnapshot]:
        return self.feed.subscribe(self._snapshot)

    async def set_decision(
        self, record_id: str, requirement_type: str, entry: ApprovalEntry
    ) -> None:
        async with self.session_factory() as db:
            result = await db.execute(
                select(RequirementApproval).where(
                    RequirementApproval.student_record_id == record_id,
                    RequirementApproval.requirement_type == requirement_type,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = RequirementApproval(
                    student_record_id=record_id, requirement_type=requirement_type
                )
                db.add(row)
            row.status = entry.status
            row.reviewer = entry.reviewer
            row.reviewed_at = entry.timestamp or naive_utc_now()
            await db.commit()

        version = self.feed.next_version()
        if self.feed.subscriber_count:
            self.feed.publish(ApprovalSnapshot(version=version, approvals=await self.list_all()))
