from typing import Iterable, List

from app.schemas.roster_schemas import (
    ArchiveSnapshot,
    BulkDeleteResult,
    CreatedBy,
    StudentDraft,
    StudentRecord,
)
from app.services.roster.checklist import RequirementChecklist, default_checklist
from app.services.roster.interfaces import ArchiveStore, RequirementFileStore, RosterStore
from app.services.roster.scope import AdminContext, ScopeResolver
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import (
    AppError,
    AuthorizationError,
    CollaboratorError,
    ConflictError,
    ConsistencyGuardError,
    NotFoundError,
)
from app.utils.logging import get_logger

logger = get_logger()


class StudentLifecycle:
    """Single-record roster mutations: hire, block, archive-then-delete, restore."""

    def __init__(
        self,
        roster_store: RosterStore,
        archive_store: ArchiveStore,
        file_store: RequirementFileStore,
        scope_resolver: ScopeResolver,
        checklist: RequirementChecklist = default_checklist,
    ):
        self.roster_store = roster_store
        self.archive_store = archive_store
        self.file_store = file_store
        self.scope_resolver = scope_resolver
        self.checklist = checklist

    async def _get_in_scope(self, record_id: str, ctx: AdminContext) -> StudentRecord:
        record = await self.roster_store.get_one(record_id)
        if record is None:
            raise NotFoundError(f"Student {record_id} not found", "STUDENT_NOT_FOUND")
        if not self.scope_resolver.resolve(ctx)(record):
            raise AuthorizationError(
                "Student is outside your assigned scope", "STUDENT_OUT_OF_SCOPE"
            )
        return record

    async def set_hired(self, record_id: str, hired: bool, ctx: AdminContext) -> StudentRecord:
        await self._get_in_scope(record_id, ctx)
        record = await self.roster_store.update(record_id, {"status": hired})
        logger.info(f"{ctx.username} set hired={hired} for student {record.student_id}")
        return record

    async def set_blocked(self, record_id: str, blocked: bool, ctx: AdminContext) -> StudentRecord:
        await self._get_in_scope(record_id, ctx)
        record = await self.roster_store.update(record_id, {"is_blocked": blocked})
        logger.info(f"{ctx.username} set blocked={blocked} for student {record.student_id}")
        return record

    async def delete(self, record_id: str, ctx: AdminContext) -> ArchiveSnapshot:
        """
        Archive the record, then remove it from the live roster.

        If the snapshot cannot be taken or written the live record is left untouched.
        """
        record = await self._get_in_scope(record_id, ctx)

        try:
            listing = await self.file_store.list_submitted_types(record_id)
        except CollaboratorError as e:
            raise ConsistencyGuardError(
                f"Could not snapshot submitted requirements for {record.student_id}: {e.message}"
            ) from e

        submitted = sorted(
            {self.checklist.canonicalize(name) for name, count in listing.items() if count > 0}
        )
        snapshot = ArchiveSnapshot(
            record=record,
            submitted_requirements=submitted,
            deleted_at=naive_utc_now(),
            deleted_by=CreatedBy(username=ctx.username, role=ctx.role, admin_id=ctx.admin_id),
        )

        try:
            await self.archive_store.write(record_id, snapshot)
        except Exception as e:
            logger.error(f"Archive write failed for {record.student_id}; delete aborted: {e}")
            raise ConsistencyGuardError(
                f"Student {record.student_id} was not deleted because archiving failed"
            ) from e

        await self.roster_store.delete(record_id)
        logger.info(f"{ctx.username} archived and deleted student {record.student_id}")
        return snapshot

    async def delete_many(self, record_ids: Iterable[str], ctx: AdminContext) -> BulkDeleteResult:
        result = BulkDeleteResult()
        for record_id in record_ids:
            try:
                await self.delete(record_id, ctx)
            except AppError as e:
                logger.warning(f"Bulk delete skipped {record_id}: {e.message}")
                result.failed[record_id] = e.message
                continue
            result.deleted.append(record_id)
        return result

    async def restore(self, record_id: str, ctx: AdminContext) -> StudentRecord:
        """Recreate an archived student under its original id, then drop the archive entry."""
        snapshot = await self.archive_store.get(record_id)
        if snapshot is None:
            raise NotFoundError(f"No archived student {record_id}", "ARCHIVE_NOT_FOUND")
        if not self.scope_resolver.resolve(ctx)(snapshot.record):
            raise AuthorizationError(
                "Archived student is outside your assigned scope", "STUDENT_OUT_OF_SCOPE"
            )

        existing = await self.roster_store.list_all()
        if any(r.student_id == snapshot.record.student_id for r in existing):
            raise ConflictError(
                f"Student ID {snapshot.record.student_id} is already in use",
                "DUPLICATE_IN_ROSTER",
            )

        draft = StudentDraft.model_validate(
            snapshot.record.model_dump(include=set(StudentDraft.model_fields))
        )
        await self.roster_store.create(draft, record_id=record_id)
        await self.archive_store.remove(record_id)
        restored = await self.roster_store.get_one(record_id)
        logger.info(f"{ctx.username} restored student {snapshot.record.student_id}")
        return restored

    async def list_archived(self, ctx: AdminContext) -> List[ArchiveSnapshot]:
        predicate = self.scope_resolver.resolve(ctx)
        snapshots = await self.archive_store.list()
        return sorted(
            (s for s in snapshots if predicate(s.record)),
            key=lambda s: s.deleted_at,
            reverse=True,
        )

    async def get_in_scope(self, record_id: str, ctx: AdminContext) -> StudentRecord:
        return await self._get_in_scope(record_id, ctx)
