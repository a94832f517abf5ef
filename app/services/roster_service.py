import asyncio
from typing import Annotated, Dict, List, Optional

from fastapi import Depends

from app.config.settings import settings
from app.db.models import ApprovalStatus
from app.providers.csv_source import DictCsvSource
from app.providers.identity_provider import LocalIdentityProvider
from app.providers.minio_file_store import MinioRequirementFileStore
from app.providers.sql_approval_store import SqlApprovalStore
from app.providers.sql_archive_store import SqlArchiveStore
from app.providers.sql_roster_store import SqlRosterStore
from app.schemas.roster_schemas import (
    ApprovalEntry,
    ArchiveSnapshot,
    BulkDeleteResult,
    ImportBatchResult,
    RequirementSummary,
    RosterFilters,
    RosterPage,
    SortSpec,
    StudentRecord,
    StudentRequirementStatus,
)
from app.services.admin_service import get_program_college_map
from app.services.roster.checklist import RequirementChecklist, default_checklist
from app.services.roster.filters import RosterFilterEngine, parse_yes_no
from app.services.roster.importer import (
    CandidateStudent,
    CsvImportReconciler,
    ImportPolicy,
    PasswordPolicy,
)
from app.services.roster.interfaces import (
    ApprovalStore,
    ArchiveStore,
    CsvSource,
    IdentityProvider,
    RequirementFileStore,
    RosterStore,
)
from app.services.roster.lifecycle import StudentLifecycle
from app.services.roster.reconciler import RequirementReconciler
from app.services.roster.roster_source import RosterSource, live_roster
from app.services.roster.scope import AdminContext, ScopeResolver, program_code_from_section
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import AuthorizationError, NetworkError, RosterValidationError
from app.utils.logging import get_logger

logger = get_logger()


def import_policy_from_settings() -> ImportPolicy:
    return ImportPolicy(
        email_domain=settings.INSTITUTIONAL_EMAIL_DOMAIN,
        password_policy=PasswordPolicy(settings.IMPORT_PASSWORD_POLICY),
        default_password=settings.IMPORT_DEFAULT_PASSWORD,
        min_password_length=settings.IMPORT_MIN_PASSWORD_LENGTH,
        max_reported_errors=settings.IMPORT_MAX_REPORTED_ERRORS,
    )


class RosterService:
    """
    Staff-facing roster operations.

    Every call takes the acting AdminContext explicitly; the roster is always
    narrowed by ScopeResolver before it is filtered, reconciled or mutated.
    """

    def __init__(
        self,
        roster_store: RosterStore,
        archive_store: ArchiveStore,
        approval_store: ApprovalStore,
        file_store: RequirementFileStore,
        identity_provider: IdentityProvider,
        csv_source: CsvSource,
        program_college_map: Optional[Dict[str, str]] = None,
        checklist: RequirementChecklist = default_checklist,
        import_policy: Optional[ImportPolicy] = None,
        page_size: int = settings.ROSTER_PAGE_SIZE,
        roster_source: Optional[RosterSource] = None,
    ):
        self.roster_store = roster_store
        self.roster_source = roster_source or RosterSource()
        self.approval_store = approval_store
        self.csv_source = csv_source
        self.checklist = checklist
        self.scope_resolver = ScopeResolver(program_college_map)
        self.reconciler = RequirementReconciler(
            file_store=file_store,
            checklist=checklist,
            batch_size=settings.REQUIREMENT_CHECK_BATCH_SIZE,
            batch_delay=settings.REQUIREMENT_CHECK_BATCH_DELAY_SECONDS,
            timeout=settings.REQUIREMENT_CHECK_TIMEOUT_SECONDS,
        )
        self.filter_engine = RosterFilterEngine(page_size=page_size)
        self.importer = CsvImportReconciler(
            roster_store, identity_provider, import_policy or import_policy_from_settings()
        )
        self.lifecycle = StudentLifecycle(
            roster_store, archive_store, file_store, self.scope_resolver, checklist
        )

    async def scoped_roster(self, ctx: AdminContext) -> List[StudentRecord]:
        return self.scope_resolver.filter(ctx, await self.roster_source.read(self.roster_store))

    async def list_students(
        self,
        ctx: AdminContext,
        query: Optional[str] = None,
        filters: Optional[RosterFilters] = None,
        sort: Optional[SortSpec] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> RosterPage:
        filters = filters or RosterFilters()
        roster = await self.scoped_roster(ctx)
        approvals = await self.approval_store.list_all()

        if parse_yes_no(filters.approved_requirement) is not None:
            # The approved filter needs every scoped student reconciled up front
            statuses = await self.reconciler.reconcile_roster(roster, approvals)
            return self.filter_engine.apply(roster, query, filters, statuses, sort, page, per_page)

        result = self.filter_engine.apply(roster, query, filters, None, sort, page, per_page)
        statuses = await self.reconciler.reconcile_roster(
            [row.student for row in result.items], approvals
        )
        for row in result.items:
            row.requirements = statuses.get(row.student.id)
        return result

    async def requirement_status(
        self, record_id: str, ctx: AdminContext
    ) -> StudentRequirementStatus:
        await self.lifecycle.get_in_scope(record_id, ctx)
        approvals = await self.approval_store.list_all()
        try:
            return await self.reconciler.fetch_and_reconcile(record_id, approvals.get(record_id))
        except asyncio.TimeoutError as e:
            raise NetworkError("Requirement lookup timed out") from e

    async def requirement_summary(self, ctx: AdminContext) -> RequirementSummary:
        roster = await self.scoped_roster(ctx)
        approvals = await self.approval_store.list_all()
        statuses = await self.reconciler.reconcile_roster(roster, approvals)
        return self.reconciler.summarize(statuses.values())

    async def review_requirement(
        self,
        record_id: str,
        requirement_type: str,
        status: ApprovalStatus,
        ctx: AdminContext,
    ) -> ApprovalEntry:
        await self.lifecycle.get_in_scope(record_id, ctx)
        canonical = self.checklist.canonicalize(requirement_type)
        if not self.checklist.is_canonical(canonical):
            raise RosterValidationError(
                f"Unknown requirement type '{requirement_type}'", field="requirementType"
            )

        entry = ApprovalEntry(status=status, timestamp=naive_utc_now(), reviewer=ctx.username)
        await self.approval_store.set_decision(record_id, canonical, entry)
        logger.info(f"{ctx.username} marked '{canonical}' {status.value} for record {record_id}")
        return entry

    async def import_csv(self, content: bytes, ctx: AdminContext) -> ImportBatchResult:
        rows = self.csv_source.read(content)
        # Uniqueness is checked against the whole roster, not just the admin's scope
        existing = await self.roster_source.read(self.roster_store)
        return await self.importer.import_rows(rows, ctx, existing)

    async def create_student(self, candidate: CandidateStudent, ctx: AdminContext) -> StudentRecord:
        """
        Add one student by hand.

        Runs the same checks as a CSV row, plus the program/college/section
        consistency a manual form can get wrong, and refuses students that would
        land outside the caller's own scope.
        """
        self._check_placement(candidate)
        provisional = StudentRecord(
            id="",
            student_id=candidate.student_id,
            first_name=candidate.first_name,
            last_name=candidate.last_name,
            email=candidate.email,
            section=candidate.section or None,
            program=candidate.program,
            college=candidate.college,
        )
        if not self.scope_resolver.resolve(ctx)(provisional):
            raise AuthorizationError(
                "You can only add students inside your assigned scope", "STUDENT_OUT_OF_SCOPE"
            )

        existing = await self.roster_source.read(self.roster_store)
        record_id = await self.importer.create_one(candidate, ctx, existing)
        record = await self.roster_store.get_one(record_id)
        self.roster_source.apply_local(record)
        return record

    def _check_placement(self, candidate: CandidateStudent) -> None:
        if not candidate.college:
            raise RosterValidationError("College is required", field="college")

        program = candidate.program.strip().upper()
        if not program:
            return
        known = {p.upper(): c.upper() for p, c in self.scope_resolver.program_college_map.items()}
        if known and known.get(program) != candidate.college.strip().upper():
            raise RosterValidationError(
                f"Program {candidate.program} is not offered by {candidate.college}", field="program"
            )

        if candidate.section:
            section_program = program_code_from_section(candidate.section)
            if section_program is not None and section_program != program:
                raise RosterValidationError(
                    f"Section {candidate.section} does not belong to program {candidate.program}",
                    field="section",
                )

    async def set_hired(self, record_id: str, hired: bool, ctx: AdminContext) -> StudentRecord:
        record = await self.lifecycle.set_hired(record_id, hired, ctx)
        self.roster_source.apply_local(record)
        return record

    async def set_blocked(self, record_id: str, blocked: bool, ctx: AdminContext) -> StudentRecord:
        record = await self.lifecycle.set_blocked(record_id, blocked, ctx)
        self.roster_source.apply_local(record)
        return record

    async def delete_student(self, record_id: str, ctx: AdminContext) -> ArchiveSnapshot:
        snapshot = await self.lifecycle.delete(record_id, ctx)
        self.roster_source.remove_local(record_id)
        return snapshot

    async def delete_students(self, record_ids: List[str], ctx: AdminContext) -> BulkDeleteResult:
        result = await self.lifecycle.delete_many(record_ids, ctx)
        for record_id in result.deleted:
            self.roster_source.remove_local(record_id)
        return result

    async def restore_student(self, record_id: str, ctx: AdminContext) -> StudentRecord:
        record = await self.lifecycle.restore(record_id, ctx)
        self.roster_source.apply_local(record)
        return record

    async def list_archived(self, ctx: AdminContext) -> List[ArchiveSnapshot]:
        return await self.lifecycle.list_archived(ctx)


def get_requirement_file_store() -> RequirementFileStore:
    return MinioRequirementFileStore()


def get_roster_service(
    program_college_map: Annotated[Dict[str, str], Depends(get_program_college_map)],
    file_store: Annotated[RequirementFileStore, Depends(get_requirement_file_store)],
) -> RosterService:
    return RosterService(
        roster_store=SqlRosterStore(),
        archive_store=SqlArchiveStore(),
        approval_store=SqlApprovalStore(),
        file_store=file_store,
        identity_provider=LocalIdentityProvider(),
        csv_source=DictCsvSource(),
        program_college_map=program_college_map,
        roster_source=live_roster,
    )
