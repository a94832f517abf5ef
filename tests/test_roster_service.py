import pytest

from app.db.models import ApprovalStatus
from app.providers.csv_source import DictCsvSource
from app.schemas.roster_schemas import ApprovalEntry, RequirementState, RosterFilters
from app.services.roster.checklist import CURRICULUM_VITAE, DEFAULT_REQUIREMENT_TYPES
from app.services.roster.importer import CandidateStudent, ImportPolicy
from app.services.roster.roster_source import RosterSource
from app.services.roster_service import RosterService
from app.utils.errors import (
    AuthorizationError,
    ConflictError,
    NetworkError,
    RosterValidationError,
)

PROGRAM_COLLEGE_MAP = {"BSIT": "CICS", "BSCS": "CICS", "BSA": "COA"}


@pytest.fixture
def service(roster_store, archive_store, approval_store, file_store, identity_provider, student_factory):
    for n, (section, program) in enumerate(
        [("4BSIT-2", "BSIT"), ("4BSIT-2", "BSIT"), ("4BSIT-2", "BSIT"), ("3BSCS-1", "BSCS")]
    ):
        record_id = f"r{n}"
        roster_store.records[record_id] = student_factory(
            id=record_id,
            student_id=f"22-00001-00{n}",
            last_name=f"Student {n}",
            section=section,
            program=program,
        )
    return RosterService(
        roster_store=roster_store,
        archive_store=archive_store,
        approval_store=approval_store,
        file_store=file_store,
        identity_provider=identity_provider,
        csv_source=DictCsvSource(),
        program_college_map=PROGRAM_COLLEGE_MAP,
        import_policy=ImportPolicy(),
        page_size=2,
    )


class TestListStudents:
    """Test scoped listing with requirement status attached."""

    @pytest.mark.asyncio
    async def test_scope_applies_before_paging(self, service, adviser_ctx):
        page = await service.list_students(adviser_ctx)

        assert page.total == 3
        assert [row.student.id for row in page.items] == ["r0", "r1"]

    @pytest.mark.asyncio
    async def test_only_visible_page_is_reconciled(self, service, admin_ctx, file_store):
        file_store.listings = {"r0": {"resume": 1}}

        page = await service.list_students(admin_ctx)

        assert sorted(file_store.calls) == ["r0", "r1"]
        assert page.items[0].requirements.states[CURRICULUM_VITAE] == RequirementState.SUBMITTED_PENDING

    @pytest.mark.asyncio
    async def test_approved_filter_reconciles_whole_scope(
        self, service, admin_ctx, file_store, approval_store
    ):
        file_store.listings = {"r3": {name: 1 for name in DEFAULT_REQUIREMENT_TYPES}}
        approval_store.approvals = {
            "r3": {name: ApprovalEntry(status=ApprovalStatus.APPROVED) for name in DEFAULT_REQUIREMENT_TYPES}
        }

        page = await service.list_students(
            admin_ctx, filters=RosterFilters(approved_requirement="Yes")
        )

        assert len(file_store.calls) == 4
        assert [row.student.id for row in page.items] == ["r3"]
        assert page.items[0].requirements.all_approved


class TestRequirementReview:
    @pytest.mark.asyncio
    async def test_alias_is_stored_under_canonical_name(self, service, admin_ctx, approval_store):
        entry = await service.review_requirement("r0", "resume", ApprovalStatus.APPROVED, admin_ctx)

        assert entry.reviewer == admin_ctx.username
        assert approval_store.approvals["r0"][CURRICULUM_VITAE].status == ApprovalStatus.APPROVED

    @pytest.mark.asyncio
    async def test_unknown_requirement_type(self, service, admin_ctx):
        with pytest.raises(RosterValidationError):
            await service.review_requirement("r0", "Company ID", ApprovalStatus.APPROVED, admin_ctx)

    @pytest.mark.asyncio
    async def test_review_out_of_scope(self, service, adviser_ctx):
        with pytest.raises(AuthorizationError):
            await service.review_requirement("r3", "MOA", ApprovalStatus.APPROVED, adviser_ctx)

    @pytest.mark.asyncio
    async def test_status_and_summary(self, service, adviser_ctx, file_store):
        file_store.listings = {"r1": {"resume": 1, "MOA": 2}}

        status = await service.requirement_status("r1", adviser_ctx)
        summary = await service.requirement_summary(adviser_ctx)

        assert status.submitted_count == 2
        assert summary.total_students == 3
        assert summary.per_type[CURRICULUM_VITAE].pending == 1


class TestImportCsv:
    @pytest.mark.asyncio
    async def test_uniqueness_checked_against_whole_roster(self, service, adviser_ctx, roster_store):
        content = (
            "Student Number,First Name,Last Name,Email,Program,Section\n"
            "22-00001-003,Ben,Cruz,ben@school.edu.ph,BSCS,3BSCS-1\n"
            "22-00002-001,Ana,Reyes,ana@school.edu.ph,BSIT,4BSIT-2\n"
        ).encode()

        result = await service.import_csv(content, adviser_ctx)

        assert result.success_count == 1
        assert result.errors[0].row == 2
        assert len(roster_store.records) == 5


def _candidate(**overrides):
    values = dict(
        student_id="22-00009-001",
        first_name="Ana",
        last_name="Reyes",
        email="ana.reyes@school.edu.ph",
        program="BSIT",
        section="4BSIT-1",
        college="CICS",
    )
    values.update(overrides)
    return CandidateStudent(**values)


class TestCreateStudent:
    """Test adding a single student by hand."""

    @pytest.mark.asyncio
    async def test_creates_account_then_record(self, service, admin_ctx, roster_store, identity_provider):
        record = await service.create_student(_candidate(email="Ana.Reyes@School.edu.ph"), admin_ctx)

        assert roster_store.records[record.id].student_id == "22-00009-001"
        assert record.email == "ana.reyes@school.edu.ph"
        assert record.external_account_id == identity_provider.accounts["ana.reyes@school.edu.ph"]
        assert record.created_by.username == "superadmin"

    @pytest.mark.asyncio
    async def test_duplicate_student_id_is_rejected_before_account(
        self, service, admin_ctx, identity_provider
    ):
        with pytest.raises(ConflictError):
            await service.create_student(_candidate(student_id="22-00001-000"), admin_ctx)
        assert identity_provider.create_calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"student_id": "2200009001"}, "studentId"),
            ({"email": "ana@gmail.com"}, "email"),
            ({"last_name": ""}, "name"),
            ({"college": ""}, "college"),
            ({"program": "BSA"}, "program"),
            ({"section": "3BSCS-1"}, "section"),
        ],
    )
    async def test_invalid_input(self, service, admin_ctx, identity_provider, overrides, field):
        with pytest.raises(RosterValidationError) as exc_info:
            await service.create_student(_candidate(**overrides), admin_ctx)
        assert exc_info.value.field == field
        assert identity_provider.create_calls == []

    @pytest.mark.asyncio
    async def test_outside_own_scope(self, service, adviser_ctx, roster_store):
        with pytest.raises(AuthorizationError):
            await service.create_student(_candidate(section="4BSIT-1"), adviser_ctx)
        assert len(roster_store.records) == 4

    @pytest.mark.asyncio
    async def test_adviser_can_add_to_own_section(self, service, adviser_ctx):
        record = await service.create_student(_candidate(section="4bsit-2"), adviser_ctx)
        assert record.section == "4BSIT-2"

    @pytest.mark.asyncio
    async def test_account_removed_when_record_write_fails(
        self, service, admin_ctx, roster_store, identity_provider
    ):
        roster_store.create_error = NetworkError("Roster write failed")

        with pytest.raises(NetworkError):
            await service.create_student(_candidate(), admin_ctx)

        assert identity_provider.accounts == {}
        assert len(identity_provider.deleted) == 1


class TestLiveRoster:
    """Test that reads go through the shared roster source and writes update it."""

    @pytest.fixture
    def source(self, student_factory):
        source = RosterSource()
        source.load_bootstrap(
            [student_factory(id="live", student_id="22-00003-001", section="4BSIT-2", program="BSIT")]
        )
        return source

    @pytest.fixture
    def live_service(self, service, source):
        service.roster_source = source
        return service

    @pytest.mark.asyncio
    async def test_scoped_roster_reads_source(self, live_service, admin_ctx):
        roster = await live_service.scoped_roster(admin_ctx)
        assert [r.id for r in roster] == ["live"]

    @pytest.mark.asyncio
    async def test_import_uniqueness_uses_source(self, live_service, admin_ctx):
        content = (
            "Student Number,First Name,Last Name,Email,Program,Section\n"
            "22-00003-001,Ben,Cruz,ben@school.edu.ph,BSIT,4BSIT-2\n"
        ).encode()

        result = await live_service.import_csv(content, admin_ctx)

        assert result.success_count == 0
        assert result.errors[0].kind.value == "duplicate_in_roster"

    @pytest.mark.asyncio
    async def test_writes_are_applied_to_source(self, live_service, source, admin_ctx, roster_store):
        created = await live_service.create_student(_candidate(), admin_ctx)
        assert source.get(created.id) is not None

        roster_store.records["live"] = source.get("live")
        hired = await live_service.set_hired("live", True, admin_ctx)
        assert source.get("live").status is True
        assert source.get("live").version == hired.version

        await live_service.delete_student("live", admin_ctx)
        assert source.get("live") is None
