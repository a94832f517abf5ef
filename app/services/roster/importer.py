import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Set

from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel
from app.schemas.roster_schemas import (
    CreatedBy,
    ImportBatchResult,
    ImportErrorKind,
    ImportRowError,
    ImportRowSuccess,
    StudentDraft,
    StudentRecord,
)
from app.services.roster.interfaces import IdentityProvider, RosterStore
from app.services.roster.scope import AdminContext, SECTION_PATTERN
from app.utils.errors import CollaboratorError, ConflictError, RosterValidationError
from app.utils.logging import get_logger

logger = get_logger()

STUDENT_ID_PATTERN = re.compile(r"^\d{2}-\d{5}-\d{3}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# First header found wins; spreadsheet exports vary in casing and wording
COLUMN_ALIASES: Dict[str, tuple] = {
    "student_id": ("Student Number", "studentNumber", "Student ID", "studentId", "Student Id"),
    "full_name": ("Name", "name", "Full Name"),
    "first_name": ("First Name", "firstName"),
    "last_name": ("Last Name", "lastName"),
    "email": ("Email", "email", "Institutional Email"),
    "program": ("Program", "program"),
    "section": ("Section", "section"),
    "college": ("College", "college"),
    "contact": ("Contact Number", "Contact", "contact"),
    "company_name": ("Company", "companyName"),
    "status": ("Status", "status"),
    "password": ("Password", "password"),
}

TRUTHY = {"yes", "true", "1", "y", "hired"}

# Header is row 1 in the spreadsheet
FIRST_DATA_ROW = 2


class PasswordPolicy(str, Enum):
    STUDENT_ID = "student_id"
    SHARED_DEFAULT = "shared_default"
    REQUIRED = "required"


@dataclass(frozen=True)
class ImportPolicy:
    email_domain: str = ".edu.ph"
    password_policy: PasswordPolicy = PasswordPolicy.STUDENT_ID
    default_password: str = ""
    min_password_length: int = 6
    max_reported_errors: int = 50


class CandidateStudent(BaseModel):
    # 0 for a student entered by hand rather than read from a file
    row: int = 0
    student_id: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    program: str = ""
    section: str = ""
    college: str = ""
    contact: str = ""
    company_name: str = ""
    status: bool = False
    password: Optional[str] = Field(default=None, repr=False)


def _pick(row: Mapping[str, str], field: str) -> str:
    for header in COLUMN_ALIASES[field]:
        value = row.get(header)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def parse_rows(rows: Iterable[Mapping[str, str]]) -> List[CandidateStudent]:
    """Map raw CSV dict rows to candidates; validation happens later, per row."""
    candidates = []
    for index, row in enumerate(rows):
        first_name = _pick(row, "first_name")
        last_name = _pick(row, "last_name")
        full_name = _pick(row, "full_name")
        if full_name and not first_name and not last_name:
            parts = full_name.split()
            first_name = parts[0]
            last_name = " ".join(parts[1:])

        candidates.append(
            CandidateStudent(
                row=index + FIRST_DATA_ROW,
                student_id=_pick(row, "student_id"),
                first_name=first_name,
                last_name=last_name,
                email=_pick(row, "email"),
                program=_pick(row, "program"),
                section=_pick(row, "section"),
                college=_pick(row, "college"),
                contact=_pick(row, "contact"),
                company_name=_pick(row, "company_name"),
                status=_pick(row, "status").lower() in TRUTHY,
                password=_pick(row, "password") or None,
            )
        )
    return candidates


class CsvImportReconciler:
    """
    Imports candidate students row by row, never aborting the batch.

    The identity account is created only after every check has passed, and is
    deleted again if the roster write that follows it fails.
    """

    def __init__(
        self,
        roster_store: RosterStore,
        identity_provider: IdentityProvider,
        policy: ImportPolicy = ImportPolicy(),
    ):
        self.roster_store = roster_store
        self.identity_provider = identity_provider
        self.policy = policy

    async def import_rows(
        self,
        rows: Iterable[Mapping[str, str]],
        ctx: AdminContext,
        existing: Optional[Iterable[StudentRecord]] = None,
    ) -> ImportBatchResult:
        return await self.import_candidates(parse_rows(rows), ctx, existing)

    async def import_candidates(
        self,
        candidates: List[CandidateStudent],
        ctx: AdminContext,
        existing: Optional[Iterable[StudentRecord]] = None,
    ) -> ImportBatchResult:
        if existing is None:
            existing = await self.roster_store.list_all()
        roster_ids: Set[str] = {record.student_id for record in existing}

        result = ImportBatchResult(total_rows=len(candidates))
        created_by = CreatedBy(username=ctx.username, role=ctx.role, admin_id=ctx.admin_id)

        for candidate in candidates:
            try:
                record_id = await self._admit(
                    candidate, result.first_seen_rows, roster_ids, created_by
                )
            except RosterValidationError as e:
                self._record_failure(result, candidate, ImportErrorKind.VALIDATION, e.message)
                continue
            except ConflictError as e:
                kind = (
                    ImportErrorKind.DUPLICATE_IN_FILE
                    if e.error_code == "DUPLICATE_IN_FILE"
                    else ImportErrorKind.DUPLICATE_IN_ROSTER
                )
                self._record_failure(result, candidate, kind, e.message)
                continue
            except CollaboratorError as e:
                self._record_failure(result, candidate, ImportErrorKind.COLLABORATOR, e.message)
                continue

            result.first_seen_rows[candidate.student_id] = candidate.row
            roster_ids.add(candidate.student_id)
            result.success_count += 1
            result.successes.append(
                ImportRowSuccess(
                    row=candidate.row, student_id=candidate.student_id, record_id=record_id
                )
            )

        logger.info(
            f"CSV import by {ctx.username}: {result.success_count} created, {result.failure_count} failed"
        )
        return result

    async def create_one(
        self,
        candidate: CandidateStudent,
        ctx: AdminContext,
        existing: Iterable[StudentRecord],
    ) -> str:
        """Same checks as a file row, but the first failure is raised to the caller."""
        roster_ids = {record.student_id for record in existing}
        created_by = CreatedBy(username=ctx.username, role=ctx.role, admin_id=ctx.admin_id)
        record_id = await self._admit(candidate, {}, roster_ids, created_by)
        logger.info(f"{ctx.username} added student {candidate.student_id}")
        return record_id

    async def _admit(
        self,
        candidate: CandidateStudent,
        first_seen_rows: Mapping[str, int],
        roster_ids: Set[str],
        created_by: CreatedBy,
    ) -> str:
        self._check_student_id(candidate)
        self._check_not_duplicate(candidate, first_seen_rows, roster_ids)
        email = self._check_fields(candidate)
        password = self._resolve_password(candidate)
        return await self._create(candidate, email, password, created_by)

    def _check_student_id(self, candidate: CandidateStudent) -> None:
        if not candidate.student_id:
            raise RosterValidationError("Student ID is required", field="studentId")
        if not STUDENT_ID_PATTERN.match(candidate.student_id):
            raise RosterValidationError(
                f"Student ID '{candidate.student_id}' must be in format NN-NNNNN-NNN",
                field="studentId",
            )

    def _check_not_duplicate(
        self,
        candidate: CandidateStudent,
        first_seen_rows: Mapping[str, int],
        roster_ids: Set[str],
    ) -> None:
        first_row = first_seen_rows.get(candidate.student_id)
        if first_row is not None:
            raise ConflictError(
                f"Duplicate student ID '{candidate.student_id}' in file (first imported on row {first_row})",
                "DUPLICATE_IN_FILE",
            )
        if candidate.student_id in roster_ids:
            raise ConflictError(
                f"Student ID '{candidate.student_id}' already exists in the roster",
                "DUPLICATE_IN_ROSTER",
            )

    def _check_fields(self, candidate: CandidateStudent) -> str:
        if not candidate.first_name or not candidate.last_name:
            raise RosterValidationError("First Name and Last Name are required", field="name")

        email = candidate.email.strip().lower()
        if not email:
            raise RosterValidationError("Email is required", field="email")
        if not EMAIL_PATTERN.match(email):
            raise RosterValidationError(f"Invalid email address '{candidate.email}'", field="email")
        if not email.split("@", 1)[1].endswith(self.policy.email_domain.lower()):
            raise RosterValidationError(
                f"Email must be an institutional address ending with {self.policy.email_domain}",
                field="email",
            )

        if not candidate.program:
            raise RosterValidationError("Program is required", field="program")
        if candidate.section and not SECTION_PATTERN.match(candidate.section):
            raise RosterValidationError(
                f"Section '{candidate.section}' must look like 4BSIT-2", field="section"
            )
        return email

    def _resolve_password(self, candidate: CandidateStudent) -> str:
        password = candidate.password
        if not password:
            if self.policy.password_policy == PasswordPolicy.STUDENT_ID:
                password = candidate.student_id
            elif self.policy.password_policy == PasswordPolicy.SHARED_DEFAULT:
                password = self.policy.default_password
            else:
                raise RosterValidationError("Password is required", field="password")

        if len(password) < self.policy.min_password_length:
            raise RosterValidationError(
                f"Password must be at least {self.policy.min_password_length} characters",
                field="password",
            )
        return password

    async def _create(
        self,
        candidate: CandidateStudent,
        email: str,
        password: str,
        created_by: CreatedBy,
    ) -> str:
        external_id = await self.identity_provider.create_account(email, password)
        draft = StudentDraft(
            student_id=candidate.student_id,
            first_name=candidate.first_name,
            last_name=candidate.last_name,
            email=email,
            section=candidate.section.upper() or None,
            program=candidate.program,
            college=candidate.college or None,
            contact=candidate.contact or None,
            company_name=candidate.company_name or None,
            status=candidate.status,
            external_account_id=external_id,
            created_by=created_by,
        )
        try:
            return await self.roster_store.create(draft)
        except Exception as e:
            await self._discard_account(external_id, candidate)
            if isinstance(e, (CollaboratorError, ConflictError)):
                raise
            raise CollaboratorError(f"Failed to save student record: {e}") from e

    async def _discard_account(self, external_id: str, candidate: CandidateStudent) -> None:
        try:
            await self.identity_provider.delete_account(external_id)
        except CollaboratorError as e:
            logger.error(
                f"Orphaned account {external_id} for student {candidate.student_id} could not be removed: {e.message}"
            )

    def _record_failure(
        self,
        result: ImportBatchResult,
        candidate: CandidateStudent,
        kind: ImportErrorKind,
        message: str,
    ) -> None:
        result.failure_count += 1
        logger.warning(f"Import row {candidate.row} rejected ({kind.value}): {message}")
        if len(result.errors) >= self.policy.max_reported_errors:
            result.errors_truncated += 1
            return
        result.errors.append(
            ImportRowError(
                row=candidate.row,
                student_id=candidate.student_id or None,
                kind=kind,
                error=message,
            )
        )
