from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from app.db.models import AdminRole, ApprovalStatus, NotificationTargetType
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class CreatedBy(BaseModel):
    username: str
    role: AdminRole
    admin_id: str


class StudentRecord(BaseModel):
    """One row of the live roster as the core sees it."""

    id: str
    student_id: str
    first_name: str
    last_name: str
    email: str
    section: Optional[str] = None
    program: Optional[str] = None
    college: Optional[str] = None
    contact: Optional[str] = None
    company_name: Optional[str] = None
    location_preferences: List[str] = Field(default_factory=list)
    status: bool = False
    is_blocked: bool = False
    external_account_id: Optional[str] = None
    created_by: Optional[CreatedBy] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class StudentDraft(BaseModel):
    """Attributes for a roster record that does not exist yet."""

    student_id: str
    first_name: str
    last_name: str
    email: str
    section: Optional[str] = None
    program: Optional[str] = None
    college: Optional[str] = None
    contact: Optional[str] = None
    company_name: Optional[str] = None
    location_preferences: List[str] = Field(default_factory=list)
    status: bool = False
    is_blocked: bool = False
    external_account_id: Optional[str] = None
    created_by: Optional[CreatedBy] = None


class RosterSnapshot(BaseModel):
    """Full roster pushed by a subscription, ordered by a monotonic version."""

    version: int
    records: List[StudentRecord]


class ApprovalEntry(BaseModel):
    status: ApprovalStatus = ApprovalStatus.PENDING
    timestamp: Optional[datetime] = None
    reviewer: Optional[str] = None


# record id -> requirement type -> decision
ApprovalMap = Dict[str, Dict[str, ApprovalEntry]]


class ApprovalSnapshot(BaseModel):
    version: int
    approvals: Dict[str, Dict[str, ApprovalEntry]]


class ArchiveSnapshot(BaseModel):
    record: StudentRecord
    submitted_requirements: List[str] = Field(default_factory=list)
    deleted_at: datetime
    deleted_by: Optional[CreatedBy] = None


class RequirementState(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    SUBMITTED_PENDING = "submitted_pending"
    SUBMITTED_APPROVED = "submitted_approved"
    SUBMITTED_REJECTED = "submitted_rejected"


class StudentRequirementStatus(BaseModel):
    record_id: str
    states: Dict[str, RequirementState]
    extra_submitted: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def submitted_count(self) -> int:
        return sum(
            1 for state in self.states.values() if state != RequirementState.NOT_SUBMITTED
        )

    @property
    def approved_count(self) -> int:
        return sum(
            1
            for state in self.states.values()
            if state == RequirementState.SUBMITTED_APPROVED
        )

    @property
    def all_submitted(self) -> bool:
        return bool(self.states) and self.submitted_count == len(self.states)

    @property
    def all_approved(self) -> bool:
        return bool(self.states) and self.approved_count == len(self.states)


class RequirementTypeCounts(BaseModel):
    submitted: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class RequirementSummary(BaseModel):
    total_students: int = 0
    fully_submitted: int = 0
    fully_approved: int = 0
    failed_lookups: int = 0
    per_type: Dict[str, RequirementTypeCounts] = Field(default_factory=dict)


class RosterFilters(BaseModel):
    """Structured filters; every unset field matches all students."""

    program: Optional[str] = None
    email: Optional[str] = None
    contact: Optional[str] = None
    hired: Optional[str] = None
    location_preference: Optional[str] = None
    section: Optional[str] = None
    approved_requirement: Optional[str] = None
    blocked: Optional[str] = None


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortSpec(BaseModel):
    key: str = "last_name"
    direction: SortDirection = SortDirection.ASC


class RosterRow(BaseModel):
    student: StudentRecord
    requirements: Optional[StudentRequirementStatus] = None


class RosterPage(BaseModel):
    items: List[RosterRow]
    page: int
    per_page: int
    total: int
    total_pages: int


class ImportErrorKind(str, Enum):
    VALIDATION = "validation"
    DUPLICATE_IN_FILE = "duplicate_in_file"
    DUPLICATE_IN_ROSTER = "duplicate_in_roster"
    COLLABORATOR = "collaborator"


class ImportRowError(BaseModel):
    row: int
    student_id: Optional[str] = None
    kind: ImportErrorKind
    error: str


class ImportRowSuccess(BaseModel):
    row: int
    student_id: str
    record_id: str


class ImportBatchResult(BaseModel):
    total_rows: int = 0
    success_count: int = 0
    failure_count: int = 0
    successes: List[ImportRowSuccess] = Field(default_factory=list)
    errors: List[ImportRowError] = Field(default_factory=list)
    errors_truncated: int = 0
    # studentId -> row number of its first successful import in this batch
    first_seen_rows: Dict[str, int] = Field(default_factory=dict)

    @property
    def summary(self) -> str:
        text = f"Imported {self.success_count} of {self.total_rows} rows; {self.failure_count} failed."
        if self.errors_truncated:
            text += f" {self.errors_truncated} further errors not listed."
        return text


class NotificationTarget(BaseModel):
    type: NotificationTargetType
    section: Optional[str] = None
    student_ids: List[str] = Field(default_factory=list)


class NotificationReceipt(BaseModel):
    notification_id: str
    recipient_count: int
    pruned: int = 0


class SentNotification(BaseModel):
    """A notification still kept in the sender's history."""

    id: str
    message: str
    target: NotificationTarget
    recipient_count: int
    created_at: datetime


class BulkDeleteResult(BaseModel):
    deleted: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
