from typing import List, Optional

from pydantic import Field

from app.db.models import ApprovalStatus
from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel
from app.schemas.roster_schemas import NotificationTarget
from app.services.roster.importer import CandidateStudent


class BulkDeleteRequest(BaseModel):
    """Request schema for deleting several students at once"""

    record_ids: List[str] = Field(..., min_length=1, description="Student record IDs")


class HireStatusRequest(BaseModel):
    hired: bool = Field(..., description="Whether the student has been accepted/hired")


class BlockStatusRequest(BaseModel):
    blocked: bool = Field(..., description="Whether the student is blocked")


class ReviewRequirementRequest(BaseModel):
    """Approve, reject or reset one requirement of one student"""

    requirement_type: str = Field(..., min_length=1, description="Requirement type or alias")
    status: ApprovalStatus = Field(..., description="pending, approved/accepted, rejected/denied")


class SendNotificationRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    target: NotificationTarget


class StudentCreateRequest(BaseModel):
    """
    Add a single student

    Either give ``section`` directly ("4BSIT-2") or ``yearLevel`` and
    ``sectionNumber``, which are combined with the program code.
    """

    student_id: str = Field(..., description="NN-NNNNN-NNN")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., description="Institutional email")
    program: str = Field(..., min_length=1, description="Program code, e.g. BSIT")
    college: str = Field(..., min_length=1, description="College code, e.g. CICS")
    section: Optional[str] = None
    year_level: Optional[int] = Field(None, ge=1, le=6)
    section_number: Optional[str] = None
    contact: Optional[str] = None
    company_name: Optional[str] = None
    password: Optional[str] = Field(None, description="Defaults to the import password policy")

    def resolved_section(self) -> str:
        if self.section and self.section.strip():
            return self.section.strip().upper()
        if self.year_level and self.section_number and self.section_number.strip():
            return f"{self.year_level}{self.program.strip().upper()}-{self.section_number.strip()}"
        return ""

    def to_candidate(self) -> CandidateStudent:
        return CandidateStudent(
            student_id=self.student_id.strip(),
            first_name=self.first_name.strip(),
            last_name=self.last_name.strip(),
            email=self.email.strip(),
            program=self.program.strip().upper(),
            section=self.resolved_section(),
            college=self.college.strip().upper(),
            contact=(self.contact or "").strip(),
            company_name=(self.company_name or "").strip(),
            password=self.password or None,
        )
