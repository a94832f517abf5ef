from typing import List, Optional
from datetime import datetime
import enum
import uuid

from sqlalchemy import (
    JSON,
    String,
    Boolean,
    Integer,
    Text,
    Enum,
    Index,
    func,
    UniqueConstraint,
    DateTime,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


# Enums
class AdminRole(enum.Enum):
    ADVISER = "adviser"
    COORDINATOR = "coordinator"
    ADMIN = "admin"


class ApprovalStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DENIED = "denied"


class NotificationTargetType(enum.Enum):
    ALL = "all"
    SECTION = "section"
    STUDENTS = "students"


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


# Models
class Admin(Base, AuditMixin):
    __tablename__ = "admins"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    username: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    role: Mapped[AdminRole] = mapped_column(Enum(AdminRole), nullable=False)
    # Adviser/coordinator assignment; sections like "4BSIT-2", programs like "BSIT"
    sections: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    programs: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    college_code: Mapped[Optional[str]] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("idx_admins_username", "username"),)


class Program(Base, AuditMixin):
    __tablename__ = "programs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    program_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    program_name: Mapped[str] = mapped_column(String(200), nullable=False)
    college_code: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (Index("idx_programs_college_code", "college_code"),)


class Student(Base, AuditMixin):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    # Institutional number, NN-NNNNN-NNN
    student_id: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    section: Mapped[Optional[str]] = mapped_column(String(50))
    program: Mapped[Optional[str]] = mapped_column(String(200))
    college: Mapped[Optional[str]] = mapped_column(String(200))
    contact: Mapped[Optional[str]] = mapped_column(String(50))
    company_name: Mapped[Optional[str]] = mapped_column(String(200))
    # Stored as list; legacy rows may hold a dict
    location_preferences: Mapped[Optional[list]] = mapped_column(JSON)
    status: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    external_account_id: Mapped[Optional[str]] = mapped_column(String(36))
    created_by: Mapped[Optional[dict]] = mapped_column(JSON)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    __table_args__ = (
        Index("idx_students_student_id", "student_id"),
        Index("idx_students_section", "section"),
        Index("idx_students_program", "program"),
    )


class DeletedStudent(Base):
    """Archive snapshot written before a live student row is removed."""

    __tablename__ = "deleted_students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(20), nullable=False)
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    submitted_requirements: Mapped[Optional[list]] = mapped_column(JSON)
    deleted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    deleted_by: Mapped[Optional[dict]] = mapped_column(JSON)

    __table_args__ = (Index("idx_deleted_students_deleted_at", "deleted_at"),)


class RequirementApproval(Base, AuditMixin):
    __tablename__ = "requirement_approvals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    # Opaque student record id (students.id), not the institutional number
    student_record_id: Mapped[str] = mapped_column(String(36), nullable=False)
    requirement_type: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False
    )
    reviewer: Mapped[Optional[str]] = mapped_column(String(320))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        UniqueConstraint(
            "student_record_id",
            "requirement_type",
            name="uq_requirement_approvals_student_type",
        ),
        Index("idx_requirement_approvals_student", "student_record_id"),
    )


class UserAccount(Base, AuditMixin):
    """Login identity created for each imported or added student."""

    __tablename__ = "user_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    sender_id: Mapped[str] = mapped_column(String(36), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    target_type: Mapped[NotificationTargetType] = mapped_column(
        Enum(NotificationTargetType), nullable=False
    )
    target_section: Mapped[Optional[str]] = mapped_column(String(50))
    recipient_ids: Mapped[List[str]] = mapped_column(JSON, default=list)
    # Monotonic per-process ordering; timestamps can tie within one second
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_notifications_sender_created", "sender_id", "created_at"),
    )
