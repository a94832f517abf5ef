from typing import Any, AsyncIterator, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import Student
from app.db.session import AsyncSessionLocal
from app.providers.change_feed import ChangeFeed, roster_feed
from app.providers.normalizers import normalize_strings
from app.providers.retry import with_retry
from app.schemas.roster_schemas import CreatedBy, RosterSnapshot, StudentDraft, StudentRecord
from app.services.roster.interfaces import RosterStore
from app.utils.errors import ConflictError, NetworkError, NotFoundError
from app.utils.logging import get_logger

logger = get_logger()

# Columns a patch may touch; identity and bookkeeping columns are excluded
MUTABLE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "email",
        "section",
        "program",
        "college",
        "contact",
        "company_name",
        "location_preferences",
        "status",
        "is_blocked",
    }
)


def student_to_record(student: Student) -> StudentRecord:
    created_by = None
    if isinstance(student.created_by, dict) and student.created_by.get("username"):
        created_by = CreatedBy.model_validate(student.created_by)

    return StudentRecord(
        id=student.id,
        student_id=student.student_id,
        first_name=student.first_name,
        last_name=student.last_name,
        email=student.email,
        section=student.section,
        program=student.program,
        college=student.college,
        contact=student.contact,
        company_name=student.company_name,
        location_preferences=normalize_strings(student.location_preferences),
        status=bool(student.status),
        is_blocked=bool(student.is_blocked),
        external_account_id=student.external_account_id,
        created_by=created_by,
        created_at=student.created_at,
        updated_at=student.updated_at,
        version=student.version or 1,
    )


class SqlRosterStore(RosterStore):
    """Roster backed by the students table, publishing a snapshot after every committed write."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        feed: ChangeFeed = roster_feed,
    ):
        self.session_factory = session_factory
        self.feed = feed

    async def _read_all(self) -> List[StudentRecord]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(Student).order_by(Student.last_name, Student.first_name)
                )
                return [student_to_record(s) for s in result.scalars().all()]
        except OperationalError as e:
            raise NetworkError(f"Roster read failed: {e.orig}") from e

    async def list_all(self) -> List[StudentRecord]:
        return await with_retry(self._read_all, "Roster list")

    async def _snapshot(self) -> RosterSnapshot:
        version = self.feed.version
        return RosterSnapshot(version=version, records=await self.list_all())

    def subscribe(self) -> AsyncIterator[RosterSnapshot]:
        return self.feed.subscribe(self._snapshot)

    async def _publish(self) -> None:
        if not self.feed.subscriber_count:
            self.feed.next_version()
            return
        records = await self.list_all()
        self.feed.publish(RosterSnapshot(version=self.feed.next_version(), records=records))

    async def _read_one(self, record_id: str) -> Optional[StudentRecord]:
        try:
            async with self.session_factory() as db:
                student = await db.get(Student, record_id)
                return student_to_record(student) if student else None
        except OperationalError as e:
            raise NetworkError(f"Roster read failed: {e.orig}") from e

    async def get_one(self, record_id: str) -> Optional[StudentRecord]:
        return await with_retry(lambda: self._read_one(record_id), "Roster get")

    async def create(self, draft: StudentDraft, record_id: Optional[str] = None) -> str:
        values = draft.model_dump(exclude={"created_by", "location_preferences"})
        student = Student(
            **values,
            location_preferences=normalize_strings(draft.location_preferences),
            created_by=draft.created_by.model_dump(mode="json") if draft.created_by else None,
            version=1,
        )
        if record_id:
            student.id = record_id

        try:
            async with self.session_factory() as db:
                db.add(student)
                await db.commit()
                new_id = student.id
        except IntegrityError as e:
            raise ConflictError(
                f"Student ID {draft.student_id} already exists", "DUPLICATE_IN_ROSTER"
            ) from e
        except OperationalError as e:
            raise NetworkError(f"Roster write failed: {e.orig}") from e

        await self._publish()
        return new_id

    async def update(self, record_id: str, patch: Mapping[str, Any]) -> StudentRecord:
        unknown = set(patch) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be patched: {sorted(unknown)}")

        try:
            async with self.session_factory() as db:
                student = await db.get(Student, record_id)
                if student is None:
                    raise NotFoundError(f"Student {record_id} not found", "STUDENT_NOT_FOUND")
                for field, value in patch.items():
                    if field == "location_preferences":
                        value = normalize_strings(value)
                    setattr(student, field, value)
                student.version = (student.version or 1) + 1
                await db.commit()
                await db.refresh(student)
                record = student_to_record(student)
        except OperationalError as e:
            raise NetworkError(f"Roster write failed: {e.orig}") from e

        await self._publish()
        return record

    async def delete(self, record_id: str) -> None:
        try:
            async with self.session_factory() as db:
                student = await db.get(Student, record_id)
                if student is None:
                    raise NotFoundError(f"Student {record_id} not found", "STUDENT_NOT_FOUND")
                await db.delete(student)
                await db.commit()
        except OperationalError as e:
            raise NetworkError(f"Roster write failed: {e.orig}") from e

        logger.debug(f"Student row {record_id} removed")
        await self._publish()
