from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import DeletedStudent
from app.db.session import AsyncSessionLocal
from app.providers.normalizers import normalize_strings
from app.schemas.roster_schemas import ArchiveSnapshot, CreatedBy, StudentRecord
from app.services.roster.interfaces import ArchiveStore
from app.utils.errors import CollaboratorError, NetworkError


def _to_snapshot(row: DeletedStudent) -> ArchiveSnapshot:
    return ArchiveSnapshot(
        record=StudentRecord.model_validate(row.snapshot),
        submitted_requirements=normalize_strings(row.submitted_requirements),
        deleted_at=row.deleted_at,
        deleted_by=CreatedBy.model_validate(row.deleted_by) if row.deleted_by else None,
    )


class SqlArchiveStore(ArchiveStore):
    """deleted_students table; one row per archived record id, latest write wins."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def write(self, record_id: str, snapshot: ArchiveSnapshot) -> None:
        try:
            async with self.session_factory() as db:
                row = await db.get(DeletedStudent, record_id)
                if row is None:
                    row = DeletedStudent(id=record_id)
                    db.add(row)
                row.student_id = snapshot.record.student_id
                row.snapshot = snapshot.record.model_dump(mode="json")
                row.submitted_requirements = list(snapshot.submitted_requirements)
                row.deleted_at = snapshot.deleted_at
                row.deleted_by = (
                    snapshot.deleted_by.model_dump(mode="json") if snapshot.deleted_by else None
                )
                await db.commit()
        except OperationalError as e:
            raise NetworkError(f"Archive write failed: {e.orig}") from e
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Archive write failed: {e}") from e

    async def get(self, record_id: str) -> Optional[ArchiveSnapshot]:
        async with self.session_factory() as db:
            row = await db.get(DeletedStudent, record_id)
            return _to_snapshot(row) if row else None

    async def remove(self, record_id: str) -> None:
        async with self.session_factory() as db:
            row = await db.get(DeletedStudent, record_id)
            if row is not None:
                await db.delete(row)
                await db.commit()

    async def list(self) -> List[ArchiveSnapshot]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(DeletedStudent).order_by(DeletedStudent.deleted_at.desc())
            )
            return [_to_snapshot(row) for row in result.scalars().all()]
