import asyncio
import uuid
from typing import AsyncGenerator, AsyncIterator, Dict, List, Optional

import pytest
import pytest_asyncio
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config.settings import settings
from app.db.models import AdminRole, Base
from app.providers.change_feed import ChangeFeed
from app.schemas.roster_schemas import (
    ApprovalEntry,
    ApprovalSnapshot,
    ArchiveSnapshot,
    NotificationTarget,
    RosterSnapshot,
    SentNotification,
    StudentDraft,
    StudentRecord,
)
from app.services.roster.interfaces import (
    ApprovalStore,
    ArchiveStore,
    IdentityProvider,
    NotificationSink,
    RequirementFileStore,
    RosterStore,
)
from app.services.roster.scope import AdminContext, ScopeResolver
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import EmailInUseError, NotFoundError


# Test database setup
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PROGRAM_COLLEGE_MAP = {
    "BSIT": "CICS",
    "BSCS": "CICS",
    "BSA": "COA",
}


def make_student(**overrides) -> StudentRecord:
    """Roster record factory with sensible defaults."""
    defaults = dict(
        id=str(uuid.uuid4()),
        student_id="22-00001-001",
        first_name="Juan",
        last_name="Dela Cruz",
        email="juan.delacruz@school.edu.ph",
        section="4BSIT-2",
        program="BSIT",
        college="CICS",
    )
    defaults.update(overrides)
    return StudentRecord(**defaults)


class InMemoryRosterStore(RosterStore):
    def __init__(self, records: Optional[List[StudentRecord]] = None):
        self.records: Dict[str, StudentRecord] = {r.id: r for r in records or []}
        self.version = 0
        self.create_error: Optional[Exception] = None
        self.delete_calls: List[str] = []

    async def subscribe(self) -> AsyncIterator[RosterSnapshot]:
        yield RosterSnapshot(version=self.version, records=list(self.records.values()))

    async def list_all(self) -> List[StudentRecord]:
        return list(self.records.values())

    async def create(self, draft: StudentDraft, record_id: Optional[str] = None) -> str:
        if self.create_error is not None:
            raise self.create_error
        record_id = record_id or str(uuid.uuid4())
        self.records[record_id] = StudentRecord.model_validate(
            {**draft.model_dump(), "id": record_id}
        )
        self.version += 1
        return record_id

    async def update(self, record_id: str, patch) -> StudentRecord:
        current = self.records.get(record_id)
        if current is None:
            raise NotFoundError(f"Student {record_id} not found")
        updated = current.model_copy(update={**patch, "version": current.version + 1})
        self.records[record_id] = updated
        self.version += 1
        return updated

    async def delete(self, record_id: str) -> None:
        self.delete_calls.append(record_id)
        self.records.pop(record_id, None)
        self.version += 1

    async def get_one(self, record_id: str) -> Optional[StudentRecord]:
        return self.records.get(record_id)


class InMemoryArchiveStore(ArchiveStore):
    def __init__(self):
        self.snapshots: Dict[str, ArchiveSnapshot] = {}
        self.write_error: Optional[Exception] = None

    async def write(self, record_id: str, snapshot: ArchiveSnapshot) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.snapshots[record_id] = snapshot

    async def get(self, record_id: str) -> Optional[ArchiveSnapshot]:
        return self.snapshots.get(record_id)

    async def remove(self, record_id: str) -> None:
        self.snapshots.pop(record_id, None)

    async def list(self) -> List[ArchiveSnapshot]:
        return list(self.snapshots.values())


class FakeRequirementFileStore(RequirementFileStore):
    """Folder listings per record id, with optional failures and artificial latency."""

    def __init__(
        self,
        listings: Optional[Dict[str, Dict[str, int]]] = None,
        failures: Optional[Dict[str, Exception]] = None,
        delay: float = 0,
    ):
        self.listings = listings or {}
        self.failures = failures or {}
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_submitted_types(self, record_id: str) -> Dict[str, int]:
        self.calls.append(record_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if record_id in self.failures:
                raise self.failures[record_id]
            return dict(self.listings.get(record_id, {}))
        finally:
            self.in_flight -= 1


class InMemoryApprovalStore(ApprovalStore):
    def __init__(self, approvals: Optional[Dict[str, Dict[str, ApprovalEntry]]] = None):
        self.approvals = approvals or {}

    async def subscribe(self) -> AsyncIterator[ApprovalSnapshot]:
        yield ApprovalSnapshot(version=0, approvals=self.approvals)

    async def list_all(self) -> Dict[str, Dict[str, ApprovalEntry]]:
        return {key: dict(value) for key, value in self.approvals.items()}

    async def set_decision(self, record_id: str, requirement_type: str, entry: ApprovalEntry) -> None:
        self.approvals.setdefault(record_id, {})[requirement_type] = entry


class FakeIdentityProvider(IdentityProvider):
    def __init__(self):
        self.accounts: Dict[str, str] = {}
        self.deleted: List[str] = []
        self.create_calls: List[str] = []

    async def create_account(self, email: str, password: str) -> str:
        self.create_calls.append(email)
        if email in self.accounts:
            raise EmailInUseError(f"Email {email} is already in use")
        external_id = str(uuid.uuid4())
        self.accounts[email] = external_id
        return external_id

    async def delete_account(self, external_id: str) -> None:
        self.deleted.append(external_id)
        self.accounts = {e: i for e, i in self.accounts.items() if i != external_id}


class InMemoryNotificationSink(NotificationSink):
    def __init__(self):
        self.sent: List[dict] = []

    async def send(self, sender_id: str, message: str, target: NotificationTarget, recipient_ids: List[str]) -> str:
        notification_id = str(uuid.uuid4())
        self.sent.append(
            {
                "id": notification_id,
                "sender_id": sender_id,
                "message": message,
                "target": target,
                "recipients": recipient_ids,
            }
        )
        return notification_id

    async def prune(self, sender_id: str, keep: int) -> int:
        mine = [n for n in self.sent if n["sender_id"] == sender_id]
        stale = mine[: max(len(mine) - keep, 0)]
        self.sent = [n for n in self.sent if n not in stale]
        return len(stale)

    async def list_for_sender(self, sender_id: str) -> List[SentNotification]:
        mine = [n for n in self.sent if n["sender_id"] == sender_id]
        return [
            SentNotification(
                id=n["id"],
                message=n["message"],
                target=n["target"],
                recipient_count=len(n["recipients"]),
                created_at=naive_utc_now(),
            )
            for n in reversed(mine)
        ]


# Admin contexts
@pytest.fixture
def admin_ctx() -> AdminContext:
    return AdminContext.build("admin-1", "superadmin", AdminRole.ADMIN)


@pytest.fixture
def adviser_ctx() -> AdminContext:
    return AdminContext.build("adviser-1", "adviser.4bsit2", AdminRole.ADVISER, sections=["4BSIT-2"])


@pytest.fixture
def coordinator_ctx() -> AdminContext:
    return AdminContext.build("coord-1", "coordinator.cics", AdminRole.COORDINATOR, college_code="CICS")


@pytest.fixture
def scope_resolver() -> ScopeResolver:
    return ScopeResolver(PROGRAM_COLLEGE_MAP)


# Collaborator fakes
@pytest.fixture
def roster_store() -> InMemoryRosterStore:
    return InMemoryRosterStore()


@pytest.fixture
def archive_store() -> InMemoryArchiveStore:
    return InMemoryArchiveStore()


@pytest.fixture
def file_store() -> FakeRequirementFileStore:
    return FakeRequirementFileStore()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


# Database fixtures
@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def broken_session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Sessions on a database with no tables, so every statement raises OperationalError."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(settings, "COLLABORATOR_RETRY_DELAY_SECONDS", 0)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed("test")


@pytest.fixture
def fast_crypt_context() -> CryptContext:
    """bcrypt with minimum rounds so hashing does not dominate test time."""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=4)


@pytest.fixture
def student_factory():
    return make_student


@pytest.fixture
def approval_store() -> InMemoryApprovalStore:
    return InMemoryApprovalStore()


@pytest.fixture
def notification_sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()
