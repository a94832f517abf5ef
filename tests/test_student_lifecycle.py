import pytest

from app.providers.change_feed import ChangeFeed
from app.providers.sql_roster_store import SqlRosterStore
from app.services.roster.checklist import CURRICULUM_VITAE, MOA
from app.services.roster.lifecycle import StudentLifecycle
from app.utils.errors import (
    AuthorizationError,
    ConflictError,
    ConsistencyGuardError,
    NetworkError,
    NotFoundError,
)


@pytest.fixture
def lifecycle(roster_store, archive_store, file_store, scope_resolver):
    return StudentLifecycle(roster_store, archive_store, file_store, scope_resolver)


@pytest.fixture
def student(roster_store, student_factory):
    record = student_factory(id="rec-1", student_id="22-00001-001")
    roster_store.records[record.id] = record
    return record


class TestArchiveThenDelete:
    """Test that a live record is only removed after its archive is written."""

    @pytest.mark.asyncio
    async def test_archive_failure_keeps_live_record(
        self, lifecycle, admin_ctx, student, roster_store, archive_store
    ):
        archive_store.write_error = NetworkError("archive store unreachable")

        with pytest.raises(ConsistencyGuardError):
            await lifecycle.delete(student.id, admin_ctx)

        assert roster_store.records[student.id] == student
        assert roster_store.delete_calls == []
        assert archive_store.snapshots == {}

    @pytest.mark.asyncio
    async def test_unexpected_archive_error_is_also_guarded(
        self, lifecycle, admin_ctx, student, roster_store, archive_store
    ):
        archive_store.write_error = RuntimeError("disk full")
        with pytest.raises(ConsistencyGuardError):
            await lifecycle.delete(student.id, admin_ctx)
        assert student.id in roster_store.records

    @pytest.mark.asyncio
    async def test_file_listing_failure_keeps_live_record(
        self, lifecycle, admin_ctx, student, roster_store, file_store
    ):
        file_store.failures = {student.id: NetworkError("storage unreachable")}

        with pytest.raises(ConsistencyGuardError):
            await lifecycle.delete(student.id, admin_ctx)

        assert roster_store.delete_calls == []

    @pytest.mark.asyncio
    async def test_snapshot_contents(
        self, lifecycle, admin_ctx, student, roster_store, archive_store, file_store
    ):
        file_store.listings = {student.id: {"resume": 2, "MOA": 1, "Company ID": 1, "Medical Certificate": 0}}

        snapshot = await lifecycle.delete(student.id, admin_ctx)

        assert roster_store.delete_calls == [student.id]
        assert archive_store.snapshots[student.id] is snapshot
        assert snapshot.record == student
        assert snapshot.submitted_requirements == ["Company ID", CURRICULUM_VITAE, MOA]
        assert snapshot.deleted_by.username == admin_ctx.username

    @pytest.mark.asyncio
    async def test_missing_student(self, lifecycle, admin_ctx):
        with pytest.raises(NotFoundError):
            await lifecycle.delete("nope", admin_ctx)

    @pytest.mark.asyncio
    async def test_out_of_scope_student(self, lifecycle, roster_store, student_factory, adviser_ctx):
        other = student_factory(id="rec-2", section="3BSCS-1", program="BSCS")
        roster_store.records[other.id] = other

        with pytest.raises(AuthorizationError):
            await lifecycle.delete(other.id, adviser_ctx)
        assert other.id in roster_store.records


class TestBulkDelete:
    @pytest.mark.asyncio
    async def test_partial_failures_are_reported(
        self, lifecycle, admin_ctx, roster_store, file_store, student_factory
    ):
        for record_id in ("a", "b", "c"):
            roster_store.records[record_id] = student_factory(id=record_id)
        file_store.failures = {"b": NetworkError("timeout")}

        result = await lifecycle.delete_many(["a", "b", "c", "missing"], admin_ctx)

        assert result.deleted == ["a", "c"]
        assert set(result.failed) == {"b", "missing"}
        assert "b" in roster_store.records

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_database_outage_fails_each_item(
        self, broken_session_factory, archive_store, file_store, scope_resolver, admin_ctx, no_retry_delay
    ):
        store = SqlRosterStore(broken_session_factory, feed=ChangeFeed("test"))
        lifecycle = StudentLifecycle(store, archive_store, file_store, scope_resolver)

        result = await lifecycle.delete_many(["a", "b"], admin_ctx)

        assert result.deleted == []
        assert set(result.failed) == {"a", "b"}
        assert archive_store.snapshots == {}


class TestRestore:
    @pytest.mark.asyncio
    async def test_restore_round_trip(self, lifecycle, admin_ctx, student, roster_store, archive_store):
        await lifecycle.delete(student.id, admin_ctx)

        restored = await lifecycle.restore(student.id, admin_ctx)

        assert restored.id == student.id
        assert restored.student_id == student.student_id
        assert restored.email == student.email
        assert archive_store.snapshots == {}

    @pytest.mark.asyncio
    async def test_restore_conflicts_with_live_student_id(
        self, lifecycle, admin_ctx, student, roster_store, archive_store, student_factory
    ):
        await lifecycle.delete(student.id, admin_ctx)
        roster_store.records["new"] = student_factory(id="new", student_id=student.student_id)

        with pytest.raises(ConflictError):
            await lifecycle.restore(student.id, admin_ctx)
        assert student.id in archive_store.snapshots

    @pytest.mark.asyncio
    async def test_restore_unknown_archive(self, lifecycle, admin_ctx):
        with pytest.raises(NotFoundError):
            await lifecycle.restore("ghost", admin_ctx)

    @pytest.mark.asyncio
    async def test_list_archived_is_scoped_and_newest_first(
        self, lifecycle, admin_ctx, adviser_ctx, roster_store, student_factory
    ):
        roster_store.records["a"] = student_factory(id="a", student_id="22-00001-001")
        roster_store.records["b"] = student_factory(id="b", student_id="22-00001-002")
        roster_store.records["c"] = student_factory(
            id="c", student_id="22-00001-003", section="3BSCS-1", program="BSCS"
        )
        for record_id in ("a", "b", "c"):
            await lifecycle.delete(record_id, admin_ctx)

        everyone = await lifecycle.list_archived(admin_ctx)
        mine = await lifecycle.list_archived(adviser_ctx)

        assert len(everyone) == 3
        assert [s.deleted_at for s in everyone] == sorted((s.deleted_at for s in everyone), reverse=True)
        assert {s.record.id for s in mine} == {"a", "b"}


class TestStatusFlags:
    @pytest.mark.asyncio
    async def test_set_hired_and_blocked(self, lifecycle, admin_ctx, student):
        hired = await lifecycle.set_hired(student.id, True, admin_ctx)
        blocked = await lifecycle.set_blocked(student.id, True, admin_ctx)

        assert hired.status is True
        assert blocked.is_blocked is True
        assert blocked.version == student.version + 2

    @pytest.mark.asyncio
    async def test_out_of_scope_flag_change(self, lifecycle, coordinator_ctx, roster_store, student_factory):
        other = student_factory(id="coa", section="2BSA-1", program="BSA")
        roster_store.records[other.id] = other
        with pytest.raises(AuthorizationError):
            await lifecycle.set_hired(other.id, True, coordinator_ctx)
