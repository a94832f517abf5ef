import pytest

from app.db.models import AdminRole
from app.services.roster.scope import (
    AdminContext,
    ScopeResolver,
    program_code_from_section,
    programs_for_college,
)


@pytest.fixture
def roster(student_factory):
    return [
        student_factory(student_id="22-00001-001", section="4BSIT-1", program="BSIT"),
        student_factory(student_id="22-00001-002", section="4BSIT-2", program="BSIT"),
        student_factory(student_id="22-00001-003", section="4bsit-2 ", program="bsit"),
        student_factory(student_id="22-00001-004", section="3BSCS-1", program="BSCS"),
        student_factory(student_id="22-00001-005", section="2BSA-1", program="BSA"),
        student_factory(student_id="22-00001-006", section=None, program=None),
    ]


def _ids(records):
    return sorted(r.student_id for r in records)


class TestAdviserScope:
    """Test adviser section matching."""

    def test_only_assigned_section_visible(self, scope_resolver, adviser_ctx, roster):
        visible = scope_resolver.filter(adviser_ctx, roster)
        assert _ids(visible) == ["22-00001-002", "22-00001-003"]

    def test_empty_section_list_sees_nobody(self, scope_resolver, roster):
        ctx = AdminContext.build("a", "adviser.none", AdminRole.ADVISER, sections=[])
        assert scope_resolver.filter(ctx, roster) == []

    def test_blank_sections_count_as_empty(self, scope_resolver, roster):
        ctx = AdminContext.build("a", "adviser.blank", AdminRole.ADVISER, sections=["", "  "])
        assert scope_resolver.filter(ctx, roster) == []

    def test_programs_are_ignored_for_advisers(self, scope_resolver, roster):
        ctx = AdminContext.build("a", "adviser", AdminRole.ADVISER, programs=["BSIT"])
        assert scope_resolver.filter(ctx, roster) == []


class TestCoordinatorScope:
    """Test coordinator precedence: sections, then programs, then college."""

    def test_sections_take_precedence_over_programs(self, scope_resolver, roster):
        ctx = AdminContext.build(
            "c", "coord", AdminRole.COORDINATOR, sections=["3BSCS-1"], programs=["BSIT"]
        )
        assert _ids(scope_resolver.filter(ctx, roster)) == ["22-00001-004"]

    def test_explicit_programs(self, scope_resolver, roster):
        ctx = AdminContext.build("c", "coord", AdminRole.COORDINATOR, programs=[" bsit "])
        assert _ids(scope_resolver.filter(ctx, roster)) == [
            "22-00001-001",
            "22-00001-002",
            "22-00001-003",
        ]

    def test_college_reverse_lookup(self, scope_resolver, coordinator_ctx, roster):
        visible = scope_resolver.filter(coordinator_ctx, roster)
        assert _ids(visible) == [
            "22-00001-001",
            "22-00001-002",
            "22-00001-003",
            "22-00001-004",
        ]

    def test_unknown_college_sees_nobody(self, scope_resolver, roster):
        ctx = AdminContext.build("c", "coord", AdminRole.COORDINATOR, college_code="CENG")
        assert scope_resolver.filter(ctx, roster) == []

    def test_no_assignment_sees_nobody(self, scope_resolver, roster):
        ctx = AdminContext.build("c", "coord", AdminRole.COORDINATOR)
        assert scope_resolver.filter(ctx, roster) == []


class TestAdminScope:
    def test_admin_sees_everyone(self, scope_resolver, admin_ctx, roster):
        assert len(scope_resolver.filter(admin_ctx, roster)) == len(roster)

    def test_unknown_role_falls_back_to_unrestricted(self, scope_resolver, roster):
        ctx = AdminContext.build("x", "someone", "superuser")
        assert ctx.role == AdminRole.ADMIN
        assert len(scope_resolver.filter(ctx, roster)) == len(roster)


class TestScopeHelpers:
    @pytest.mark.parametrize(
        "section,expected",
        [("4BSIT-2", "BSIT"), ("3bscs-1", "BSCS"), (" 1 BSA - 3 ", "BSA"), ("BSIT", None), (None, None)],
    )
    def test_program_code_from_section(self, section, expected):
        assert program_code_from_section(section) == expected

    def test_programs_for_college(self):
        mapping = {"BSIT": "CICS", "BSCS": "cics", "BSA": "COA"}
        assert programs_for_college("CICS", mapping) == frozenset({"BSIT", "BSCS"})
        assert programs_for_college(None, mapping) == frozenset()
