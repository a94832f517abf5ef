import re
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from app.db.models import AdminRole
from app.schemas.roster_schemas import StudentRecord

ScopePredicate = Callable[[StudentRecord], bool]

# "<year><programCode>-<sectionNumber>", e.g. 4BSIT-2
SECTION_PATTERN = re.compile(r"^\s*(\d+)\s*([A-Za-z]+)\s*-\s*([A-Za-z0-9]+)\s*$")


@dataclass(frozen=True)
class AdminContext:
    """Who is acting, and what part of the roster they may see."""

    admin_id: str
    username: str
    role: AdminRole
    sections: Tuple[str, ...] = field(default_factory=tuple)
    programs: Tuple[str, ...] = field(default_factory=tuple)
    college_code: Optional[str] = None

    @classmethod
    def build(
        cls,
        admin_id: str,
        username: str,
        role,
        sections: Optional[Iterable[str]] = None,
        programs: Optional[Iterable[str]] = None,
        college_code: Optional[str] = None,
    ) -> "AdminContext":
        try:
            resolved_role = role if isinstance(role, AdminRole) else AdminRole(str(role).lower())
        except ValueError:
            # Unknown roles fall back to the default (unrestricted) branch
            resolved_role = AdminRole.ADMIN
        return cls(
            admin_id=admin_id,
            username=username,
            role=resolved_role,
            sections=tuple(s.strip() for s in sections or () if s and s.strip()),
            programs=tuple(p.strip() for p in programs or () if p and p.strip()),
            college_code=college_code.strip() if college_code else None,
        )


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def program_code_from_section(section: Optional[str]) -> Optional[str]:
    """Extract the alphabetic program prefix: "4BSIT-2" -> "BSIT"."""
    match = SECTION_PATTERN.match(section or "")
    return match.group(2).upper() if match else None


def programs_for_college(
    college_code: Optional[str], program_college_map: Mapping[str, str]
) -> FrozenSet[str]:
    """Reverse lookup: every program whose mapped college equals the given code."""
    wanted = _normalize(college_code)
    if not wanted:
        return frozenset()
    return frozenset(
        _normalize(program)
        for program, college in program_college_map.items()
        if _normalize(college) == wanted and _normalize(program)
    )


class ScopeResolver:
    """Turns an AdminContext into a roster visibility predicate."""

    def __init__(self, program_college_map: Optional[Mapping[str, str]] = None):
        self.program_college_map = dict(program_college_map or {})

    def resolve(self, ctx: AdminContext) -> ScopePredicate:
        if ctx.role == AdminRole.ADVISER:
            return self._section_predicate(ctx.sections)

        if ctx.role == AdminRole.COORDINATOR:
            # Sections are the tighter scope and win over programs
            if ctx.sections:
                return self._section_predicate(ctx.sections)
            if ctx.programs:
                return self._program_predicate(frozenset(_normalize(p) for p in ctx.programs))
            return self._program_predicate(
                programs_for_college(ctx.college_code, self.program_college_map)
            )

        return lambda student: True

    def filter(self, ctx: AdminContext, records: Sequence[StudentRecord]) -> List[StudentRecord]:
        predicate = self.resolve(ctx)
        return [record for record in records if predicate(record)]

    @staticmethod
    def _section_predicate(sections: Sequence[str]) -> ScopePredicate:
        allowed = frozenset(_normalize(s) for s in sections if _normalize(s))
        if not allowed:
            return lambda student: False
        return lambda student: _normalize(student.section) in allowed

    @staticmethod
    def _program_predicate(programs: FrozenSet[str]) -> ScopePredicate:
        if not programs:
            return lambda student: False
        return lambda student: _normalize(student.program) in programs
