import asyncio
import math
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from app.schemas.roster_schemas import (
    RosterFilters,
    RosterPage,
    RosterRow,
    SortDirection,
    SortSpec,
    StudentRecord,
    StudentRequirementStatus,
)
from app.services.roster.reconciler import all_requirements_approved

DEFAULT_PAGE_SIZE = 10

SEARCH_FIELDS = ("first_name", "last_name", "student_id", "program", "section", "email")


def _lower(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _contains(haystack: Optional[str], needle: Optional[str]) -> bool:
    needle = _lower(needle)
    return not needle or needle in _lower(haystack)


def parse_yes_no(value: Optional[str]) -> Optional[bool]:
    """Tri-state filter value: None/"" = unset, "Yes" = True, "No" = False."""
    normalized = _lower(value)
    if normalized in ("", "all", "any"):
        return None
    if normalized in ("yes", "true", "1"):
        return True
    if normalized in ("no", "false", "0"):
        return False
    raise ValueError(f"Expected Yes or No, got {value!r}")


def matches_query(student: StudentRecord, query: Optional[str]) -> bool:
    query = _lower(query)
    if not query:
        return True
    full_name = f"{student.first_name} {student.last_name}"
    candidates = [full_name] + [getattr(student, name) for name in SEARCH_FIELDS]
    return any(query in _lower(value) for value in candidates)


def matches_filters(
    student: StudentRecord,
    filters: RosterFilters,
    requirement_status: Optional[StudentRequirementStatus],
) -> bool:
    if not _contains(student.program, filters.program):
        return False
    if not _contains(student.email, filters.email):
        return False
    if not _contains(student.contact, filters.contact):
        return False
    if not _contains(student.section, filters.section):
        return False

    location = _lower(filters.location_preference)
    if location and location not in (_lower(p) for p in student.location_preferences):
        return False

    hired = parse_yes_no(filters.hired)
    if hired is not None and student.status != hired:
        return False

    blocked = parse_yes_no(filters.blocked)
    if blocked is not None and student.is_blocked != blocked:
        return False

    approved = parse_yes_no(filters.approved_requirement)
    if approved is not None and all_requirements_approved(requirement_status) != approved:
        return False

    return True


def sort_value(student: StudentRecord, key: str) -> str:
    value: Any = getattr(student, key, None)
    if value is None:
        return ""
    if isinstance(value, (list, tuple, set)):
        return ", ".join(str(item) for item in value).lower()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value).lower()


def resolve_sort_key(key: str) -> str:
    """Accept camelCase keys from the dashboard as well as field names."""
    if key in StudentRecord.model_fields:
        return key
    for name, field in StudentRecord.model_fields.items():
        if field.alias == key:
            return name
    raise ValueError(f"Unknown sort key: {key}")


class RosterFilterEngine:
    """
    Pure function of (roster, debounced query, filters, reconciliation state).

    Nothing is cached between calls; identical inputs give identical pages.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.page_size = page_size

    def apply(
        self,
        roster: Sequence[StudentRecord],
        query: Optional[str] = None,
        filters: Optional[RosterFilters] = None,
        reconciliation: Optional[Mapping[str, StudentRequirementStatus]] = None,
        sort: Optional[SortSpec] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> RosterPage:
        filters = filters or RosterFilters()
        reconciliation = reconciliation or {}
        sort = sort or SortSpec()
        per_page = per_page or self.page_size
        if per_page < 1:
            raise ValueError("per_page must be at least 1")

        visible = [
            student
            for student in roster
            if matches_query(student, query)
            and matches_filters(student, filters, reconciliation.get(student.id))
        ]

        key = resolve_sort_key(sort.key)
        visible = sorted(
            visible,
            key=lambda student: sort_value(student, key),
            reverse=sort.direction == SortDirection.DESC,
        )

        total = len(visible)
        total_pages = math.ceil(total / per_page) if total else 0
        page = max(page, 1)
        start = (page - 1) * per_page
        items = [
            RosterRow(student=student, requirements=reconciliation.get(student.id))
            for student in visible[start : start + per_page]
        ]
        return RosterPage(
            items=items,
            page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
        )


class QueryDebouncer:
    """
    Delays applying a search query until typing pauses.

    Each submit cancels the pending one; only the last query within the
    delay window reaches the callback.
    """

    def __init__(
        self,
        on_settled: Callable[[str], Awaitable[None] | None],
        delay: float = 0.3,
    ):
        self.delay = delay
        self.on_settled = on_settled
        self.current: str = ""
        self._pending: Optional[asyncio.Task] = None

    def submit(self, query: str) -> asyncio.Task:
        if self._pending and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._settle(query))
        return self._pending

    async def _settle(self, query: str) -> None:
        await asyncio.sleep(self.delay)
        self.current = query
        result = self.on_settled(query)
        if asyncio.iscoroutine(result):
            await result

    async def flush(self) -> None:
        """Wait for the pending query, if any, to settle."""
        if self._pending and not self._pending.done():
            try:
                await self._pending
            except asyncio.CancelledError:
                pass

    def cancel(self) -> None:
        if self._pending and not self._pending.done():
            self._pending.cancel()
