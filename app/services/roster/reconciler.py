import asyncio
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from app.db.models import ApprovalStatus
from app.schemas.roster_schemas import (
    ApprovalEntry,
    RequirementState,
    RequirementSummary,
    RequirementTypeCounts,
    StudentRecord,
    StudentRequirementStatus,
)
from app.services.roster.checklist import RequirementChecklist, default_checklist
from app.services.roster.interfaces import RequirementFileStore, SubmittedListing
from app.utils.errors import CollaboratorError
from app.utils.logging import get_logger

logger = get_logger()

APPROVED_STATUSES = frozenset({ApprovalStatus.APPROVED, ApprovalStatus.ACCEPTED})
REJECTED_STATUSES = frozenset({ApprovalStatus.REJECTED, ApprovalStatus.DENIED})


def _submitted_names(listing: Optional[SubmittedListing]) -> Iterable[str]:
    if not listing:
        return ()
    if isinstance(listing, Mapping):
        return (name for name, count in listing.items() if (count or 0) > 0)
    return listing


class RequirementReconciler:
    """Merges submitted-file listings with approval decisions per requirement type."""

    def __init__(
        self,
        file_store: Optional[RequirementFileStore] = None,
        checklist: RequirementChecklist = default_checklist,
        batch_size: int = 5,
        batch_delay: float = 0.1,
        timeout: Optional[float] = 10.0,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.file_store = file_store
        self.checklist = checklist
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.timeout = timeout

    def reconcile(
        self,
        record_id: str,
        submitted: Optional[SubmittedListing],
        approvals: Optional[Mapping[str, ApprovalEntry]],
    ) -> StudentRequirementStatus:
        approvals = approvals or {}
        canonical_submitted = set()
        extra = []
        for name in _submitted_names(submitted):
            canonical = self.checklist.canonicalize(name)
            if self.checklist.is_canonical(canonical):
                canonical_submitted.add(canonical)
            elif canonical not in extra:
                extra.append(canonical)

        states: Dict[str, RequirementState] = {}
        for requirement_type in self.checklist:
            if requirement_type not in canonical_submitted:
                states[requirement_type] = RequirementState.NOT_SUBMITTED
                continue
            states[requirement_type] = self._decision_state(requirement_type, approvals)

        return StudentRequirementStatus(
            record_id=record_id, states=states, extra_submitted=extra
        )

    def _decision_state(
        self, requirement_type: str, approvals: Mapping[str, ApprovalEntry]
    ) -> RequirementState:
        # Current key first; legacy keys only consulted while no terminal decision is found
        for key in self.checklist.approval_keys_for(requirement_type):
            entry = approvals.get(key)
            if entry is None:
                continue
            if entry.status in APPROVED_STATUSES:
                return RequirementState.SUBMITTED_APPROVED
            if entry.status in REJECTED_STATUSES:
                return RequirementState.SUBMITTED_REJECTED
        return RequirementState.SUBMITTED_PENDING

    async def fetch_and_reconcile(
        self, record_id: str, approvals: Optional[Mapping[str, ApprovalEntry]]
    ) -> StudentRequirementStatus:
        if self.file_store is None:
            raise RuntimeError("RequirementReconciler has no file store configured")
        lookup = self.file_store.list_submitted_types(record_id)
        if self.timeout is not None:
            submitted = await asyncio.wait_for(lookup, timeout=self.timeout)
        else:
            submitted = await lookup
        return self.reconcile(record_id, submitted, approvals)

    async def _reconcile_one(
        self, record_id: str, approvals: Optional[Mapping[str, ApprovalEntry]]
    ) -> StudentRequirementStatus:
        try:
            return await self.fetch_and_reconcile(record_id, approvals)
        except asyncio.TimeoutError:
            error = f"Requirement lookup timed out after {self.timeout}s"
        except CollaboratorError as e:
            error = e.message
        except OSError as e:
            error = f"Requirement lookup failed: {e}"

        logger.warning(f"Requirement check failed for {record_id}: {error}")
        failed = self.reconcile(record_id, None, approvals)
        failed.error = error
        return failed

    async def reconcile_roster(
        self,
        records: Sequence[StudentRecord],
        approvals_by_record: Mapping[str, Mapping[str, ApprovalEntry]],
        still_interested: Callable[[], bool] = lambda: True,
    ) -> Dict[str, StudentRequirementStatus]:
        """
        Reconcile every student, a fixed-size batch at a time.

        Batches are separated by a short pause so the storage listing API is not
        flooded. A failed lookup becomes a per-student error entry. When
        `still_interested` turns false the loop stops and returns what it has.
        """
        results: Dict[str, StudentRequirementStatus] = {}
        record_ids = [record.id for record in records]

        for start in range(0, len(record_ids), self.batch_size):
            if not still_interested():
                logger.info(
                    f"Requirement reconciliation abandoned after {len(results)} of {len(record_ids)} students"
                )
                break

            batch = record_ids[start : start + self.batch_size]
            statuses = await asyncio.gather(
                *(
                    self._reconcile_one(record_id, approvals_by_record.get(record_id))
                    for record_id in batch
                )
            )

            if not still_interested():
                break
            for status in statuses:
                results[status.record_id] = status

            if start + self.batch_size < len(record_ids) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        failed = sum(1 for status in results.values() if status.error)
        logger.info(
            f"Reconciled requirements for {len(results)} students ({failed} lookup failures)"
        )
        return results

    def summarize(
        self, statuses: Iterable[StudentRequirementStatus]
    ) -> RequirementSummary:
        summary = RequirementSummary(
            per_type={name: RequirementTypeCounts() for name in self.checklist}
        )
        for status in statuses:
            summary.total_students += 1
            if status.error:
                summary.failed_lookups += 1
            if status.all_submitted:
                summary.fully_submitted += 1
            if status.all_approved:
                summary.fully_approved += 1
            for requirement_type, state in status.states.items():
                counts = summary.per_type.setdefault(
                    requirement_type, RequirementTypeCounts()
                )
                if state == RequirementState.NOT_SUBMITTED:
                    continue
                counts.submitted += 1
                if state == RequirementState.SUBMITTED_APPROVED:
                    counts.approved += 1
                elif state == RequirementState.SUBMITTED_REJECTED:
                    counts.rejected += 1
                else:
                    counts.pending += 1
        return summary


def all_requirements_submitted(status: Optional[StudentRequirementStatus]) -> bool:
    return bool(status) and status.all_submitted


def all_requirements_approved(status: Optional[StudentRequirementStatus]) -> bool:
    """Every checklist entry submitted and specifically approved."""
    return bool(status) and status.all_submitted and status.all_approved


def missing_requirements(status: StudentRequirementStatus) -> List[str]:
    return [
        name
        for name, state in status.states.items()
        if state == RequirementState.NOT_SUBMITTED
    ]
