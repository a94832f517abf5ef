from .checklist import RequirementChecklist, default_checklist
from .scope import AdminContext, ScopeResolver
from .reconciler import RequirementReconciler
from .filters import RosterFilterEngine, QueryDebouncer
from .importer import CsvImportReconciler, ImportPolicy, PasswordPolicy
from .lifecycle import StudentLifecycle
from .roster_source import RosterSource

__all__ = [
    "RequirementChecklist",
    "default_checklist",
    "AdminContext",
    "ScopeResolver",
    "RequirementReconciler",
    "RosterFilterEngine",
    "QueryDebouncer",
    "CsvImportReconciler",
    "ImportPolicy",
    "PasswordPolicy",
    "StudentLifecycle",
    "RosterSource",
]
