from contextvars import ContextVar
from typing import Optional

request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
admin_id_context: ContextVar[Optional[str]] = ContextVar("admin_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_context.get()


def set_request_id(request_id: str) -> None:
    """Set the request ID in context."""
    request_id_context.set(request_id)


def get_admin_id() -> Optional[str]:
    """Admin id of the caller, for log correlation only.

    Role-aware logic never reads this; it receives an explicit AdminContext.
    """
    return admin_id_context.get()


def set_admin_id(admin_id: Optional[str]) -> None:
    admin_id_context.set(admin_id)
