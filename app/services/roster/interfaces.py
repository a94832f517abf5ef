"""Collaborator contracts the roster core depends on.

Concrete adapters live in app.providers; tests use in-memory fakes.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Set

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


class RosterStore(ABC):
    @abstractmethod
    def subscribe(self) -> AsyncIterator[RosterSnapshot]:
        """Push-based stream of full roster snapshots, current state first."""

    @abstractmethod
    async def list_all(self) -> List[StudentRecord]:
        """One-shot fetch, for bootstrap only."""

    @abstractmethod
    async def create(self, draft: StudentDraft, record_id: Optional[str] = None) -> str:
        pass

    @abstractmethod
    async def update(self, record_id: str, patch: Mapping[str, Any]) -> StudentRecord:
        pass

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        pass

    @abstractmethod
    async def get_one(self, record_id: str) -> Optional[StudentRecord]:
        pass


class ArchiveStore(ABC):
    @abstractmethod
    async def write(self, record_id: str, snapshot: ArchiveSnapshot) -> None:
        pass

    @abstractmethod
    async def get(self, record_id: str) -> Optional[ArchiveSnapshot]:
        pass

    @abstractmethod
    async def remove(self, record_id: str) -> None:
        pass

    @abstractmethod
    async def list(self) -> List[ArchiveSnapshot]:
        pass


class RequirementFileStore(ABC):
    @abstractmethod
    async def list_submitted_types(self, record_id: str) -> Dict[str, int]:
        """Folder name -> file count, only for folders holding at least one file."""


class ApprovalStore(ABC):
    @abstractmethod
    def subscribe(self) -> AsyncIterator[ApprovalSnapshot]:
        pass

    @abstractmethod
    async def list_all(self) -> Dict[str, Dict[str, ApprovalEntry]]:
        pass

    @abstractmethod
    async def set_decision(
        self, record_id: str, requirement_type: str, entry: ApprovalEntry
    ) -> None:
        pass


class IdentityProvider(ABC):
    @abstractmethod
    async def create_account(self, email: str, password: str) -> str:
        """
        Returns the external account id.

        Raises EmailInUseError, InvalidEmailError, WeakPasswordError or NetworkError.
        """

    @abstractmethod
    async def delete_account(self, external_id: str) -> None:
        """Compensating cleanup for an account whose roster record was never written."""


class NotificationSink(ABC):
    @abstractmethod
    async def send(
        self,
        sender_id: str,
        message: str,
        target: NotificationTarget,
        recipient_ids: List[str],
    ) -> str:
        pass

    @abstractmethod
    async def prune(self, sender_id: str, keep: int) -> int:
        """Drop all but the most recent `keep` notifications of the sender; returns count removed."""

    @abstractmethod
    async def list_for_sender(self, sender_id: str) -> List[SentNotification]:
        """Newest first."""


class CsvSource(ABC):
    @abstractmethod
    def read(self, content: bytes) -> List[Dict[str, str]]:
        pass


SubmittedListing = Mapping[str, int] | Set[str] | List[str]
