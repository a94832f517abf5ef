import asyncio
from typing import Callable, Dict, Iterable, List, Optional

from app.schemas.roster_schemas import RosterSnapshot, StudentRecord
from app.services.roster.interfaces import RosterStore
from app.utils.logging import get_logger

logger = get_logger()


class RosterSource:
    """
    In-memory roster fed by the store's subscription.

    Snapshots carry a monotonic version; records carry their own. A one-shot
    bootstrap load only applies while no subscription snapshot has arrived.
    """

    def __init__(self):
        self._records: Dict[str, StudentRecord] = {}
        self.snapshot_version: int = 0
        self.subscribed: bool = False
        self.bootstrapped: bool = False

    @property
    def records(self) -> List[StudentRecord]:
        return list(self._records.values())

    @property
    def ready(self) -> bool:
        return self.subscribed or self.bootstrapped

    def get(self, record_id: str) -> Optional[StudentRecord]:
        return self._records.get(record_id)

    async def read(self, store: RosterStore) -> List[StudentRecord]:
        """Held records once loaded; a one-shot store fetch before that."""
        if self.ready:
            return self.records
        return await store.list_all()

    def load_bootstrap(self, records: Iterable[StudentRecord]) -> bool:
        if self.subscribed:
            logger.debug("Bootstrap load ignored; subscription already active")
            return False
        self._records = {record.id: record for record in records}
        self.bootstrapped = True
        return True

    def apply_snapshot(self, snapshot: RosterSnapshot) -> bool:
        if self.subscribed and snapshot.version <= self.snapshot_version:
            logger.debug(
                f"Stale roster snapshot v{snapshot.version} dropped (have v{self.snapshot_version})"
            )
            return False
        self._records = {record.id: record for record in snapshot.records}
        self.snapshot_version = snapshot.version
        self.subscribed = True
        return True

    def apply_local(self, record: StudentRecord) -> bool:
        """Optimistic write; applies only when newer than what is held."""
        if not self.ready:
            return False
        current = self._records.get(record.id)
        if current is not None and record.version <= current.version:
            return False
        self._records[record.id] = record
        return True

    def remove_local(self, record_id: str) -> None:
        self._records.pop(record_id, None)

    async def follow(
        self,
        store: RosterStore,
        still_interested: Callable[[], bool] = lambda: True,
    ) -> None:
        async for snapshot in store.subscribe():
            if not still_interested():
                break
            self.apply_snapshot(snapshot)

    async def start(self, store: RosterStore) -> "asyncio.Task[None]":
        """Bootstrap from the store, then keep following its subscription in the background."""
        self.load_bootstrap(await store.list_all())
        logger.info(f"Roster source bootstrapped with {len(self._records)} students")
        return asyncio.create_task(self.follow(store), name="roster-follow")


# Process-wide roster shared by every request handler
live_roster = RosterSource()
