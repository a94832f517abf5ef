import asyncio
from typing import AsyncIterator, Awaitable, Callable, Generic, List, TypeVar

from app.utils.logging import get_logger

logger = get_logger()

S = TypeVar("S")


class ChangeFeed(Generic[S]):
    """In-process fan-out of snapshots to every active subscriber."""

    def __init__(self, name: str, max_queue: int = 16):
        self.name = name
        self.max_queue = max_queue
        self.version = 0
        self._subscribers: List[asyncio.Queue] = []

    def next_version(self) -> int:
        self.version += 1
        return self.version

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, snapshot: S) -> None:
        for queue in list(self._subscribers):
            if queue.full():
                # Slow consumer: only the newest snapshot matters
                queue.get_nowait()
            queue.put_nowait(snapshot)

    async def subscribe(self, current: Callable[[], Awaitable[S]]) -> AsyncIterator[S]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue)
        self._subscribers.append(queue)
        logger.debug(f"{self.name} feed: subscriber added ({len(self._subscribers)} active)")
        try:
            yield await current()
            while True:
                yield await queue.get()
        finally:
            self._subscribers.remove(queue)
            logger.debug(f"{self.name} feed: subscriber removed ({len(self._subscribers)} active)")


roster_feed: "ChangeFeed" = ChangeFeed("roster")
approval_feed: "ChangeFeed" = ChangeFeed("approvals")
