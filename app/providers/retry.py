import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from app.config.settings import settings
from app.utils.errors import CollaboratorError
from app.utils.logging import get_logger

logger = get_logger()

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    description: str,
    max_retries: Optional[int] = None,
    delay: Optional[float] = None,
) -> T:
    """
    Run an adapter operation, retrying transient collaborator failures.

    Only errors flagged `transient` are retried; everything else propagates on
    the first attempt. The delay doubles after each failed attempt.
    """
    max_retries = settings.COLLABORATOR_MAX_RETRIES if max_retries is None else max_retries
    delay = settings.COLLABORATOR_RETRY_DELAY_SECONDS if delay is None else delay

    attempt = 0
    while True:
        try:
            return await operation()
        except CollaboratorError as e:
            if not e.transient or attempt >= max_retries:
                raise
            attempt += 1
            logger.warning(
                f"{description} failed ({e.message}); retry {attempt}/{max_retries} in {delay:.2f}s"
            )
            await asyncio.sleep(delay)
            delay *= 2
