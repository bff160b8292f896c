import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .errors import StorageError
from .settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient_storage_error(exc: BaseException) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def _log_retry(retry_state) -> None:
    logger.warning(
        "Storage call failed (attempt %s), retrying: %s",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    )


async def with_storage_retry(
    func: Callable[[], Awaitable[T]],
    attempts: int | None = None,
    min_wait: float = 0.2,
) -> T:
    """Run a unit of work, retrying once (by default) on transient storage
    failures. Business errors pass through untouched."""
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts or settings.STORAGE_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=2),
        retry=retry_if_exception(is_transient_storage_error),
        before_sleep=_log_retry,
        reraise=False,
    )
    try:
        async for attempt in retrying:
            with attempt:
                return await func()
    except RetryError as e:
        cause = e.last_attempt.exception()
        logger.error("Storage unavailable after retries: %s", cause)
        raise StorageError("Storage is temporarily unavailable. Please try again.") from cause
