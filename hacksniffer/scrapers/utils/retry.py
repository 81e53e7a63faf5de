"""Retry policy with exponential backoff for HTTP requests."""

from typing import Callable

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)


logger = structlog.get_logger(__name__)


# Non-2xx responses surface as HTTPStatusError; transport problems
# (DNS, connect, read timeouts) as TransportError. Both are HTTPError.
RETRYABLE_EXCEPTIONS = (httpx.HTTPError,)

# Upper bound on a single backoff sleep
MAX_BACKOFF_SECONDS = 60.0


def _log_before_sleep(source_id: str, url: str) -> Callable[[RetryCallState], None]:
    """Build a tenacity before_sleep hook that logs through structlog."""

    def _hook(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "fetch_retry_scheduled",
            source=source_id,
            url=url,
            attempt=retry_state.attempt_number,
            sleep_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
            error=str(exc),
        )

    return _hook


def http_retrying(
    source_id: str,
    url: str,
    max_attempts: int = 3,
    retry_delay: float = 1.0,
) -> AsyncRetrying:
    """Build the retry controller used for one fetch.

    The n-th retry sleeps ``retry_delay * 2 ** (n - 1)`` seconds.

    Args:
        source_id: Source tag for log context
        url: URL being fetched, for log context
        max_attempts: Total attempts including the first one
        retry_delay: Base delay in seconds

    Returns:
        AsyncRetrying instance; iterate it with ``async for``
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=retry_delay, exp_base=2, min=0, max=MAX_BACKOFF_SECONDS),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        before_sleep=_log_before_sleep(source_id, url),
        reraise=True,
    )
