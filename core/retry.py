"""Bounded retry policy shared by outbound calls (article store, Qdrant, embeddings)."""

from typing import Callable, Union

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.config import get_settings
from core.logger import get_logger

logger = get_logger(__name__)

RetryPredicate = Union[type[BaseException], tuple[type[BaseException], ...], Callable[[BaseException], bool]]


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying outbound call",
        attempt=retry_state.attempt_number,
        error=str(exc),
        error_type=type(exc).__name__,
    )


def retrying(retry_on: RetryPredicate) -> AsyncRetrying:
    """
    Build an async retry controller.

    Attempts come from RETRY_ATTEMPTS with a short exponential backoff; the
    last exception is re-raised unchanged so callers can wrap it.

    Args:
        retry_on: Exception type(s) worth retrying, or a predicate over the exception.

    Usage:
        async for attempt in retrying(ConnectionFailure):
            with attempt:
                doc = await collection.find_one(...)
    """
    if isinstance(retry_on, type) or isinstance(retry_on, tuple):
        condition = retry_if_exception_type(retry_on)
    else:
        condition = retry_if_exception(retry_on)

    return AsyncRetrying(
        stop=stop_after_attempt(get_settings().RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=condition,
        before_sleep=_log_retry,
        reraise=True,
    )
