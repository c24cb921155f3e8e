"""Retry policy for Qdrant store operations.

Transient network failures talking to Qdrant are retried with exponential
backoff before they surface to the dispatcher or monitor. Client errors
(4xx) are not retried.
"""

from __future__ import annotations

import logging

import httpx
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

STORE_RETRY_ATTEMPTS = 3


def _is_transient(exc: BaseException) -> bool:
    """Whether a store exception is worth retrying."""
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException, ResponseHandlingException)):
        return True
    if isinstance(exc, UnexpectedResponse):
        return exc.status_code is None or exc.status_code >= 500
    return False


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a store retry before sleeping."""
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying store operation %s (attempt %d): %s",
        retry_state.fn.__name__ if retry_state.fn else "unknown",
        retry_state.attempt_number,
        exception,
    )


store_retry = retry(
    stop=stop_after_attempt(STORE_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    retry=retry_if_exception(_is_transient),
    before_sleep=_log_retry,
    reraise=True,
)
