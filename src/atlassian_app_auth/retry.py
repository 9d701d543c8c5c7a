"""Bounded backoff for outbound product API calls.

Only idempotent methods are retried. Every attempt calls ``operation`` again,
so callers that sign inside ``operation`` send a fresh token each time.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, TypeVar
from urllib.error import HTTPError

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 0.2
DEFAULT_MAX_DELAY_SECONDS = 5.0
DEFAULT_JITTER_RATIO = 0.2

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})
RETRYABLE_STATUSES = frozenset({429, 502, 503, 504})


def is_idempotent(method: str) -> bool:
    return method.upper() in IDEMPOTENT_METHODS


def should_retry_http_status(status: int) -> bool:
    return status in RETRYABLE_STATUSES


def _retryable_error(error: Exception) -> bool:
    return isinstance(error, HTTPError) and should_retry_http_status(error.code)


def _response_status(result: object) -> int | None:
    status = getattr(result, "status", None)
    if status is None and isinstance(result, dict):
        status = result.get("status")
    return status if isinstance(status, int) else None


def _jitter_delay(delay_seconds: float, jitter_ratio: float) -> float:
    window = delay_seconds * jitter_ratio
    if window <= 0:
        return max(0.0, delay_seconds)
    return max(0.0, delay_seconds + random.uniform(-window, window))


def retry_request(
    operation: Callable[[], T],
    *,
    method: str,
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
    max_delay_seconds: float = DEFAULT_MAX_DELAY_SECONDS,
    jitter_ratio: float = DEFAULT_JITTER_RATIO,
    should_retry_error: Optional[Callable[[Exception], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    if not is_idempotent(method):
        attempts = 1
    attempts = max(1, attempts)

    delay_seconds = max(0.0, base_delay_seconds)
    max_delay_seconds = max(delay_seconds, max_delay_seconds)
    jitter_ratio = max(0.0, jitter_ratio)
    should_retry_error = should_retry_error or _retryable_error

    for attempt in range(1, attempts + 1):
        try:
            result = operation()
        except Exception as error:  # noqa: BLE001
            if attempt >= attempts or not should_retry_error(error):
                raise
            logger.debug("%s attempt %d failed (%s), retrying", method, attempt, error)
        else:
            status = _response_status(result)
            if attempt >= attempts or status is None or not should_retry_http_status(status):
                return result
            logger.debug("%s attempt %d returned %d, retrying", method, attempt, status)

        sleep(_jitter_delay(delay_seconds, jitter_ratio))
        delay_seconds = min(max_delay_seconds, delay_seconds * 2)

    raise RuntimeError("retry_request exhausted attempts without a terminal result")
