from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

import openai
import requests

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _status_code(exc: BaseException):
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return status


def is_retryable(exc: BaseException) -> bool:
    """Timeouts, connection errors, 429 and 5xx are retried; other 4xx are not."""
    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError)):
        return True
    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return True
    status = _status_code(exc)
    if isinstance(status, int):
        return status == 429 or status >= 500
    return False


def with_retry(
    operation: Callable[[], T],
    max_retries: int = 2,
    initial_backoff: float = 0.5,
    retry_predicate: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call `operation` and retry it with exponential backoff.

    Makes at most `max_retries + 1` attempts. Waits `initial_backoff * 2**n`
    seconds before retry n+1. Exceptions rejected by `retry_predicate`, and the
    last exception once attempts run out, propagate unchanged.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except Exception as e:
            if attempt >= max_retries or not retry_predicate(e):
                raise
            delay = initial_backoff * (2 ** attempt)
            logger.warning(
                "Attempt %s/%s failed (%s: %s); retrying in %.2fs",
                attempt + 1, max_retries + 1, type(e).__name__, e, delay,
            )
            sleep(delay)
            attempt += 1
