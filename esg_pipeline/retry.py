"""
Retry policy shared by every external call (AI, search, downloads).

One RetryPolicy (max attempts, exponential backoff with jitter and a
retryable-error predicate) wraps calls through tenacity, so call sites
don't roll their own sleep loops.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .errors import RetryableAPIError

logger = logging.getLogger(__name__)

# 429 rate limits, 5xx server errors; 403 is how some Google APIs signal quota
RETRYABLE_STATUS_CODES = {403, 429, 500, 502, 503, 504}

RETRYABLE_MESSAGES = [
    "rate limit",
    "quota exceeded",
    "resource_exhausted",
    "resource exhausted",
    "too many requests",
    "internal server error",
    "backend error",
    "timeout",
    "timed out",
    "service unavailable",
    "temporarily unavailable",
    "connection reset",
    "connection closed",
    "connection aborted",
]

# Errors that will fail the same way on every attempt
FATAL_MESSAGES = ["too large", "maximum recursion depth"]


def _status_code(exc: BaseException):
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value
    return None


def is_retryable_error(exc: BaseException) -> bool:
    """True for rate limits, server errors and dropped connections."""
    message = str(exc).lower()
    if any(m in message for m in FATAL_MESSAGES):
        return False
    if isinstance(exc, RetryableAPIError):
        return True
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if _status_code(exc) in RETRYABLE_STATUS_CODES:
        return True
    return any(m in message for m in RETRYABLE_MESSAGES)


@dataclass
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    jitter: float = 1.0
    retryable: Callable[[BaseException], bool] = is_retryable_error
    sleep: Callable[[float], None] = time.sleep

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(
            max_attempts=max(config.max_retries, 1),
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
        )

    def _before_sleep(self, operation: str):
        def log(state: RetryCallState):
            exc = state.outcome.exception() if state.outcome else None
            delay = state.next_action.sleep if state.next_action else 0
            logger.warning(
                f"{operation} failed (attempt {state.attempt_number}/{self.max_attempts}), "
                f"retrying in {delay:.1f}s: {exc}"
            )
        return log

    def _retrying(self, operation: str) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.base_delay, max=self.max_delay, jitter=self.jitter
            ),
            retry=retry_if_exception(self.retryable),
            before_sleep=self._before_sleep(operation),
            sleep=self.sleep,
            reraise=True,
        )

    def call(self, fn: Callable, *args, operation: str = "operation", **kwargs):
        """Run fn(*args, **kwargs), retrying retryable failures."""
        try:
            return self._retrying(operation)(fn, *args, **kwargs)
        except Exception as e:
            if self.retryable(e):
                logger.error(f"{operation} failed after {self.max_attempts} attempts: {e}")
            else:
                logger.error(f"{operation} failed with non-retryable error: {e}")
            raise

    def wrap(self, fn: Callable, operation: str = None) -> Callable:
        name = operation or getattr(fn, "__name__", "operation")

        def wrapped(*args, **kwargs):
            return self.call(fn, *args, operation=name, **kwargs)

        wrapped.__name__ = getattr(fn, "__name__", "wrapped")
        wrapped.__doc__ = fn.__doc__
        return wrapped
