from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import requests

T = TypeVar("T")

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings for transient Canvas failures.

    Backoff is deterministic (no jitter). The last error is re-raised once
    max_attempts is reached.
    """

    max_attempts: int = 3
    base_delay_s: float = 0.5
    max_delay_s: float = 8.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return min(self.max_delay_s, self.base_delay_s * (self.multiplier ** (attempt - 1)))


class RetryableHttpStatus(Exception):
    def __init__(self, status_code: int, url: str = "") -> None:
        super().__init__(f"retryable http status: {status_code} {url}".rstrip())
        self.status_code = status_code
        self.url = url


def is_transient_http_error(exc: Exception) -> bool:
    if isinstance(exc, RetryableHttpStatus):
        return True
    return isinstance(exc, (requests.Timeout, requests.ConnectionError))


def retry_call(
    fn: Callable[[], T],
    *,
    cfg: RetryConfig,
    should_retry: Callable[[Exception], bool] = is_transient_http_error,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
) -> T:
    """Call `fn`, retrying with exponential backoff while `should_retry` allows.

    on_retry receives (attempt_index, exc, delay_s); attempt_index is 1-based
    and refers to the attempt that failed.
    """

    if cfg.max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except Exception as exc:
            if attempt >= cfg.max_attempts or not should_retry(exc):
                raise

            delay_s = cfg.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt, exc, delay_s)
            time.sleep(delay_s)
