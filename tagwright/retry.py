"""Retry policy for remote operations.

Transient failures (network errors, rate limiting, 5xx) are retried with
exponential backoff and jitter; everything else fails on the first attempt.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from .config import RetryConfig
from .errors import AuthenticationError, ExternalError, TransientError

T = TypeVar("T")

_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "tls handshake timeout",
    "network is unreachable",
    "could not resolve host",
    "remote end hung up unexpectedly",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)
# GitHub reports rate limiting as HTTP 403 as well as 429
_RATE_LIMIT_MARKERS = (
    "rate limit",
    "abuse detection",
    "http 429",
)
_AUTH_MARKERS = (
    "http 401",
    "http 403",
    "bad credentials",
    "authentication failed",
    "gh auth login",
    "permission denied",
)


def classify_failure(operation: str, stderr: str) -> ExternalError:
    """Turn the stderr of a failed command into the matching error class."""
    text = stderr.lower()
    cause = stderr.strip()
    if any(marker in text for marker in _RATE_LIMIT_MARKERS):
        return TransientError(operation, cause)
    if any(marker in text for marker in _AUTH_MARKERS):
        return AuthenticationError(
            operation, cause, hint="run `gh auth login` or set GH_TOKEN"
        )
    if any(marker in text for marker in _TRANSIENT_MARKERS):
        return TransientError(operation, cause)
    return ExternalError(operation, cause)


@dataclass
class RetryPolicy:
    """Bounded exponential backoff.

    The delay before retry k (0-based) is ``min(max_delay, base_delay * 2**k)``
    scaled by a random factor in ``[1 - jitter, 1 + jitter]``.
    """

    attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: float = 0.25
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(
            attempts=config.attempts,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            jitter=config.jitter,
        )

    def delay(self, attempt: int) -> float:
        delay = min(self.max_delay, self.base_delay * 2**attempt)
        if self.jitter:
            delay *= random.uniform(1 - self.jitter, 1 + self.jitter)
        return max(0.0, delay)

    def call(self, operation: str, fn: Callable[[], T]) -> T:
        """Run fn, retrying TransientError up to the attempt cap.

        Raises:
            ExternalError: Naming the operation once retries are exhausted.
            Any non-transient error from fn, unchanged and immediately.
        """
        attempts = max(1, self.attempts)
        for attempt in range(attempts):
            try:
                return fn()
            except TransientError as exc:
                if attempt == attempts - 1:
                    raise ExternalError(
                        operation,
                        f"{exc.cause or exc.message} (gave up after {attempts} attempts)",
                    ) from exc
                delay = self.delay(attempt)
                print(
                    f"  {operation}: transient failure, retrying in {delay:.1f}s "
                    f"({attempt + 1}/{attempts})"
                )
                self.sleep(delay)
        raise AssertionError("unreachable")
