"""Reusable retry policy for fallible provider calls.

WHY: Transcription and chat providers rate-limit aggressively and drop
connections on long uploads. Weaving retry loops into every network method
duplicates the same logic with slightly different bugs each time. A single
policy object wraps any coroutine instead.

HOW: RetryPolicy.call() awaits the wrapped coroutine function. On an error
accepted by the policy's predicate it sleeps base_delay_s * attempt and
tries again, up to max_attempts. Anything else propagates immediately.

RULES:
- Retryable: httpx transport errors (connect, read, timeouts), provider
  status 429/500/502/503, and messages carrying rate-limit or connection
  markers
- Not retryable: everything else, including TranscriptionFormatError
- The last error is re-raised unchanged when attempts run out
- Backoff grows linearly with the attempt number
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from darija_captions.core.envelopes import TranscriptionFormatError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503})

_RETRYABLE_MARKERS = (
    "connection error",
    "econnreset",
    "etimedout",
    "socket hang up",
    "network",
    "timeout",
    "rate limit",
    "resource_exhausted",
    "quota",
)


def is_retryable_error(exc: BaseException) -> bool:
    """Decide whether an error is transient.

    RULES:
    - httpx.TransportError subclasses are always transient
    - Errors with a ``status_code`` attribute are transient iff the code is
      in RETRYABLE_STATUS_CODES
    - Otherwise the lowercase message is scanned for transient markers
    """
    if isinstance(exc, TranscriptionFormatError):
        return False
    if isinstance(exc, httpx.TransportError):
        return True
    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        return status_code in RETRYABLE_STATUS_CODES
    message = str(exc).lower()
    return any(marker in message for marker in _RETRYABLE_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for one class of calls.

    Attributes:
        max_attempts: Total attempts including the first.
        base_delay_s: Delay before the second attempt; later delays scale
                      with the attempt number.
        is_retryable: Predicate deciding which errors are transient.
    """

    max_attempts: int = 3
    base_delay_s: float = 2.0
    is_retryable: Callable[[BaseException], bool] = is_retryable_error

    async def call(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Await ``fn(*args, **kwargs)``, retrying transient failures."""
        attempt = 1
        while True:
            try:
                return await fn(*args, **kwargs)
            except Exception as e:
                if attempt >= self.max_attempts or not self.is_retryable(e):
                    raise
                wait_s = self.base_delay_s * attempt
                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %.1fs...",
                    attempt, self.max_attempts, e, wait_s,
                )
                await asyncio.sleep(wait_s)
                attempt += 1


NO_RETRY = RetryPolicy(max_attempts=1)
