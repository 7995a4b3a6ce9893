"""Provider API package: async HTTP access to transcription and chat services.

WHY: The pipeline needs to upload audio, run transcription jobs, poll for
completion, and ask chat models to clean text, across several vendors with
different auth and job protocols. This package keeps all of that behind one
async client class and one retry policy.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. ProviderClient dispatches
on the provider's stt_kind; RetryPolicy wraps any of its coroutine methods.

RULES:
- All HTTP calls go through ProviderClient (no direct httpx usage elsewhere)
- Transient failures are retried by the caller via RetryPolicy
- Provider responses leave this package as Interval lists or plain strings
"""

from darija_captions.api.client import (
    ProviderAPIError,
    ProviderClient,
    TranscriptionError,
    TranscriptionTimeoutError,
)
from darija_captions.api.retry import NO_RETRY, RetryPolicy, is_retryable_error

__all__ = [
    "NO_RETRY",
    "ProviderAPIError",
    "ProviderClient",
    "RetryPolicy",
    "TranscriptionError",
    "TranscriptionTimeoutError",
    "is_retryable_error",
]
