"""
Retry eligibility classifier for failed operations.

Maps an exception to a canonical ErrorClass. Classification is deterministic
and based only on the exception type, an optional ``status_code``/``code``
attribute, and known message signals.
"""

from __future__ import annotations

import asyncio
import re
from enum import Enum


class ErrorClass(str, Enum):
    """Canonical retry classification for a failed operation."""

    retryable = "retryable"          # Transient transport failure: retry with backoff
    non_retryable = "non-retryable"  # Validation / 4xx: propagate immediately


# Explicit validation failures are never retried, whatever else the message says.
VALIDATION_SIGNALS = (
    "validation",
    "invalid assessment id",
)

NETWORK_SIGNALS = (
    "network",
    "timeout",
    "timed out",
    "econnreset",
    "enotfound",
    "etimedout",
    "connection reset",
    "connection refused",
    "connection aborted",
    "temporarily unavailable",
    "service unavailable",
)

RATE_LIMIT_SIGNALS = (
    "429",
    "too many requests",
    "rate limit",
    "quota exceeded",
)

SERVER_ERROR_SIGNALS = (
    "internal server error",
    "bad gateway",
    "gateway timeout",
)

RETRYABLE_ERROR_CODES = frozenset({"network_error", "econnreset", "etimedout", "enotfound"})

DATABASE_SIGNALS = (
    "connection",
    "timeout",
    "econnreset",
    "pool",
    "deadlock",
)

_CLIENT_ERROR_STATUS = re.compile(r"\b4(?!08|29)\d\d\b")
_SERVER_ERROR_STATUS = re.compile(r"\b5\d\d\b")


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def _classify_status(status: int) -> ErrorClass | None:
    if status in (408, 429) or 500 <= status <= 599:
        return ErrorClass.retryable
    if 400 <= status <= 499:
        return ErrorClass.non_retryable
    return None


def classify_error(error: BaseException) -> ErrorClass:
    """
    Decide whether a failed external-API call warrants another attempt.

    Rules (evaluated in priority order):
    1. Explicit validation errors: non-retryable.
    2. A numeric ``status_code`` attribute: 408/429/5xx retry, other 4xx halt.
    3. Timeout and connection exception types: retryable.
    4. A 4xx status (other than 408 and 429) in the message: non-retryable.
    5. Network, rate-limit and 5xx message signals or error codes: retryable.
    6. Anything else: non-retryable (fail-closed).
    """
    message = str(error).lower()

    # 1. Validation errors
    if isinstance(error, ValueError) or any(sig in message for sig in VALIDATION_SIGNALS):
        return ErrorClass.non_retryable

    # 2. Structured status code
    status = _status_code(error)
    if status is not None:
        decided = _classify_status(status)
        if decided is not None:
            return decided

    # 3. Transport exception types
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return ErrorClass.retryable

    # 4. Client errors named in the message
    if _CLIENT_ERROR_STATUS.search(message):
        return ErrorClass.non_retryable

    # 5. Transient signals
    code = str(getattr(error, "code", "") or "").lower()
    if code in RETRYABLE_ERROR_CODES:
        return ErrorClass.retryable
    if any(sig in message for sig in NETWORK_SIGNALS):
        return ErrorClass.retryable
    if any(sig in message for sig in RATE_LIMIT_SIGNALS):
        return ErrorClass.retryable
    if _SERVER_ERROR_STATUS.search(message) or any(sig in message for sig in SERVER_ERROR_SIGNALS):
        return ErrorClass.retryable

    # 6. Unknown: fail closed
    return ErrorClass.non_retryable


def is_retryable_error(error: BaseException) -> bool:
    """Classifier used by the external-API retry preset."""
    return classify_error(error) is ErrorClass.retryable


def is_database_retryable_error(error: BaseException) -> bool:
    """Classifier used by the storage retry preset: connection, timeout, pool, deadlock."""
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    message = str(error).lower()
    return any(sig in message for sig in DATABASE_SIGNALS)
