from __future__ import annotations

import asyncio

import pytest

from cortex.errors import (
    GenerationBackendError,
    GenerationTimeoutError,
    InvalidAssessmentIdError,
)
from cortex.retry.classifier import (
    ErrorClass,
    classify_error,
    is_database_retryable_error,
    is_retryable_error,
)


class _CodedError(Exception):
    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


@pytest.mark.parametrize(
    "error",
    [
        GenerationBackendError("Upstream failed", status_code=500),
        GenerationBackendError("Upstream failed", status_code=503),
        GenerationBackendError("Slow down", status_code=429),
        GenerationBackendError("Request Timeout", status_code=408),
        GenerationTimeoutError(60),
        asyncio.TimeoutError(),
        ConnectionError("Connection refused"),
        RuntimeError("ECONNRESET while reading body"),
        RuntimeError("Rate limit reached for requests"),
        RuntimeError("HTTP 502 Bad Gateway"),
        _CodedError("socket closed", "NETWORK_ERROR"),
    ],
)
def test_transient_errors_are_retryable(error: Exception) -> None:
    assert classify_error(error) is ErrorClass.retryable
    assert is_retryable_error(error)


@pytest.mark.parametrize(
    "error",
    [
        GenerationBackendError("Bad request", status_code=400),
        GenerationBackendError("Unauthorized", status_code=401),
        GenerationBackendError("Not here", status_code=404),
        RuntimeError("HTTP 403 Forbidden"),
        InvalidAssessmentIdError("Assessment ID is required"),
        ValueError("bad input"),
        RuntimeError("Validation failed: timeout field missing"),
        RuntimeError("something unexpected"),
    ],
)
def test_client_and_unknown_errors_are_not_retryable(error: Exception) -> None:
    assert classify_error(error) is ErrorClass.non_retryable
    assert not is_retryable_error(error)


def test_validation_signal_wins_over_transient_signal() -> None:
    error = RuntimeError("validation error: network flag invalid")
    assert classify_error(error) is ErrorClass.non_retryable


def test_structured_status_takes_priority_over_message() -> None:
    error = GenerationBackendError("HTTP 404 but network blip", status_code=503)
    assert classify_error(error) is ErrorClass.retryable


def test_rate_limit_status_in_message_is_not_treated_as_client_error() -> None:
    assert classify_error(RuntimeError("429 Too Many Requests")) is ErrorClass.retryable


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ConnectionError("refused"), True),
        (TimeoutError(), True),
        (RuntimeError("connection pool exhausted"), True),
        (RuntimeError("deadlock detected"), True),
        (RuntimeError("unique constraint violated"), False),
    ],
)
def test_database_classifier(error: Exception, expected: bool) -> None:
    assert is_database_retryable_error(error) is expected
