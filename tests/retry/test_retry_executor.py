"""Tests for the async retry executor: budgets, backoff and cancellation."""

from __future__ import annotations

import asyncio
import random

import pytest

from cortex.concurrency import CancellationToken
from cortex.errors import GenerationBackendError, GenerationTimeoutError
from cortex.retry.executor import (
    DATABASE_RETRY_CONFIG,
    DEFAULT_RETRY_CONFIG,
    EXTERNAL_API_RETRY_CONFIG,
    RetryConfig,
    RetryContext,
    compute_delay_ms,
    execute_with_retry,
)


class _Sleeps:
    """Records requested sleeps instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class _Flaky:
    """Operation that raises each queued error in turn, then returns ``result``."""

    def __init__(self, errors: list[Exception], result: str = "ok") -> None:
        self._errors = list(errors)
        self.result = result
        self.contexts: list[RetryContext] = []

    async def __call__(self, context: RetryContext) -> str:
        self.contexts.append(context)
        if self._errors:
            raise self._errors.pop(0)
        return self.result

    @property
    def call_count(self) -> int:
        return len(self.contexts)


_FAST = RetryConfig(max_attempts=3, base_delay_ms=100, max_delay_ms=1000, jitter_factor=0.0)


class TestPresets:
    def test_default_preset(self) -> None:
        assert DEFAULT_RETRY_CONFIG.max_attempts == 3
        assert DEFAULT_RETRY_CONFIG.base_delay_ms == 1000
        assert DEFAULT_RETRY_CONFIG.max_delay_ms == 30000
        assert DEFAULT_RETRY_CONFIG.jitter_factor == 0.1

    def test_external_api_preset(self) -> None:
        assert EXTERNAL_API_RETRY_CONFIG.max_attempts == 3
        assert EXTERNAL_API_RETRY_CONFIG.base_delay_ms == 2000
        assert EXTERNAL_API_RETRY_CONFIG.max_delay_ms == 30000
        assert EXTERNAL_API_RETRY_CONFIG.jitter_factor == 0.2

    def test_database_preset(self) -> None:
        assert DATABASE_RETRY_CONFIG.max_attempts == 2
        assert DATABASE_RETRY_CONFIG.base_delay_ms == 500
        assert DATABASE_RETRY_CONFIG.max_delay_ms == 5000
        assert DATABASE_RETRY_CONFIG.jitter_factor == 0.1
        assert DATABASE_RETRY_CONFIG.retryable(ConnectionError("pool exhausted"))

    def test_max_attempts_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)


class TestComputeDelay:
    def test_exponential_without_jitter(self) -> None:
        assert compute_delay_ms(1, _FAST) == 100
        assert compute_delay_ms(2, _FAST) == 200
        assert compute_delay_ms(3, _FAST) == 400

    def test_capped_at_max_delay(self) -> None:
        assert compute_delay_ms(10, _FAST) == 1000

    @pytest.mark.parametrize("attempt", [1, 2, 3, 4, 8])
    def test_jitter_stays_within_bounds(self, attempt: int) -> None:
        config = EXTERNAL_API_RETRY_CONFIG
        rng = random.Random(attempt)
        nominal = min(config.base_delay_ms * 2 ** (attempt - 1), config.max_delay_ms)
        for _ in range(50):
            delay = compute_delay_ms(attempt, config, rng)
            assert 0 <= delay <= config.max_delay_ms
            assert nominal * (1 - config.jitter_factor) <= delay <= nominal * (1 + config.jitter_factor)


class TestExecuteWithRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success_without_sleeping(self) -> None:
        operation = _Flaky([])
        sleeps = _Sleeps()

        result = await execute_with_retry("op", operation, _FAST, sleep=sleeps)

        assert result == "ok"
        assert operation.call_count == 1
        assert sleeps.calls == []

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_after_one_call(self) -> None:
        operation = _Flaky([GenerationBackendError("Request failed", status_code=404)])

        with pytest.raises(GenerationBackendError):
            await execute_with_retry("op", operation, _FAST, sleep=_Sleeps())

        assert operation.call_count == 1

    @pytest.mark.asyncio
    async def test_retryable_errors_exhaust_budget_and_reraise_last(self) -> None:
        errors = [
            GenerationBackendError("503 Service Unavailable", status_code=503),
            GenerationBackendError("503 Service Unavailable", status_code=503),
            GenerationBackendError("final 503", status_code=503),
        ]
        operation = _Flaky(errors)
        sleeps = _Sleeps()

        with pytest.raises(GenerationBackendError, match="final 503"):
            await execute_with_retry("op", operation, _FAST, sleep=sleeps)

        assert operation.call_count == 3
        assert sleeps.calls == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self) -> None:
        operation = _Flaky([GenerationTimeoutError(60)], result="recovered")
        sleeps = _Sleeps()

        result = await execute_with_retry("op", operation, _FAST, sleep=sleeps)

        assert result == "recovered"
        assert operation.call_count == 2
        assert len(sleeps.calls) == 1

    @pytest.mark.asyncio
    async def test_context_carries_attempt_and_previous_delay(self) -> None:
        operation = _Flaky([ConnectionError("connection reset")])

        await execute_with_retry("storage.get", operation, _FAST, sleep=_Sleeps())

        first, second = operation.contexts
        assert first.operation == "storage.get"
        assert (first.attempt, first.max_attempts, first.delay_ms) == (1, 3, None)
        assert (second.attempt, second.delay_ms) == (2, 100)
        assert first.incident_id == second.incident_id
        assert first.incident_id.startswith("INC-")

    @pytest.mark.asyncio
    async def test_unknown_error_is_not_retried(self) -> None:
        operation = _Flaky([RuntimeError("something odd")])

        with pytest.raises(RuntimeError):
            await execute_with_retry("op", operation, _FAST, sleep=_Sleeps())

        assert operation.call_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_before_first_call(self) -> None:
        token = CancellationToken()
        token.cancel()
        operation = _Flaky([])

        with pytest.raises(asyncio.CancelledError):
            await execute_with_retry("op", operation, _FAST, sleep=_Sleeps(), cancel_token=token)

        assert operation.call_count == 0

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_prevents_next_attempt(self) -> None:
        token = CancellationToken()
        operation = _Flaky([ConnectionError("connection reset")])

        async def cancelling_sleep(_: float) -> None:
            token.cancel()

        with pytest.raises(asyncio.CancelledError):
            await execute_with_retry(
                "op", operation, _FAST, sleep=cancelling_sleep, cancel_token=token
            )

        assert operation.call_count == 1

    @pytest.mark.asyncio
    async def test_cancel_from_another_task_interrupts_real_backoff(self) -> None:
        token = CancellationToken()
        operation = _Flaky([ConnectionError("connection reset")])
        slow = RetryConfig(max_attempts=3, base_delay_ms=2000, max_delay_ms=2000, jitter_factor=0.0)
        loop = asyncio.get_running_loop()

        async def cancel_soon() -> None:
            await asyncio.sleep(0.05)
            token.cancel()

        canceller = asyncio.create_task(cancel_soon())
        started = loop.time()
        with pytest.raises(asyncio.CancelledError):
            await execute_with_retry("op", operation, slow, cancel_token=token)
        elapsed = loop.time() - started
        await canceller

        assert elapsed < 0.5
        assert operation.call_count == 1

    @pytest.mark.asyncio
    async def test_backoff_sleep_errors_propagate_with_token(self) -> None:
        operation = _Flaky([ConnectionError("connection reset")])

        async def broken_sleep(_: float) -> None:
            raise RuntimeError("clock unavailable")

        with pytest.raises(RuntimeError, match="clock unavailable"):
            await execute_with_retry(
                "op", operation, _FAST, sleep=broken_sleep, cancel_token=CancellationToken()
            )
