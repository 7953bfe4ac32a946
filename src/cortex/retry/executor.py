"""Bounded async retry with exponential backoff and jitter."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from cortex.concurrency import CancellationToken
from cortex.errors import generate_incident_id

from .classifier import is_database_retryable_error, is_retryable_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


class RetryConfig(BaseModel):
    """Retry budget and backoff shape for one class of operations."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay_ms: float = Field(default=1000, ge=0)
    max_delay_ms: float = Field(default=30000, ge=0)
    jitter_factor: float = Field(default=0.1, ge=0.0, le=1.0)
    retryable: Callable[[BaseException], bool] = Field(default=is_retryable_error, exclude=True)


class RetryContext(BaseModel):
    """Per-attempt context handed to the wrapped operation."""

    operation: str
    incident_id: str
    attempt: int
    max_attempts: int
    delay_ms: int | None = None


DEFAULT_RETRY_CONFIG = RetryConfig()

# External API calls (text generation backend).
EXTERNAL_API_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay_ms=2000,
    max_delay_ms=30000,
    jitter_factor=0.2,
)

# Storage calls: shorter budget and delays.
DATABASE_RETRY_CONFIG = RetryConfig(
    max_attempts=2,
    base_delay_ms=500,
    max_delay_ms=5000,
    jitter_factor=0.1,
    retryable=is_database_retryable_error,
)


def compute_delay_ms(
    attempt: int,
    config: RetryConfig,
    rng: random.Random | None = None,
) -> float:
    """Return the backoff delay after a failed ``attempt`` (1-based)."""
    exponential = config.base_delay_ms * (2 ** (attempt - 1))
    capped = min(exponential, config.max_delay_ms)
    spread = (rng or random).uniform(-config.jitter_factor, config.jitter_factor)
    return max(0.0, min(capped * (1 + spread), config.max_delay_ms))


async def _backoff(
    sleep: SleepFn,
    seconds: float,
    cancel_token: CancellationToken | None,
) -> None:
    """Sleep between attempts; a cancelled token cuts the wait short."""
    if cancel_token is None:
        await sleep(seconds)
        return

    sleeper = asyncio.ensure_future(sleep(seconds))
    waiter = asyncio.ensure_future(cancel_token.wait())
    try:
        await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, waiter):
            if not task.done():
                task.cancel()
        await asyncio.gather(sleeper, waiter, return_exceptions=True)
    cancel_token.raise_if_cancelled()
    if not sleeper.cancelled() and sleeper.exception() is not None:
        raise sleeper.exception()  # type: ignore[misc]


async def execute_with_retry(
    operation_name: str,
    operation: Callable[[RetryContext], Awaitable[T]],
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    *,
    sleep: SleepFn = asyncio.sleep,
    rng: random.Random | None = None,
    cancel_token: CancellationToken | None = None,
) -> T:
    """
    Run ``operation`` until it succeeds or the retry budget is spent.

    Non-retryable errors propagate after the first failure. When every attempt
    fails with a retryable error, the last error is re-raised; turning that
    into a fallback is the caller's job.
    """
    incident_id = generate_incident_id()
    started = time.perf_counter()
    logger.debug(
        "Retry[%s]: starting %s with max_attempts=%d",
        incident_id,
        operation_name,
        config.max_attempts,
    )

    delay_ms: int | None = None
    for attempt in range(1, config.max_attempts + 1):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        context = RetryContext(
            operation=operation_name,
            incident_id=incident_id,
            attempt=attempt,
            max_attempts=config.max_attempts,
            delay_ms=delay_ms,
        )
        try:
            result = await operation(context)
        except Exception as exc:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            retryable = config.retryable(exc)
            is_last = attempt >= config.max_attempts
            logger.warning(
                "Retry[%s]: %s attempt %d/%d failed after %dms (%s): %s",
                incident_id,
                operation_name,
                attempt,
                config.max_attempts,
                elapsed_ms,
                "retryable" if retryable else "non-retryable",
                exc,
            )
            if not retryable:
                raise
            if is_last:
                logger.error(
                    "Retry[%s]: %s exhausted all %d attempts",
                    incident_id,
                    operation_name,
                    config.max_attempts,
                )
                raise

            delay_ms = round(compute_delay_ms(attempt, config, rng))
            logger.debug(
                "Retry[%s]: retrying %s in %dms (attempt %d)",
                incident_id,
                operation_name,
                delay_ms,
                attempt + 1,
            )
            await _backoff(sleep, delay_ms / 1000, cancel_token)
            continue

        if attempt > 1:
            logger.info(
                "Retry[%s]: %s succeeded on attempt %d/%d",
                incident_id,
                operation_name,
                attempt,
                config.max_attempts,
            )
        return result

    # The loop always returns or raises; max_attempts >= 1 is enforced by RetryConfig.
    raise RuntimeError(f"Retry loop for '{operation_name}' ended without a result.")
