"""GenerationOrchestrator - the bounded generate / validate / fallback loop."""

from __future__ import annotations

import asyncio
import logging
import random
import time
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from pydantic import BaseModel

from cortex.assessment.models import ContextProfile, StructuredAssessment
from cortex.concurrency import CancellationToken
from cortex.errors import GenerationTimeoutError, InvalidAssessmentIdError
from cortex.fallback.templates import select_template
from cortex.generation.models import GenerationContext
from cortex.generation.parser import parse_assessment
from cortex.policy.validator import check_structure, find_assessment_violations
from cortex.retry.executor import (
    EXTERNAL_API_RETRY_CONFIG,
    RetryConfig,
    RetryContext,
    SleepFn,
    execute_with_retry,
)
from cortex.sanitizer.sanitize import sanitize_situation_assessment

from .models import (
    FailureReason,
    GenerationAttempt,
    GenerationMetadata,
    GenerationSource,
    SituationAssessmentWithDiagnostics,
    preview_raw_response,
)

logger = logging.getLogger(__name__)

GenerateFn = Callable[[GenerationContext], Awaitable[str]]

DEFAULT_MAX_GENERATION_ROUNDS = 2
DEFAULT_CALL_TIMEOUT_S = 60.0


def validate_assessment_id(assessment_id: object) -> str:
    """Return the normalized id or raise ``InvalidAssessmentIdError``."""
    if not isinstance(assessment_id, str) or not assessment_id.strip():
        raise InvalidAssessmentIdError("Assessment ID is required")
    candidate = assessment_id.strip()
    try:
        parsed = uuid.UUID(candidate)
    except ValueError as err:
        raise InvalidAssessmentIdError("Assessment ID must be a valid UUID") from err
    return str(parsed)


class _BackendReply(BaseModel):
    """A raw reply from one backend call, awaiting validation."""

    attempt_number: int
    start_time: datetime
    end_time: datetime
    raw: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GenerationOrchestrator:
    """
    Produces a sanitized Situation Assessment with a full diagnostic trace.

    A run moves through ``Attempting(n) -> Succeeded | Retrying | Exhausted``:
    - Each round invokes the backend through ``execute_with_retry``; every
      backend call, including transport retries inside a round, is one
      ``GenerationAttempt``.
    - A parse failure or policy violation ends the round; the next round
      samples again with a repair note.
    - A transport failure that escapes the retry executor, or running out of
      rounds, selects a static template.

    ``run`` never fails because of generation-side problems. It raises only
    for an invalid assessment id or when the caller cancels the run.
    """

    def __init__(
        self,
        generate: GenerateFn,
        *,
        model_name: str = "unknown",
        max_generation_rounds: int = DEFAULT_MAX_GENERATION_ROUNDS,
        retry_config: RetryConfig = EXTERNAL_API_RETRY_CONFIG,
        call_timeout_s: float = DEFAULT_CALL_TIMEOUT_S,
        enforce_word_count: bool = True,
        sleep: SleepFn = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        if max_generation_rounds < 1:
            raise ValueError("max_generation_rounds must be >= 1")
        self._generate = generate
        self._model_name = model_name
        self._max_rounds = max_generation_rounds
        self._retry_config = retry_config
        self._call_timeout_s = call_timeout_s
        self._enforce_word_count = enforce_word_count
        self._sleep = sleep
        self._rng = rng

    async def run(
        self,
        assessment_id: str,
        profile: ContextProfile | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> SituationAssessmentWithDiagnostics:
        """Execute one generation run and return the payload plus diagnostics."""
        assessment_id = validate_assessment_id(assessment_id)
        run_started = time.perf_counter()
        attempts: list[GenerationAttempt] = []
        previous_failure: FailureReason | None = None
        accepted: StructuredAssessment | None = None
        accepted_attempt: GenerationAttempt | None = None

        for round_number in range(1, self._max_rounds + 1):
            logger.info(
                "Orchestrator: starting round %d/%d for assessment %s",
                round_number,
                self._max_rounds,
                assessment_id,
            )
            context = GenerationContext(
                assessment_id=assessment_id,
                profile=profile,
                round=round_number,
                previous_failure=previous_failure.value if previous_failure else None,
            )

            try:
                reply = await execute_with_retry(
                    "situation-assessment.generate",
                    self._backend_call(context, attempts, cancel_token),
                    self._retry_config,
                    sleep=self._sleep,
                    rng=self._rng,
                    cancel_token=cancel_token,
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(
                    "Orchestrator: transport failure on round %d for assessment %s, "
                    "using fallback: %s",
                    round_number,
                    assessment_id,
                    exc,
                )
                break

            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            attempt, payload = self._evaluate(reply)
            attempts.append(attempt)

            if attempt.success:
                accepted, accepted_attempt = payload, attempt
                logger.info(
                    "Orchestrator: accepted attempt %d for assessment %s",
                    attempt.attempt_number,
                    assessment_id,
                )
                break

            previous_failure = attempt.failure_reason
            logger.warning(
                "Orchestrator: attempt %d rejected (%s) for assessment %s",
                attempt.attempt_number,
                attempt.failure_reason.value if attempt.failure_reason else "unknown",
                assessment_id,
            )

        if accepted is not None and accepted_attempt is not None:
            sanitized = sanitize_situation_assessment(accepted)
            source = (
                GenerationSource.ai
                if accepted_attempt.attempt_number == 1
                else GenerationSource.retry_fallback
            )
            metadata = GenerationMetadata(
                source=source,
                final_source=source,
                attempts=attempts,
                total_duration=self._elapsed_ms(run_started),
                model_version=accepted_attempt.model,
                generated_at=_now(),
            )
        else:
            template = select_template(profile)
            logger.warning(
                "Orchestrator: exhausted after %d attempt(s) for assessment %s; "
                "serving template '%s'",
                len(attempts),
                assessment_id,
                template.template_id,
            )
            sanitized = sanitize_situation_assessment(template.assessment)
            metadata = GenerationMetadata(
                source=GenerationSource.fallback,
                final_source=GenerationSource.fallback,
                attempts=attempts,
                total_duration=self._elapsed_ms(run_started),
                template_used=template.template_id,
                generated_at=_now(),
            )

        return SituationAssessmentWithDiagnostics(
            **sanitized.model_dump(exclude={"kind"}),
            debug=metadata,
        )

    def _backend_call(
        self,
        context: GenerationContext,
        attempts: list[GenerationAttempt],
        cancel_token: CancellationToken | None,
    ) -> Callable[[RetryContext], Awaitable[_BackendReply]]:
        """Build the operation handed to the retry executor for one round.

        Failed calls are appended to ``attempts`` here; successful calls are
        appended by ``run`` once their output has been validated.
        """

        async def call(retry_context: RetryContext) -> _BackendReply:
            attempt_number = self._next_attempt_number(attempts)
            started = _now()
            try:
                raw = await asyncio.wait_for(self._generate(context), timeout=self._call_timeout_s)
            except GenerationTimeoutError as exc:
                attempts.append(
                    self._failed_attempt(attempt_number, started, FailureReason.timeout, raw=str(exc))
                )
                raise
            except asyncio.TimeoutError as exc:
                timeout_error = GenerationTimeoutError(self._call_timeout_s)
                attempts.append(
                    self._failed_attempt(
                        attempt_number,
                        started,
                        FailureReason.timeout,
                        raw=str(timeout_error),
                    )
                )
                raise timeout_error from exc
            except Exception as exc:
                attempts.append(
                    self._failed_attempt(attempt_number, started, FailureReason.api_error, raw=str(exc))
                )
                raise

            if cancel_token is not None and cancel_token.is_cancelled:
                logger.info(
                    "Orchestrator: discarding attempt %d for cancelled run %s",
                    attempt_number,
                    context.assessment_id,
                )
            return _BackendReply(
                attempt_number=attempt_number,
                start_time=started,
                end_time=_now(),
                raw=raw if isinstance(raw, str) else "",
            )

        return call

    def _evaluate(self, reply: _BackendReply) -> tuple[GenerationAttempt, StructuredAssessment | None]:
        """Parse and validate a raw reply; unexpected errors count as a parse failure."""
        try:
            return self._evaluate_reply(reply)
        except Exception as exc:
            logger.exception(
                "Orchestrator: could not evaluate attempt %d", reply.attempt_number
            )
            return (
                GenerationAttempt(
                    attempt_number=reply.attempt_number,
                    model=self._model_name,
                    start_time=reply.start_time,
                    end_time=reply.end_time,
                    success=False,
                    failure_reason=FailureReason.parse_error,
                    parse_error=f"{type(exc).__name__}: {exc}"[:200],
                    raw_response=preview_raw_response(reply.raw),
                ),
                None,
            )

    def _evaluate_reply(
        self, reply: _BackendReply
    ) -> tuple[GenerationAttempt, StructuredAssessment | None]:
        base = {
            "attempt_number": reply.attempt_number,
            "model": self._model_name,
            "start_time": reply.start_time,
            "end_time": reply.end_time,
            "raw_response": preview_raw_response(reply.raw),
        }

        parsed = parse_assessment(reply.raw)
        if not parsed.success or parsed.assessment is None:
            return (
                GenerationAttempt(
                    **base,
                    success=False,
                    failure_reason=FailureReason.parse_error,
                    parse_error=parsed.error,
                ),
                None,
            )

        violations = find_assessment_violations(parsed.assessment)
        if violations:
            logger.warning(
                "Orchestrator: policy violation on attempt %d in fields %s",
                reply.attempt_number,
                sorted(violations),
            )
            return (
                GenerationAttempt(
                    **base,
                    success=False,
                    failure_reason=FailureReason.policy_violation,
                    policy_violation=True,
                ),
                None,
            )

        blocking = [
            issue
            for issue in check_structure(parsed.assessment, enforce_word_count=self._enforce_word_count)
            if issue.blocking
        ]
        if blocking:
            logger.warning(
                "Orchestrator: structural violation on attempt %d: %s",
                reply.attempt_number,
                "; ".join(issue.message for issue in blocking),
            )
            return (
                GenerationAttempt(
                    **base,
                    success=False,
                    failure_reason=FailureReason.policy_violation,
                    policy_violation=False,
                ),
                None,
            )

        return GenerationAttempt(**base, success=True), parsed.assessment

    def _failed_attempt(
        self,
        attempt_number: int,
        started: datetime,
        reason: FailureReason,
        *,
        raw: str | None,
    ) -> GenerationAttempt:
        return GenerationAttempt(
            attempt_number=attempt_number,
            model=self._model_name,
            start_time=started,
            end_time=_now(),
            success=False,
            failure_reason=reason,
            raw_response=preview_raw_response(raw),
        )

    @staticmethod
    def _next_attempt_number(attempts: list[GenerationAttempt]) -> int:
        return attempts[-1].attempt_number + 1 if attempts else 1

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
