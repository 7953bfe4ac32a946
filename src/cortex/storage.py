"""Assessment storage collaborator and its retry-wrapped access helpers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from pydantic import BaseModel, Field

from cortex.assessment.models import ContextProfile
from cortex.errors import AssessmentNotFoundError
from cortex.retry.executor import DATABASE_RETRY_CONFIG, RetryContext, SleepFn, execute_with_retry

logger = logging.getLogger(__name__)


class AssessmentRecord(BaseModel):
    """The slice of a stored assessment the generation pipeline reads and writes."""

    assessment_id: str
    user_id: str | None = None
    context_profile: ContextProfile | None = None
    situation_assessment: dict[str, Any] | None = Field(
        default=None,
        description="Latest sanitized payload (structured or legacy), never raw model output",
    )
    situation_assessment_updated_at: str | None = None


class AssessmentStore(Protocol):
    async def get(self, assessment_id: str) -> AssessmentRecord | None: ...

    async def save_situation_assessment(
        self,
        assessment_id: str,
        payload: dict[str, Any],
        updated_at: str,
    ) -> None: ...


class InMemoryAssessmentStore:
    """Process-local store; production deployments plug in a database-backed store."""

    def __init__(self) -> None:
        self._records: dict[str, AssessmentRecord] = {}

    def put(self, record: AssessmentRecord) -> None:
        self._records[record.assessment_id] = record

    async def get(self, assessment_id: str) -> AssessmentRecord | None:
        record = self._records.get(assessment_id)
        return record.model_copy(deep=True) if record is not None else None

    async def save_situation_assessment(
        self,
        assessment_id: str,
        payload: dict[str, Any],
        updated_at: str,
    ) -> None:
        record = self._records.get(assessment_id)
        if record is None:
            raise AssessmentNotFoundError(assessment_id)
        self._records[assessment_id] = record.model_copy(
            update={
                "situation_assessment": payload,
                "situation_assessment_updated_at": updated_at,
            }
        )


async def load_assessment(
    store: AssessmentStore,
    assessment_id: str,
    *,
    sleep: SleepFn = asyncio.sleep,
) -> AssessmentRecord:
    """Fetch a record through the storage retry preset; raise when it does not exist."""

    async def fetch(_: RetryContext) -> AssessmentRecord | None:
        return await store.get(assessment_id)

    record = await execute_with_retry("storage.get_assessment", fetch, DATABASE_RETRY_CONFIG, sleep=sleep)
    if record is None:
        raise AssessmentNotFoundError(assessment_id)
    return record


async def save_situation_assessment(
    store: AssessmentStore,
    assessment_id: str,
    payload: dict[str, Any],
    updated_at: str,
    *,
    sleep: SleepFn = asyncio.sleep,
) -> bool:
    """Persist a sanitized payload; failures are logged and reported as ``False``."""

    async def write(_: RetryContext) -> None:
        await store.save_situation_assessment(assessment_id, payload, updated_at)

    try:
        await execute_with_retry(
            "storage.save_situation_assessment",
            write,
            DATABASE_RETRY_CONFIG,
            sleep=sleep,
        )
    except Exception as exc:
        logger.warning("Failed to save situation assessment for %s: %s", assessment_id, exc)
        return False
    return True
