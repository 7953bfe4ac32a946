"""LiteLLM gateway integration for outbound Situation Assessment generation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

try:
    from litellm import acompletion
except Exception:  # pragma: no cover - optional dependency in tests
    acompletion = None

from cortex.errors import GenerationBackendError, GenerationTimeoutError
from cortex.orchestrator.prompts import SYSTEM_PROMPT, build_prompt
from cortex.settings import CortexSettings

from .models import GenerationContext

logger = logging.getLogger(__name__)

_JSON_MODE_UNSUPPORTED_PROVIDERS = {"nvidia"}


def _read_mapping_value(obj: object, key: str) -> object:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _extract_content(response: object) -> str:
    choices = _read_mapping_value(response, "choices")
    if not isinstance(choices, list) or not choices:
        return ""

    first_choice = choices[0]
    message = _read_mapping_value(first_choice, "message")
    content = _read_mapping_value(message, "content")
    return content if isinstance(content, str) else ""


class LiteLLMClient:
    """Async wrapper around LiteLLM completion that returns raw model text.

    Instances are callables matching the orchestrator's ``generate(context)``
    contract. Timeouts are enforced by the orchestrator per call; the
    request-level timeout here is a backstop for the HTTP client.
    """

    def __init__(
        self,
        model_name: str = "gemini/gemini-2.5-pro",
        provider: str = "gemini",
        api_base: str | None = None,
        api_key: str | None = None,
        request_timeout_s: float = 60.0,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> None:
        self.model_name = model_name
        self.provider = provider.strip().lower()
        self.api_base = api_base
        self.api_key = api_key
        self.request_timeout_s = request_timeout_s
        self.temperature = temperature
        self.kwargs = kwargs

    @classmethod
    def from_settings(cls, settings: CortexSettings) -> LiteLLMClient:
        return cls(
            model_name=settings.llm_model,
            provider=settings.llm_provider,
            api_base=settings.llm_api_base,
            api_key=settings.llm_api_key,
            request_timeout_s=settings.llm_timeout_s,
        )

    async def __call__(self, context: GenerationContext) -> str:
        return await self.generate(context)

    async def generate(self, context: GenerationContext) -> str:
        """Send the assessment context to the configured model and return raw content."""
        if acompletion is None:
            raise RuntimeError("LiteLLM is not installed. Add 'litellm' to dependencies.")

        messages: list[dict[str, str]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(context)},
        ]

        completion_kwargs: dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "timeout": self.request_timeout_s,
        }
        completion_kwargs.update(self.kwargs)

        if self.temperature is not None:
            completion_kwargs["temperature"] = self.temperature
        if self.provider not in _JSON_MODE_UNSUPPORTED_PROVIDERS:
            completion_kwargs["response_format"] = {"type": "json_object"}
        if self.api_base:
            completion_kwargs["api_base"] = self.api_base
        if self.api_key:
            completion_kwargs["api_key"] = self.api_key

        logger.info(
            "Requesting situation assessment for %s (round %d) from %s",
            context.assessment_id,
            context.round,
            self.model_name,
        )
        try:
            response = await acompletion(**completion_kwargs)
        except Exception as err:
            if "timeout" in type(err).__name__.lower():
                raise GenerationTimeoutError(self.request_timeout_s) from err
            status_code = getattr(err, "status_code", None)
            raise GenerationBackendError(
                f"LLM Gateway Request Failed: {err}",
                status_code=status_code if isinstance(status_code, int) else None,
            ) from err

        return _extract_content(response)
