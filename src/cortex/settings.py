"""Environment-driven settings and a minimal .env loader for local secrets."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

_ENV_LOADED = False

_TRUE_VALUES = {"1", "true", "yes", "on"}


def load_dotenv(*, override: bool = False) -> None:
    """Load the first .env file found from the current directory upward."""
    global _ENV_LOADED
    if _ENV_LOADED and not override:
        return

    env_path = _find_env_file()
    if env_path is None:
        _ENV_LOADED = True
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        parsed = _parse_env_line(raw_line)
        if parsed is None:
            continue
        key, value = parsed
        if override or key not in os.environ:
            os.environ[key] = value

    _ENV_LOADED = True


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("export "):
        line = line[len("export ") :].strip()
    if "=" not in line:
        return None

    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None

    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return key, value


def _find_env_file() -> Path | None:
    cwd = Path.cwd()
    for base in [cwd, *cwd.parents]:
        candidate = base / ".env"
        if candidate.is_file():
            return candidate
    return None


class CortexSettings(BaseModel):
    """Runtime configuration for the generation pipeline."""

    llm_model: str = "gemini/gemini-2.5-pro"
    llm_provider: str = "gemini"
    llm_api_base: str | None = None
    llm_api_key: str | None = None
    llm_timeout_s: float = Field(default=60.0, gt=0.0, le=600.0)
    max_generation_rounds: int = Field(default=2, ge=1, le=5)
    enforce_word_count: bool = True

    @classmethod
    def from_env(cls) -> CortexSettings:
        """Build settings from ``CORTEX_*`` environment variables (after loading .env)."""
        load_dotenv()
        values: dict[str, object] = {}

        for field_name in ("llm_model", "llm_provider", "llm_api_base", "llm_api_key"):
            raw = os.getenv(f"CORTEX_{field_name.upper()}")
            if raw:
                values[field_name] = raw

        timeout = os.getenv("CORTEX_LLM_TIMEOUT_S")
        if timeout:
            values["llm_timeout_s"] = float(timeout)

        rounds = os.getenv("CORTEX_MAX_GENERATION_ROUNDS")
        if rounds:
            values["max_generation_rounds"] = int(rounds)

        enforce = os.getenv("CORTEX_ENFORCE_WORD_COUNT")
        if enforce:
            values["enforce_word_count"] = enforce.strip().lower() in _TRUE_VALUES

        return cls.model_validate(values)
