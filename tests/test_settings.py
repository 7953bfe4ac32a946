from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

import cortex.settings as settings_module
from cortex.settings import CortexSettings

_CORTEX_VARS = (
    "CORTEX_LLM_MODEL",
    "CORTEX_LLM_PROVIDER",
    "CORTEX_LLM_API_BASE",
    "CORTEX_LLM_API_KEY",
    "CORTEX_LLM_TIMEOUT_S",
    "CORTEX_MAX_GENERATION_ROUNDS",
    "CORTEX_ENFORCE_WORD_COUNT",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(settings_module, "_ENV_LOADED", False)
    for name in _CORTEX_VARS:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def test_load_dotenv_reads_local_file(monkeypatch: pytest.MonkeyPatch, clean_env: Path) -> None:
    (clean_env / ".env").write_text(
        "# comment\nexport CORTEX_LLM_API_KEY='test-key'\nMALFORMED\n",
        encoding="utf-8",
    )

    settings_module.load_dotenv()
    assert os.getenv("CORTEX_LLM_API_KEY") == "test-key"
    monkeypatch.delenv("CORTEX_LLM_API_KEY")


def test_load_dotenv_does_not_override_existing(
    monkeypatch: pytest.MonkeyPatch, clean_env: Path
) -> None:
    (clean_env / ".env").write_text("CORTEX_LLM_API_KEY=file-key\n", encoding="utf-8")
    monkeypatch.setenv("CORTEX_LLM_API_KEY", "existing-key")

    settings_module.load_dotenv()
    assert os.getenv("CORTEX_LLM_API_KEY") == "existing-key"


def test_defaults(clean_env: Path) -> None:
    settings = CortexSettings.from_env()

    assert settings.llm_model == "gemini/gemini-2.5-pro"
    assert settings.llm_provider == "gemini"
    assert settings.llm_api_key is None
    assert settings.llm_timeout_s == 60.0
    assert settings.max_generation_rounds == 2
    assert settings.enforce_word_count is True


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch, clean_env: Path) -> None:
    monkeypatch.setenv("CORTEX_LLM_MODEL", "openai/gpt-4o-mini")
    monkeypatch.setenv("CORTEX_LLM_PROVIDER", "openai")
    monkeypatch.setenv("CORTEX_LLM_TIMEOUT_S", "15")
    monkeypatch.setenv("CORTEX_MAX_GENERATION_ROUNDS", "3")
    monkeypatch.setenv("CORTEX_ENFORCE_WORD_COUNT", "off")

    settings = CortexSettings.from_env()

    assert settings.llm_model == "openai/gpt-4o-mini"
    assert settings.llm_provider == "openai"
    assert settings.llm_timeout_s == 15.0
    assert settings.max_generation_rounds == 3
    assert settings.enforce_word_count is False


def test_rounds_are_bounded(monkeypatch: pytest.MonkeyPatch, clean_env: Path) -> None:
    monkeypatch.setenv("CORTEX_MAX_GENERATION_ROUNDS", "0")
    with pytest.raises(ValidationError):
        CortexSettings.from_env()
