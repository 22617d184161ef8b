"""Unit tests for the settings model and its grouped views."""

import pytest
from pydantic import ValidationError

from codepilot_ai.core.config import (
    GuardrailConfig,
    LogfireConfig,
    LoggingConfig,
    Settings,
    ToolRuntimeConfig,
    get_settings,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "CODEPILOT_AI_CACHE_TTL_MS",
        "CODEPILOT_AI_CACHE_MAX_ENTRIES",
        "CODEPILOT_AI_TOOL_DENYLIST",
        "CODEPILOT_AI_LOG_LEVEL",
        "LOGFIRE_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSettingsDefaults:
    """Defaults are permissive and match the runtime constants."""

    def test_runtime_defaults(self):
        runtime = Settings(_env_file=None).runtime

        assert isinstance(runtime, ToolRuntimeConfig)
        assert runtime.enable_cache is True
        assert runtime.cache_ttl_ms == 5 * 60 * 1000
        assert runtime.max_cache_entries == 200
        assert runtime.cache_sweep_interval_ms == 60_000
        assert runtime.max_tool_output_length == 10_000

    def test_guardrail_defaults_are_empty(self):
        guardrails = Settings(_env_file=None).guardrails

        assert isinstance(guardrails, GuardrailConfig)
        assert guardrails.model_dump(exclude_none=True) == {}

    def test_logging_and_logfire_defaults(self):
        settings = Settings(_env_file=None)

        assert isinstance(settings.logging, LoggingConfig)
        assert settings.logging.level == "INFO"
        assert settings.logging.enable_file is False
        assert isinstance(settings.logfire, LogfireConfig)
        assert settings.logfire.enabled is False
        assert settings.logfire.service_name == "codepilot-ai"


class TestSettingsFromEnvironment:
    """Values are read from prefixed environment variables."""

    def test_runtime_values_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CODEPILOT_AI_CACHE_TTL_MS", "1500")
        monkeypatch.setenv("CODEPILOT_AI_CACHE_MAX_ENTRIES", "7")

        runtime = Settings(_env_file=None).runtime

        assert runtime.cache_ttl_ms == 1500
        assert runtime.max_cache_entries == 7

    def test_list_values_are_json(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CODEPILOT_AI_TOOL_DENYLIST", '["execute_bash", "Edit"]')

        guardrails = Settings(_env_file=None).guardrails

        assert guardrails.tool_denylist == ["execute_bash", "Edit"]

    def test_field_names_are_accepted(self):
        settings = Settings(_env_file=None, cache_max_entries=3, max_runtime_ms=500)

        assert settings.runtime.max_cache_entries == 3
        assert settings.guardrails.max_runtime_ms == 500

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, cache_max_entries=0)


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
