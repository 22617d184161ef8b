"""
Configuration Settings.

This module defines the runtime configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", alias="CODEPILOT_AI_LOG_LEVEL", description="Root console log level")
    format: str = Field(
        default="detailed", alias="CODEPILOT_AI_LOG_FORMAT", description="Log format (simple, detailed, json)"
    )
    file_dir: str = Field(default="logs", alias="CODEPILOT_AI_LOG_FILE_DIR", description="Directory for log files")
    enable_file: bool = Field(
        default=False, alias="CODEPILOT_AI_ENABLE_FILE_LOGGING", description="Write DEBUG logs to a file"
    )

    model_config = {"populate_by_name": True}


class ToolRuntimeConfig(BaseModel):
    """Tool runtime cache and output configuration."""

    enable_cache: bool = Field(
        default=True, alias="CODEPILOT_AI_CACHE_ENABLED", description="Cache results of idempotent tools"
    )
    cache_ttl_ms: int = Field(
        default=5 * 60 * 1000, alias="CODEPILOT_AI_CACHE_TTL_MS", description="Cache entry time-to-live in ms"
    )
    max_cache_entries: int = Field(
        default=200, alias="CODEPILOT_AI_CACHE_MAX_ENTRIES", description="Maximum number of cached tool results"
    )
    cache_sweep_interval_ms: int = Field(
        default=60_000,
        alias="CODEPILOT_AI_CACHE_SWEEP_INTERVAL_MS",
        description="Minimum interval between lazy cache sweeps in ms",
    )
    max_tool_output_length: int = Field(
        default=10_000,
        alias="CODEPILOT_AI_MAX_TOOL_OUTPUT_LENGTH",
        description="Maximum characters kept from a single tool output",
    )

    model_config = {"populate_by_name": True}


class GuardrailConfig(BaseModel):
    """Static guardrail policy defaults."""

    tool_allowlist: Optional[list[str]] = Field(
        default=None, alias="CODEPILOT_AI_TOOL_ALLOWLIST", description="Only these tools may run (JSON list)"
    )
    tool_denylist: Optional[list[str]] = Field(
        default=None, alias="CODEPILOT_AI_TOOL_DENYLIST", description="These tools are always blocked (JSON list)"
    )
    max_runtime_ms: Optional[int] = Field(
        default=None, alias="CODEPILOT_AI_MAX_RUNTIME_MS", description="Cap on requested tool timeouts in ms"
    )
    max_file_size_bytes: Optional[int] = Field(
        default=None, alias="CODEPILOT_AI_MAX_FILE_SIZE_BYTES", description="Cap on written content size in bytes"
    )

    model_config = {"populate_by_name": True}


class LogfireConfig(BaseModel):
    """Logfire tracing configuration."""

    enabled: bool = Field(default=False, alias="LOGFIRE_ENABLED", description="Enable Logfire tracing")
    token: Optional[str] = Field(default=None, alias="LOGFIRE_TOKEN", description="Logfire write token")
    service_name: str = Field(default="codepilot-ai", alias="LOGFIRE_SERVICE_NAME", description="Service name")
    environment: str = Field(default="development", alias="LOGFIRE_ENVIRONMENT", description="Deployment environment")

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Runtime settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Logging
    # =====================================================================
    log_level: str = Field(default="INFO", alias="CODEPILOT_AI_LOG_LEVEL")
    log_format: str = Field(default="detailed", alias="CODEPILOT_AI_LOG_FORMAT")
    log_file_dir: str = Field(default="logs", alias="CODEPILOT_AI_LOG_FILE_DIR")
    enable_file_logging: bool = Field(default=False, alias="CODEPILOT_AI_ENABLE_FILE_LOGGING")

    # =====================================================================
    # Tool Runtime
    # =====================================================================
    cache_enabled: bool = Field(default=True, alias="CODEPILOT_AI_CACHE_ENABLED")
    cache_ttl_ms: int = Field(default=5 * 60 * 1000, ge=0, alias="CODEPILOT_AI_CACHE_TTL_MS")
    cache_max_entries: int = Field(default=200, ge=1, alias="CODEPILOT_AI_CACHE_MAX_ENTRIES")
    cache_sweep_interval_ms: int = Field(default=60_000, ge=0, alias="CODEPILOT_AI_CACHE_SWEEP_INTERVAL_MS")
    max_tool_output_length: int = Field(default=10_000, ge=1, alias="CODEPILOT_AI_MAX_TOOL_OUTPUT_LENGTH")

    # =====================================================================
    # Guardrails
    # =====================================================================
    tool_allowlist: Optional[list[str]] = Field(default=None, alias="CODEPILOT_AI_TOOL_ALLOWLIST")
    tool_denylist: Optional[list[str]] = Field(default=None, alias="CODEPILOT_AI_TOOL_DENYLIST")
    max_runtime_ms: Optional[int] = Field(default=None, ge=1, alias="CODEPILOT_AI_MAX_RUNTIME_MS")
    max_file_size_bytes: Optional[int] = Field(default=None, ge=1, alias="CODEPILOT_AI_MAX_FILE_SIZE_BYTES")

    # =====================================================================
    # Logfire
    # =====================================================================
    logfire_enabled: bool = Field(default=False, alias="LOGFIRE_ENABLED")
    logfire_token: Optional[str] = Field(default=None, alias="LOGFIRE_TOKEN")
    logfire_service_name: str = Field(default="codepilot-ai", alias="LOGFIRE_SERVICE_NAME")
    logfire_environment: str = Field(default="development", alias="LOGFIRE_ENVIRONMENT")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration from environment variables."""
        return LoggingConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def runtime(self) -> ToolRuntimeConfig:
        """Get tool runtime configuration from environment variables."""
        return ToolRuntimeConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def guardrails(self) -> GuardrailConfig:
        """Get guardrail defaults from environment variables."""
        return GuardrailConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def logfire(self) -> LogfireConfig:
        """Get Logfire configuration from environment variables."""
        return LogfireConfig.model_validate(self.model_dump(by_alias=True))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process settings, loaded once from the environment."""
    return Settings()
