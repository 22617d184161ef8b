"""
Monitoring and Tracing Configuration Module.

This module provides integration with Pydantic Logfire for tracing the tool
execution pipeline, including:
- Tool execution outcomes and latency
- Guardrail decisions (blocks and dry-runs)
- Error tracking

Logfire is only configured when ``LOGFIRE_ENABLED`` is set and a token is
available. Every helper is a cheap no-op otherwise, and a Logfire failure is
logged at debug level instead of reaching the caller.
"""

import logging
from typing import Any, Optional

import logfire

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

_logfire_active = False


def initialize_logfire(settings: Optional[Settings] = None) -> bool:
    """
    Initialize Pydantic Logfire for monitoring and tracing.

    Args:
        settings: Settings to read the Logfire configuration from. Defaults to
            the process settings.

    Returns:
        True if Logfire was configured, False otherwise.
    """
    global _logfire_active

    cfg = (settings or get_settings()).logfire
    if not cfg.enabled:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return False

    if not cfg.token:
        logger.warning(
            "Logfire is enabled but LOGFIRE_TOKEN is not set. "
            "Monitoring will not work. Set LOGFIRE_TOKEN to enable Logfire."
        )
        return False

    try:
        logfire.configure(
            token=cfg.token,
            service_name=cfg.service_name,
            environment=cfg.environment,
        )
    except Exception as e:
        logger.warning(f"Failed to configure Logfire: {e}")
        return False

    _logfire_active = True
    logger.info(f"Logfire configured for service '{cfg.service_name}' ({cfg.environment})")
    return True


def is_logfire_active() -> bool:
    """Return whether Logfire has been configured in this process."""
    return _logfire_active


def log_tool_execution(tool_name: str, *, success: bool, duration_ms: float, attempts: int) -> None:
    """
    Log a finished tool execution.

    Args:
        tool_name: Name of the executed tool
        success: Whether the handler produced output
        duration_ms: Wall time of the execution including retries
        attempts: Number of handler attempts
    """
    if not _logfire_active:
        return
    try:
        logfire.info(
            "Tool execution finished",
            tool_name=tool_name,
            success=success,
            duration_ms=duration_ms,
            attempts=attempts,
        )
    except Exception:
        logger.debug(f"Could not log tool execution to Logfire: tool={tool_name}")


def log_policy_decision(tool_name: str, *, action: str, reason: Optional[str], severity: Optional[str]) -> None:
    """
    Log a guardrail decision that stopped a tool from running normally.

    Args:
        tool_name: Name of the requested tool
        action: Decision action (block, dry-run)
        reason: Human-readable reason
        severity: Decision severity
    """
    if not _logfire_active:
        return
    try:
        logfire.warn(
            "Guardrail decision",
            tool_name=tool_name,
            action=action,
            reason=reason,
            severity=severity,
        )
    except Exception:
        logger.debug(f"Could not log policy decision to Logfire: tool={tool_name}")


def log_error(error_type: str, error_message: str, context: Optional[dict[str, Any]] = None) -> None:
    """
    Log an error with context for debugging.

    Args:
        error_type: Type of error
        error_message: Error message
        context: Additional context dictionary
    """
    if not _logfire_active:
        return
    try:
        logfire.error(
            "{error_type}: {error_message}",
            error_type=error_type,
            error_message=error_message,
            **(context or {}),
        )
    except Exception:
        logger.debug(f"Could not log error to Logfire: {error_type}")
