"""
Logging Configuration Module.

This module provides centralized logging configuration for CodePilot-AI.
It sets up structured logging with different levels for different modules.

Features:
- Configurable log levels per module
- Console and file logging
- Structured logging with JSON format support
"""

import logging
from pathlib import Path
from typing import Optional

from .config import get_settings

# Define log formats
SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

LOG_FILE_NAME = "codepilot_ai.log"

# Module-specific log levels
MODULE_LOG_LEVELS = {
    "codepilot_ai.agent_core": "DEBUG",
    "codepilot_ai.agent_core.runtime": "DEBUG",
    "codepilot_ai.agent_core.policy": "DEBUG",
    "codepilot_ai.agent_core.planning": "DEBUG",
    "codepilot_ai.agent_core.retry": "INFO",
    "codepilot_ai.agent_core.tools": "INFO",
    "codepilot_ai.core": "INFO",
    # Third-party libraries (reduce noise)
    "asyncio": "WARNING",
    "logfire": "WARNING",
}


def resolve_format(log_format: str) -> str:
    """Map a format name (simple, detailed, json) to a format string."""
    if log_format == "json":
        return JSON_FORMAT
    if log_format == "simple":
        return SIMPLE_FORMAT
    return DETAILED_FORMAT


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: Optional[bool] = None,
) -> None:
    """
    Configure logging for the application.

    Unspecified arguments fall back to the values in ``Settings``.

    Args:
        log_level: Override default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Override default format (simple, detailed, json)
        enable_file: Whether to enable file logging
    """
    cfg = get_settings().logging
    level = (log_level or cfg.level).upper()
    fmt = log_format or cfg.format
    to_file = cfg.enable_file if enable_file is None else enable_file

    formatter = logging.Formatter(resolve_format(fmt), datefmt="%Y-%m-%d %H:%M:%S")

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all levels, filter at handler level

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if to_file:
        log_dir = Path(cfg.file_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME)
        file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.info(f"Logging configured: level={level}, format={fmt}, file_logging={to_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The module name (typically __name__)

    Returns:
        A configured logger instance
    """
    return logging.getLogger(name)
