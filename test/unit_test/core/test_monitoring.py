"""
Unit tests for the Logfire monitoring module.

This test suite covers:
- Logfire initialization with various configurations
- Logging helpers being no-ops while Logfire is inactive
- Logging helpers forwarding to Logfire when active
- Graceful degradation when Logfire raises
"""

from unittest.mock import MagicMock, patch

import pytest

from codepilot_ai.core import monitoring
from codepilot_ai.core.config import Settings


@pytest.fixture(autouse=True)
def _reset_active(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(monitoring, "_logfire_active", False)


class TestInitializeLogfire:
    """Test Logfire initialization function."""

    @patch("codepilot_ai.core.monitoring.logger")
    def test_initialize_logfire_disabled(self, mock_logger):
        """Initialization is skipped when Logfire is disabled."""
        assert monitoring.initialize_logfire(Settings(_env_file=None, logfire_enabled=False)) is False

        mock_logger.info.assert_called_once()
        assert "disabled" in mock_logger.info.call_args[0][0].lower()
        assert monitoring.is_logfire_active() is False

    @patch("codepilot_ai.core.monitoring.logger")
    def test_initialize_logfire_no_token(self, mock_logger):
        """Initialization warns when token is not set."""
        settings = Settings(_env_file=None, logfire_enabled=True, logfire_token=None)

        assert monitoring.initialize_logfire(settings) is False

        mock_logger.warning.assert_called_once()
        assert "token" in mock_logger.warning.call_args[0][0].lower()

    @patch("codepilot_ai.core.monitoring.logfire")
    def test_initialize_logfire_configure_called_with_correct_params(self, mock_logfire):
        """logfire.configure receives the configured token, service and environment."""
        settings = Settings(
            _env_file=None,
            logfire_enabled=True,
            logfire_token="test-token",
            logfire_service_name="test-service",
            logfire_environment="test",
        )

        assert monitoring.initialize_logfire(settings) is True

        mock_logfire.configure.assert_called_once_with(
            token="test-token", service_name="test-service", environment="test"
        )
        assert monitoring.is_logfire_active() is True

    @patch("codepilot_ai.core.monitoring.logfire")
    def test_initialize_logfire_handles_general_exception(self, mock_logfire):
        """A failing configure leaves Logfire inactive."""
        mock_logfire.configure.side_effect = RuntimeError("bad token")
        settings = Settings(_env_file=None, logfire_enabled=True, logfire_token="t")

        assert monitoring.initialize_logfire(settings) is False
        assert monitoring.is_logfire_active() is False


class TestLoggingHelpers:
    """Test log_tool_execution, log_policy_decision and log_error."""

    @patch("codepilot_ai.core.monitoring.logfire")
    def test_helpers_are_noops_when_inactive(self, mock_logfire):
        monitoring.log_tool_execution("Read", success=True, duration_ms=1.0, attempts=1)
        monitoring.log_policy_decision("Read", action="block", reason="denied", severity="high")
        monitoring.log_error("RuntimeError", "boom")

        assert mock_logfire.method_calls == []

    @patch("codepilot_ai.core.monitoring.logfire")
    def test_log_tool_execution_success(self, mock_logfire, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(monitoring, "_logfire_active", True)

        monitoring.log_tool_execution("Read", success=True, duration_ms=12.5, attempts=2)

        mock_logfire.info.assert_called_once_with(
            "Tool execution finished", tool_name="Read", success=True, duration_ms=12.5, attempts=2
        )

    @patch("codepilot_ai.core.monitoring.logfire")
    def test_log_policy_decision_success(self, mock_logfire, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(monitoring, "_logfire_active", True)

        monitoring.log_policy_decision("execute_bash", action="dry-run", reason="needs diff", severity="low")

        mock_logfire.warn.assert_called_once()
        assert mock_logfire.warn.call_args.kwargs["action"] == "dry-run"

    @patch("codepilot_ai.core.monitoring.logfire")
    def test_log_error_with_context(self, mock_logfire, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(monitoring, "_logfire_active", True)

        monitoring.log_error("ValueError", "bad", {"tool_name": "Read"})

        kwargs = mock_logfire.error.call_args.kwargs
        assert kwargs == {"error_type": "ValueError", "error_message": "bad", "tool_name": "Read"}

    @patch("codepilot_ai.core.monitoring.logger")
    @patch("codepilot_ai.core.monitoring.logfire")
    def test_log_error_handles_exception(self, mock_logfire, mock_logger, monkeypatch: pytest.MonkeyPatch):
        """Logfire failures are logged at debug level and swallowed."""
        monkeypatch.setattr(monitoring, "_logfire_active", True)
        mock_logfire.error.side_effect = RuntimeError("network down")
        mock_logfire.info.side_effect = RuntimeError("network down")

        monitoring.log_error("TestError", "Test message")
        monitoring.log_tool_execution("Read", success=False, duration_ms=0, attempts=1)

        assert mock_logger.debug.call_count == 2
