"""Tests for the logging configuration module."""

from pathlib import Path

import structlog

from issue_lifecycle.utils.logging import (
    SERVICE_NAME,
    LogEventNames,
    LogFormat,
    LogLevel,
    add_context_processor,
    bind_context,
    clear_context,
    configure_logging,
    sanitize_log_value,
    secret_sanitizer,
)

GITHUB_TOKEN = "ghp_" + "a1B2c3D4e5" * 3 + "f6G7h8"


class TestSanitizeLogValue:
    """Tests for sanitize_log_value function."""

    def test_sanitize_string_with_github_token(self) -> None:
        """Test that GitHub tokens are redacted."""
        result = sanitize_log_value(f"Token: {GITHUB_TOKEN}")
        assert "ghp_" not in result
        assert "[REDACTED]" in result

    def test_sanitize_zenhub_header(self) -> None:
        """Test that ZenHub tokens in headers are redacted."""
        result = sanitize_log_value("X-Authentication-Token: " + "0123456789abcdef" * 3)
        assert "0123456789abcdef" not in result

    def test_sanitize_string_without_secrets(self) -> None:
        """Test that strings without secrets are unchanged."""
        text = "lifecycle/stale added to istio/istio#123"
        assert sanitize_log_value(text) == text

    def test_strips_control_characters(self) -> None:
        """Test that ANSI codes from issue titles cannot reach the log."""
        assert sanitize_log_value("\x1b[31mred\x1b[0m title\x07") == "red title"

    def test_sanitize_nested_dict(self) -> None:
        """Test that nested dicts are recursively sanitized."""
        result = sanitize_log_value({"message": "test", "nested": {"token": GITHUB_TOKEN}})
        assert "[REDACTED]" in result["nested"]["token"]

    def test_sanitize_list_and_tuple(self) -> None:
        """Test that sequences keep their type."""
        assert sanitize_log_value(["normal", GITHUB_TOKEN])[1] == "[REDACTED]"
        assert isinstance(sanitize_log_value(("a", "b")), tuple)

    def test_sanitize_non_string(self) -> None:
        """Test that non-strings are passed through."""
        assert sanitize_log_value(123) == 123
        assert sanitize_log_value(12.5) == 12.5
        assert sanitize_log_value(True) is True
        assert sanitize_log_value(None) is None


class TestProcessors:
    """Tests for the structlog processors."""

    def test_sanitizer_redacts_secrets(self) -> None:
        """Test that the processor redacts secrets."""
        event_dict = {"event": "github_unavailable", "error": f"bad token {GITHUB_TOKEN}"}
        result = secret_sanitizer(None, "info", event_dict)  # type: ignore
        assert "[REDACTED]" in result["error"]

    def test_sanitizer_preserves_non_secrets(self) -> None:
        """Test that non-secret values are preserved."""
        event_dict = {"event": "lifecycle_sweep_stats", "repo": "istio/istio", "closed": 4}
        result = secret_sanitizer(None, "info", event_dict)  # type: ignore
        assert result == event_dict

    def test_context_processor_adds_service(self) -> None:
        """Test that every entry names the service."""
        result = add_context_processor(None, "info", {"event": "x"})  # type: ignore
        assert result["service"] == SERVICE_NAME
        assert "version" in result


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_console_format(self) -> None:
        """Test configuration with console format."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.CONSOLE)

    def test_configure_with_string_values(self) -> None:
        """Test configuration with lowercase string values."""
        configure_logging(level="warning", log_format="JSON")

    def test_json_output(self, capsys) -> None:
        """Test that JSON lines carry event, service and bound context."""
        configure_logging(level=LogLevel.INFO, log_format=LogFormat.JSON)
        bind_context(dry_run=True)
        try:
            structlog.get_logger("test").info(LogEventNames.SWEEP_STARTING, repos=3)
        finally:
            clear_context()

        err = capsys.readouterr().err
        assert '"event": "lifecycle_sweep_starting"' in err
        assert '"service": "issue-lifecycle"' in err
        assert '"dry_run": true' in err

    def test_configure_with_file_logging(self, tmp_path: Path) -> None:
        """Test that the log directory is created."""
        log_file = tmp_path / "logs" / "lifecycle.log"
        configure_logging(
            level=LogLevel.INFO,
            log_format=LogFormat.JSON,
            file_path=log_file,
            file_enabled=True,
        )
        assert log_file.parent.is_dir()


class TestEnums:
    """Tests for LogLevel and LogFormat."""

    def test_log_levels(self) -> None:
        """Test that all expected log levels exist."""
        assert [level.value for level in LogLevel] == [
            "DEBUG",
            "INFO",
            "WARNING",
            "ERROR",
            "CRITICAL",
        ]

    def test_log_formats(self) -> None:
        """Test that all expected formats exist."""
        assert LogFormat.JSON.value == "json"
        assert LogFormat.CONSOLE.value == "console"
