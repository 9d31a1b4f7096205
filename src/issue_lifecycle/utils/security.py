"""Security utilities for secret redaction and input validation.

Redaction is fail-closed: if a pattern cannot be compiled or applied,
the operation raises instead of passing the text through unredacted.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

log = structlog.get_logger()


class SecurityError(Exception):
    """Base exception for security-related errors."""


class RedactionError(SecurityError):
    """Raised when secret redaction fails."""


# Repository name validation pattern
REPO_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+/[a-zA-Z0-9_.-]+$")

# Characters that must never reach a gh argument
SHELL_METACHARACTERS = frozenset(
    [";", "|", "&", "`", "$", "(", ")", "{", "}", "<", ">", "\\", "\n", "\r", "\t", "\x00"]
)


class SecretRedactor:
    """Detects and redacts secrets from text.

    Usage:
        redactor = SecretRedactor()
        safe_text = redactor.redact(potentially_sensitive_text)

    Attributes:
        placeholder: The string to replace secrets with (default: "[REDACTED]").
    """

    DEFAULT_PATTERNS: tuple[tuple[str, str], ...] = (
        (
            r"(?i)(api[_-]?key|secret|token|password|credential)\s*[=:]\s*[\"']?[\w-]{16,}",
            "Generic secret",
        ),
        # GitHub
        (r"ghp_[a-zA-Z0-9]{36}", "GitHub PAT"),
        (r"github_pat_[a-zA-Z0-9_]{22,}", "GitHub fine-grained PAT"),
        (r"gho_[a-zA-Z0-9]{36}", "GitHub OAuth token"),
        (r"ghu_[a-zA-Z0-9]{36}", "GitHub user-to-server token"),
        (r"ghs_[a-zA-Z0-9]{36}", "GitHub server-to-server token"),
        (r"ghr_[a-zA-Z0-9]{36}", "GitHub refresh token"),
        # ZenHub API tokens are long hex strings
        (r"(?i)x-authentication-token\s*[=:]\s*[\"']?[a-f0-9]{32,}", "ZenHub API token"),
        # JWT tokens
        (r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*", "JWT token"),
        (r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----", "Private key header"),
    )

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        custom_patterns: Sequence[tuple[str, str]] | None = None,
    ) -> None:
        """Initialize the SecretRedactor.

        Args:
            placeholder: String to replace detected secrets with.
            custom_patterns: Additional (pattern, name) tuples to detect.

        Raises:
            RedactionError: If any pattern fails to compile.
        """
        self.placeholder = placeholder
        self._pattern_names: dict[re.Pattern[str], str] = {}

        all_patterns = list(self.DEFAULT_PATTERNS)
        if custom_patterns:
            all_patterns.extend(custom_patterns)

        try:
            for pattern_str, name in all_patterns:
                self._pattern_names[re.compile(pattern_str)] = name
        except re.error as e:
            msg = f"Failed to compile secret pattern '{pattern_str}': {e}"
            log.error("pattern_compilation_failed", pattern=pattern_str, error=str(e))
            raise RedactionError(msg) from e

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        """Return the list of compiled patterns."""
        return list(self._pattern_names.keys())

    def redact(self, text: str) -> str:
        """Redact all secrets from the given text.

        Raises:
            RedactionError: If redaction fails for any reason.
        """
        if not text:
            return text

        try:
            result = text
            for pattern in self._pattern_names:
                result = pattern.sub(self.placeholder, result)
            return result
        except Exception as e:
            log.error("redaction_failed", error=str(e))
            raise RedactionError(f"Redaction failed: {e}") from e

    def has_secrets(self, text: str) -> bool:
        """Check if text contains any secrets."""
        if not text:
            return False
        return any(pattern.search(text) for pattern in self._pattern_names)


def validate_repo_name(repo: str) -> bool:
    """Validate that a repository name is safe.

    Repository names must match owner/repo where both parts contain only
    alphanumeric characters, underscores, hyphens, and periods.

    Args:
        repo: The repository name to validate (e.g., "istio/istio").

    Returns:
        True if the repository name is valid, False otherwise.
    """
    if not repo:
        return False

    if any(char in repo for char in SHELL_METACHARACTERS):
        return False

    return bool(REPO_NAME_PATTERN.match(repo))


def sanitize_for_logging(text: str) -> str:
    """Remove ANSI escape codes and control characters from text.

    Args:
        text: The text to sanitize.

    Returns:
        The text with ANSI codes and control characters removed.
    """
    if not text:
        return text

    text = re.sub(r"\x1b\[[0-9;]*m", "", text)
    return re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
