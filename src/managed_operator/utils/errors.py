"""Error sanitization utilities to keep credentials out of logs, events and conditions."""

import re
from typing import Any

# Patterns whose captured value is replaced by a marker
SENSITIVE_PATTERNS = [
    r"(authorization[:\s]+bearer)\s+[A-Za-z0-9\-\._~\+/]+=*",
    r"(aws_access_key_id[=:\s]+)[A-Z0-9]{16,128}",
    r"(aws_secret_access_key[=:\s]+)[A-Za-z0-9/+=]{40}",
    r"(x-amz-security-token[:\s]+)[A-Za-z0-9/+=]+",
    r"(://[^:/\s]+:)[^@\s]+(@)",
]

# Keys whose values are redacted completely
SENSITIVE_FIELDS = {
    "password",
    "secret",
    "token",
    "credentials",
    "access_key",
    "secret_key",
    "private_key",
}

REDACTED = "[REDACTED]"


def sanitize_error_message(message: str) -> str:
    """Sanitize an error message so it can be written to status or events.

    Args:
        message: Original error message

    Returns:
        Message with credential-like values redacted
    """
    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(
            pattern,
            lambda m: m.group(1) + " " + REDACTED + (m.group(2) if m.lastindex == 2 else ""),
            sanitized,
            flags=re.IGNORECASE,
        )

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"\b({field})[=:]\s*([^\s,;\)]+)",
            rf"\1: {REDACTED}",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize an exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message, falling back to the exception type name
    """
    return sanitize_error_message(str(error)) or type(error).__name__


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize a dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Copy of the dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = REDACTED
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
