"""
Client-safe error messages.

Anything returned in an HTTP ``detail`` passes through here so stack traces,
file paths, SQL errors and credentials never reach the browser.
"""

from __future__ import annotations

import re

from lifeos.observability.logging import get_logger

logger = get_logger(__name__)

SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.py",
    r"[A-Za-z]:\\[^\s]+",
    # Tracebacks
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    r"line \d+",
    # Database errors
    r"sqlite3?\.",
    r"UNIQUE constraint",
    r"no such (table|column)",
    # Credentials
    r"AIza[0-9A-Za-z_-]{20,}",
    r"[A-Za-z0-9_-]{32,}",
    r"Bearer [A-Za-z0-9._-]+",
    r"apikey=",
    # Internal module names
    r"lifeos\.[a-z_.]+",
]

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication required.",
    403: "Access denied.",
    404: "Resource not found.",
    422: "Invalid data format.",
    429: "Too many requests. Please try again later.",
    500: "An internal error occurred. Please try again later.",
    502: "The AI service could not complete the request. Please try again.",
    503: "Service temporarily unavailable.",
}


def sanitize_error_message(
    message: str,
    status_code: int = 500,
    allow_plain_messages: bool = True,
) -> str:
    """
    Return ``message`` if it is safe to show, else a generic one for ``status_code``.

    Short single-line messages without brackets are passed through for 4xx
    and 502 responses (validation and AI-flow errors are written for users).
    """
    fallback = GENERIC_MESSAGES.get(status_code, "An error occurred.")
    if not message:
        return fallback

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return fallback

    user_facing = status_code < 500 or status_code == 502
    if (
        user_facing
        and allow_plain_messages
        and len(message) < 300
        and not any(c in message for c in ["{", "}", "[", "]", "\n"])
    ):
        return message

    return fallback


def get_safe_error_detail(
    error: Exception,
    status_code: int = 500,
    context: str | None = None,
) -> str:
    """
    Log ``error`` in full and return what the client may see.

    For 5xx (other than 502) the ``context`` string, when given, replaces the
    error text entirely.
    """
    logger.error("Error (status=%d): %s - %s", status_code, type(error).__name__, str(error))

    if context and status_code >= 500 and status_code != 502:
        return context
    return sanitize_error_message(str(error), status_code)
