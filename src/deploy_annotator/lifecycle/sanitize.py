"""Sanitization of user-derived strings before logging or annotating."""

from __future__ import annotations

_STRIPPED = str.maketrans("", "", "\n\r\t")


def sanitize_for_log(value: str | None) -> str:
    """Remove newline, carriage-return and tab characters."""
    if not value:
        return ""
    return value.translate(_STRIPPED)


def bounded(value: str, limit: int = 512) -> str:
    """Sanitize and truncate a response body for error details."""
    cleaned = sanitize_for_log(value)
    if len(cleaned) <= limit:
        return cleaned
    return cleaned[:limit] + "...(truncated)"
