"""Timestamp helpers for the ISO strings stored in AppData."""

from __future__ import annotations

from datetime import datetime


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 string into a naive local datetime.

    Accepts the ``Z`` suffix browsers emit. Returns None for empty or
    unparseable values.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def to_timestamp(moment: datetime) -> str:
    """ISO string with the local UTC offset, the format written back to documents."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.isoformat()


def months_between(earlier: datetime, later: datetime) -> int:
    """Calendar months from ``earlier`` to ``later`` (day of month ignored)."""
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)
