from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

"""Completion timestamp convention.

Completion times are written in one fixed civil time zone (not UTC, not the
requesting machine's zone) as ``DD/MM/YYYY, HH:MM:SS`` on a 24-hour clock, the
same text the calling team has always seen in the sheet.
"""

__all__ = [
    "COMPLETED_AT_FORMAT",
    "format_completed_at",
    "parse_completed_at",
    "resolve_timezone",
]

COMPLETED_AT_FORMAT = "%d/%m/%Y, %H:%M:%S"


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"unknown time zone: {name!r}") from e


def format_completed_at(moment: datetime, tz: ZoneInfo) -> str:
    """Render ``moment`` in ``tz``. Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=ZoneInfo("UTC"))
    return moment.astimezone(tz).strftime(COMPLETED_AT_FORMAT)


def parse_completed_at(text: str, tz: ZoneInfo) -> datetime | None:
    """Parse a stored completion time; returns None when it is blank or unrecognised.

    ISO 8601 values (written by other tools) are accepted as well.
    """
    text = (text or "").strip()
    if not text:
        return None
    try:
        return datetime.strptime(text, COMPLETED_AT_FORMAT).replace(tzinfo=tz)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed
