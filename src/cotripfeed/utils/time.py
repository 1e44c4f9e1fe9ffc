from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


DEFAULT_TZ = ZoneInfo("America/Denver")
DISPLAY_FORMAT = "%Y-%m-%d %H:%M %Z"


def parse_datetime(value: str, default_tz: ZoneInfo | timezone = timezone.utc) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=default_tz)
    return dt


def to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_display(dt: Optional[datetime], tz: str | ZoneInfo = DEFAULT_TZ) -> str:
    """Render a timestamp as ``YYYY-MM-DD HH:mm <abbrev>`` in a fixed zone.

    Naive values are taken as UTC so the result never depends on the host zone.
    A missing value renders the current time.
    """

    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    value = datetime.now(timezone.utc) if dt is None else to_utc(dt)
    return value.astimezone(zone).strftime(DISPLAY_FORMAT)
