import math
from datetime import datetime, timezone
from typing import Optional


def parse_iso_datetime(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into a naive UTC datetime (None when empty)"""
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_seconds(value) -> float:
    """Parse a client-reported duration in seconds; missing means 0"""
    if value is None or value == "":
        return 0.0
    seconds = float(value)
    if not math.isfinite(seconds) or seconds < 0:
        raise ValueError(f"Invalid duration: {value!r}")
    return seconds
