"""
Provider Value Parsing
======================

Small helpers for turning loosely-typed provider JSON into clean values.

Both providers are sloppy about types: counts arrive as ints, strings or
null; timestamps arrive as epoch milliseconds, wall-clock strings, "" or 0.

Author: CUUB Battery Team
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

# ChargeNow reports wall-clock times in China Standard Time
PROVIDER_TIMEZONE = ZoneInfo("Asia/Shanghai")


def safe_int(value, default: int = 0) -> int:
    """Safely convert value to a non-negative int, handling None and invalid strings."""
    if value is None:
        return default
    try:
        return max(int(value), 0)
    except (ValueError, TypeError):
        return default


def optional_str(value) -> Optional[str]:
    """str(value), keeping None and "" as None."""
    if value is None or value == "":
        return None
    return str(value)


def epoch_ms_to_datetime(value) -> Optional[datetime]:
    """
    Convert epoch milliseconds to an aware UTC datetime.

    0, None, "" and anything unparseable mean "no timestamp" -> None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        millis = int(value)
    except (ValueError, TypeError):
        return None
    if millis <= 0:
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        # Out of range for the platform clock
        return None


def parse_provider_time(value, tz=PROVIDER_TIMEZONE) -> Optional[datetime]:
    """
    Parse a ChargeNow timestamp into an aware datetime.

    Accepts:
        "2025-01-28 14:02:11"       -> wall-clock in the provider zone
        "2025-01-28T06:02:11+00:00" -> kept as-is
        1738044131000 / "1738044131000" -> epoch milliseconds

    Returns None for missing values and "not returned" sentinels
    ("", "0", 0, None).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return epoch_ms_to_datetime(value)

    text = str(value).strip()
    if not text or text in ("0", "null", "None"):
        return None
    if text.isdigit():
        return epoch_ms_to_datetime(text)

    try:
        parsed = datetime.fromisoformat(text.replace("/", "-").replace("Z", "+00:00"))
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed
