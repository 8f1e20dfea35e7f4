"""
Input Validation Utilities
===========================

Common validation functions for IDs and admin inputs.

Author: CUUB Battery Team
"""

import re


_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]{1,64}$')


def validate_station_id(station_id: str) -> bool:
    """
    Validate a station (cabinet) ID.

    Args:
        station_id: e.g. "DTN00872" or "CUBT062411030004"

    Returns:
        True if alphanumeric (plus _ and -) and 1-64 chars long
    """
    if not station_id:
        return False
    return bool(_ID_PATTERN.match(station_id))


def validate_battery_id(battery_id: str) -> bool:
    """
    Validate a battery ID (e.g. "RL3D52000012").

    Same rules as station IDs.
    """
    if not battery_id:
        return False
    return bool(_ID_PATTERN.match(battery_id))


def parse_station_ids(raw: str) -> list[str]:
    """
    Split a comma-separated ID list, dropping blanks and duplicates.

    Order is kept: "A, B,,A" -> ["A", "B"]
    """
    ids: list[str] = []
    for part in raw.split(","):
        part = part.strip()
        if part and part not in ids:
            ids.append(part)
    return ids


def mask_token(token: str, visible: int = 4) -> str:
    """
    Hide most of a secret for display.

    "abcdef123456" -> "********3456"
    """
    if not token:
        return ""
    if len(token) <= visible:
        return "*" * len(token)
    return "*" * (len(token) - visible) + token[-visible:]
