"""
Utility modules for the battery station backend.
"""

from app.utils.validation import (
    validate_station_id,
    validate_battery_id,
    parse_station_ids,
    mask_token,
)
from app.utils.parsing import (
    safe_int,
    optional_str,
    epoch_ms_to_datetime,
    parse_provider_time,
)

__all__ = [
    "validate_station_id",
    "validate_battery_id",
    "parse_station_ids",
    "mask_token",
    "safe_int",
    "optional_str",
    "epoch_ms_to_datetime",
    "parse_provider_time",
]
