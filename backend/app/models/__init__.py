"""
Models Package
==============

This is where all our data models live.
Import from here instead of the individual files.

Example:
    from app.models import StationRecord, ErrorType
"""

from .station import (
    # Enums
    ErrorType,
    Provider,

    # Stations
    StationRecord,
    StationView,
    Location,

    # Orders
    OrderRecord,
    BatteryLookupResult,
    OrderListResult,
    Pagination,

    # Admin
    TokenUpdateRequest,
    TokenStatusResponse,
)

__all__ = [
    "ErrorType",
    "Provider",
    "StationRecord",
    "StationView",
    "Location",
    "OrderRecord",
    "BatteryLookupResult",
    "OrderListResult",
    "Pagination",
    "TokenUpdateRequest",
    "TokenStatusResponse",
]
