"""
Station & Order Models
======================
Pydantic models for station status, rental orders and lookup results.

Every adapter in app/services returns one of these. Failures are values
here too: a StationRecord with error=True, or a result with success=False.
Nothing in the service layer raises to tell the caller something broke.

DATA SHAPES:
1. StationRecord - slot counts for one rental cabinet
2. OrderRecord - one battery rental (borrowed / returned instants)
3. BatteryLookupResult - result of "find battery by id"
4. OrderListResult - one page of orders from ChargeNow

Author: CUUB Battery Team
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional
from datetime import datetime
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class ErrorType(str, Enum):
    """
    Why an upstream call failed.

    - NETWORK_ERROR: Could not reach the provider, or it timed out
    - UPSTREAM_STATUS_ERROR: Provider answered with a non-2xx status
    - UPSTREAM_SHAPE_ERROR: 2xx, but the expected container field is missing
    - NOT_FOUND: Well-formed response without a matching record
    """
    NETWORK_ERROR = "network_error"
    UPSTREAM_STATUS_ERROR = "upstream_status_error"
    UPSTREAM_SHAPE_ERROR = "upstream_shape_error"
    NOT_FOUND = "not_found"


class Provider(str, Enum):
    """The two upstream battery-rental backends."""
    CHARGENOW = "chargenow"
    ENERGO = "energo"


# =============================================================================
# STATIONS
# =============================================================================

class StationRecord(BaseModel):
    """
    Slot counts for one station (cabinet).

    Built fresh on every adapter call and never mutated afterwards, so the
    cache can hand the same instance to many requests.

    Fields:
        id: Station identifier as the frontend knows it (e.g. "DTN00872")
        available: Empty slots - where a battery can be returned
        occupied: Busy slots - batteries ready to be rented
        error: True when the provider could not be reached or parsed.
               available/occupied are meaningless in that case.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Station identifier")
    available: int = Field(default=0, ge=0, description="Empty slots")
    occupied: int = Field(default=0, ge=0, description="Occupied slots")
    error: bool = Field(default=False, description="Provider call failed")
    error_type: Optional[ErrorType] = Field(None, description="Failure category")
    message: Optional[str] = Field(None, description="Failure details")
    status: Optional[int] = Field(None, description="Upstream HTTP status on failure")
    provider: Optional[Provider] = Field(None, description="Which backend answered")
    raw_data: Optional[dict[str, Any]] = Field(None, description="Upstream payload")

    @classmethod
    def failed(
        cls,
        station_id: str,
        error_type: ErrorType,
        message: str,
        provider: Optional[Provider] = None,
        status: Optional[int] = None,
    ) -> "StationRecord":
        """Shortcut for the error shape every adapter returns."""
        return cls(
            id=station_id,
            error=True,
            error_type=error_type,
            message=message,
            provider=provider,
            status=status,
        )


class StationView(BaseModel):
    """
    What GET /api/stations returns for each station.

    A StationRecord merged with the catalogue entry (name + coordinates).
    """
    id: str
    name: str
    address: Optional[str] = None
    coordinates: list[float] = Field(default_factory=lambda: [0.0, 0.0])
    available: int = 0
    occupied: int = 0
    error: bool = False


class Location(BaseModel):
    """A physical station in the catalogue."""
    id: str
    name: str
    address: str
    coordinates: list[float] = Field(..., description="[longitude, latitude]")


# =============================================================================
# ORDERS
# =============================================================================

class OrderRecord(BaseModel):
    """
    One battery rental, normalized across providers.

    returned_at is None while the rental is open. Both providers have
    their own way of saying "not returned yet" (missing field, empty
    string, epoch 0); adapters turn all of them into None.

    Serialized with the field names the frontend already reads
    (pBatteryid, pBorrowtime, pGhtime).
    """
    model_config = ConfigDict(populate_by_name=True)

    battery_id: str = Field(..., serialization_alias="pBatteryid")
    borrowed_at: Optional[datetime] = Field(None, serialization_alias="pBorrowtime")
    returned_at: Optional[datetime] = Field(None, serialization_alias="pGhtime")
    order_no: Optional[str] = Field(None, serialization_alias="orderNo")
    status: Optional[Any] = None
    device_id: Optional[str] = Field(None, serialization_alias="deviceid")
    provider: Optional[Provider] = None
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @property
    def is_returned(self) -> bool:
        return self.returned_at is not None


class BatteryLookupResult(BaseModel):
    """Result of find_battery_by_id() on either provider."""
    success: bool
    data: Optional[OrderRecord] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None


class Pagination(BaseModel):
    current: Optional[int] = None
    size: Optional[int] = None
    total: Optional[int] = None
    pages: Optional[int] = None


class OrderListResult(BaseModel):
    """One page of ChargeNow orders."""
    success: bool
    data: list[OrderRecord] = Field(default_factory=list)
    pagination: Optional[Pagination] = None
    error: Optional[str] = None
    error_type: Optional[ErrorType] = None


# =============================================================================
# ADMIN
# =============================================================================

class TokenUpdateRequest(BaseModel):
    """
    Body for POST /api/admin/energo-token.

    Example Request:
        POST /api/admin/energo-token
        x-api-key: <ADMIN_API_KEY>
        {"token": "eyJhbGciOi..."}
    """
    token: str = Field(..., min_length=1, description="New Energo bearer token")


class TokenStatusResponse(BaseModel):
    has_token: bool
    token_preview: Optional[str] = None
    keep_alive_running: bool = False
