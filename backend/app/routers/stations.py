"""
Stations API Router
===================

The endpoints the frontend talks to.

ALL ENDPOINTS:
-------------
GET /api/stations               - All configured stations (map view)
GET /api/stations/{id}          - One station
GET /api/battery/{id}           - Latest rental for one battery
GET /api/orders?page=1&limit=20 - One page of ChargeNow orders
GET /api/locations              - Station catalogue (names + coordinates)

The StationManager does the work. This file only validates input and
picks the HTTP status code for failures the manager hands back as values.

Author: CUUB Battery Team
"""

from fastapi import APIRouter, HTTPException, Depends, Query

from app.models import ErrorType, StationRecord, StationView
from app.services import locations
from app.utils import validate_battery_id, validate_station_id


# Create the router - this groups all our station endpoints together
router = APIRouter(prefix="/api", tags=["stations"])


# =============================================================================
# DEPENDENCY INJECTION
# =============================================================================

_station_manager = None  # This gets set when the app starts


def set_station_manager(manager):
    """Called when the app starts to give us the station manager."""
    global _station_manager
    _station_manager = manager


def get_station_manager():
    """Get the station manager for use in endpoints."""
    if _station_manager is None:
        raise HTTPException(status_code=500, detail="Server not fully started yet")
    return _station_manager


def _status_for(error_type) -> int:
    """404 when the provider says "no such thing", 502 for anything else upstream."""
    if error_type == ErrorType.NOT_FOUND:
        return 404
    return 502


def _to_view(record: StationRecord) -> StationView:
    location = locations.get_by_id(record.id)
    return StationView(
        id=record.id,
        name=location.name if location else f"Station {record.id}",
        address=location.address if location else None,
        coordinates=location.coordinates if location else [0.0, 0.0],
        available=record.available,
        occupied=record.occupied,
        error=record.error,
    )


# =============================================================================
# STATION ENDPOINTS
# =============================================================================

@router.get("/stations", response_model=list[StationView])
async def list_stations(manager = Depends(get_station_manager)):
    """
    Slot counts for every configured station, with name and coordinates.

    Stations whose provider failed are still listed, with error=true.
    Served from the background snapshot when STATION_POLL_INTERVAL is set.
    """
    records = await manager.current_stations()
    return [_to_view(r) for r in records]


@router.get("/stations/{station_id}", response_model=StationRecord, response_model_exclude={"raw_data"})
async def get_station(station_id: str, manager = Depends(get_station_manager)):
    """Slot counts for one station."""
    if not validate_station_id(station_id):
        raise HTTPException(status_code=400, detail="Invalid station ID")

    record = await manager.fetch_station(station_id)
    if record.error:
        raise HTTPException(
            status_code=_status_for(record.error_type),
            detail=record.message or "Failed to fetch station data",
        )
    return record


@router.get("/locations")
async def list_locations():
    """Station catalogue for the map page."""
    return locations.get_for_map()


# =============================================================================
# BATTERY & ORDER ENDPOINTS
# =============================================================================

@router.get("/battery/{battery_id}")
async def get_battery(battery_id: str, manager = Depends(get_station_manager)):
    """
    Latest rental for a battery.

    Returns pBatteryid / pBorrowtime / pGhtime. pGhtime is null while the
    battery is still rented out.
    """
    if not validate_battery_id(battery_id):
        raise HTTPException(status_code=400, detail="Invalid battery ID")

    result = await manager.find_battery_by_id(battery_id)
    if not result.success:
        raise HTTPException(status_code=_status_for(result.error_type), detail=result.error)

    return result.data.model_dump(mode="json", by_alias=True)


@router.get("/orders")
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    manager = Depends(get_station_manager),
):
    """One page of ChargeNow orders."""
    result = await manager.fetch_battery_orders(page, limit)
    if not result.success:
        raise HTTPException(status_code=_status_for(result.error_type), detail=result.error)

    return {
        "data": [order.model_dump(mode="json", by_alias=True) for order in result.data],
        "pagination": result.pagination.model_dump() if result.pagination else None,
    }
