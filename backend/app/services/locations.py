"""
Station Catalogue
=================

Where our stations physically are. The providers only know device IDs;
the map on the frontend needs names and coordinates.

Coordinates are [longitude, latitude] (GeoJSON order).

Author: CUUB Battery Team
"""

from typing import Optional

from app.models import Location


LOCATIONS: dict[str, Location] = {
    loc.id: loc
    for loc in [
        Location(
            id="DTN00872",
            name="DePaul LP Student Center",
            address="LP Student Center, 1st Floor, Chicago, IL",
            coordinates=[-87.65415, 41.92335],
        ),
        Location(
            id="DTN00971",
            name="DePaul University Loop",
            address="DePaul University Loop, Chicago, IL",
            coordinates=[-87.6298, 41.8776],
        ),
        Location(
            id="DTN00970",
            name="DePaul Theater School",
            address="Theater School, 1st Floor, Chicago, IL",
            coordinates=[-87.65875687443715, 41.92483761368347],
        ),
        Location(
            id="BJH09881",
            name="Parlay Lincoln Park",
            address="Parlay Lincoln Park, Chicago, IL",
            coordinates=[-87.65328, 41.92927],
        ),
        Location(
            id="BJH09883",
            name="Kelly's Pub",
            address="Kelly's Pub, Chicago, IL",
            coordinates=[-87.65298, 41.92158],
        ),
    ]
}


def get_all() -> list[Location]:
    return list(LOCATIONS.values())


def get_all_ids() -> list[str]:
    return list(LOCATIONS.keys())


def get_by_id(station_id: str) -> Optional[Location]:
    return LOCATIONS.get(station_id)


def get_for_map() -> list[dict]:
    """Catalogue in the shape the map page reads."""
    return [loc.model_dump() for loc in LOCATIONS.values()]
