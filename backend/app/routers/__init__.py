"""
Routers Package
===============

Routers are like the reception desk - they direct incoming requests
to the right place.
"""

from .stations import router as stations_router, set_station_manager
from .admin import router as admin_router, set_admin_api_key

__all__ = [
    "stations_router",
    "admin_router",
    "set_station_manager",
    "set_admin_api_key",
]
