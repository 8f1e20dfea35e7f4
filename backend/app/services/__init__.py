"""
Services Package
================

These are the "workers" that do the actual work.

- ChargeNowService: Talks to the ChargeNow API (Basic auth)
- EnergoService: Talks to the Energo API (Bearer token)
- TokenStore: Keeps the Energo token on disk
- ResultCache: Short-lived cache for provider answers
- Poller / TokenKeepAlive: Background jobs
- StationManager: The boss that ties them together
"""

from .chargenow_service import ChargeNowService
from .energo_service import EnergoService
from .token_store import TokenStore
from .result_cache import ResultCache
from .poller import Poller, PollingTask
from .keep_alive import TokenKeepAlive
from .station_manager import StationManager

__all__ = [
    "ChargeNowService",
    "EnergoService",
    "TokenStore",
    "ResultCache",
    "Poller",
    "PollingTask",
    "TokenKeepAlive",
    "StationManager",
]
