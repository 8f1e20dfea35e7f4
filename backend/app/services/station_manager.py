"""
Station Manager
===============

This is the BRAIN of the backend!

WHAT IT DOES:
------------
1. Decides which provider owns a station ID (Energo or ChargeNow)
2. Fetches many stations at once, in parallel, keeping their order
3. Caches good answers for a few seconds so the frontend can poll freely
4. Looks up battery rentals
5. Runs the background jobs (station snapshots, token keep-alive)

ROUTING:
-------
    "CUBT..."  -> Energo   (Bearer token)
    anything else (DTN..., BJH..., even "") -> ChargeNow (Basic auth)

CACHING:
-------
One entry per station ("station:chargenow:DTN00872") and per battery
("battery:energo:RL3D52000012"), all with the same TTL. Failed lookups
are never cached, so a broken provider is retried on the next request.

Author: CUUB Battery Team
"""

import asyncio
import logging
import sys
from typing import Optional

# Configure logging for the station manager
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(message)s',
    datefmt='%H:%M:%S',
    handlers=[logging.StreamHandler(sys.stderr)]
)
logger = logging.getLogger(__name__)

from app.models import (
    BatteryLookupResult,
    ErrorType,
    OrderListResult,
    Provider,
    StationRecord,
)
from app.services.chargenow_service import ChargeNowService
from app.services.energo_service import EnergoService
from app.services.keep_alive import TokenKeepAlive
from app.services.poller import PollCallback, Poller, PollingTask
from app.services.provider_base import BaseProviderService
from app.services.result_cache import ResultCache
from app.services.token_store import TokenStore


class StationManager:
    """
    The central manager for stations, batteries and background jobs.

    Everything it needs is passed in, so tests can build one with fake
    HTTP clients, a fake clock and a temp token file.
    """

    DEFAULT_ENERGO_PREFIX = "CUBT"

    def __init__(
        self,
        chargenow_service: ChargeNowService,
        energo_service: EnergoService,
        token_store: TokenStore,
        cache: Optional[ResultCache] = None,
        poller: Optional[Poller] = None,
        energo_prefix: str = DEFAULT_ENERGO_PREFIX,
        battery_provider: Provider = Provider.ENERGO,
        station_ids: Optional[list[str]] = None,
    ):
        self.chargenow_service = chargenow_service
        self.energo_service = energo_service
        self.token_store = token_store
        self.cache = cache if cache is not None else ResultCache()
        self.poller = poller if poller is not None else Poller()
        self.energo_prefix = energo_prefix
        self.battery_provider = Provider(battery_provider)

        # Stations shown on the map (GET /api/stations)
        self.station_ids = list(station_ids or [])

        self.keep_alive: Optional[TokenKeepAlive] = None

        # Latest result of the background station poll (if running)
        self.latest_snapshot: list[StationRecord] = []
        self._snapshot_task: Optional[PollingTask] = None

    # =========================================================================
    # ROUTING
    # =========================================================================

    def provider_for(self, station_id: str) -> Provider:
        """Prefix match wins; everything else is ChargeNow."""
        if self.energo_prefix and station_id.startswith(self.energo_prefix):
            return Provider.ENERGO
        return Provider.CHARGENOW

    def _service(self, provider: Provider) -> BaseProviderService:
        if provider == Provider.ENERGO:
            return self.energo_service
        return self.chargenow_service

    # =========================================================================
    # STATIONS
    # =========================================================================

    async def _cached_station(self, station_id: str, provider: Provider) -> StationRecord:
        cache_key = f"station:{provider.value}:{station_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        record = await self._service(provider).fetch_station(station_id)
        if not record.error:
            self.cache.set(cache_key, record)
        return record

    async def fetch_station(self, station_id: str) -> StationRecord:
        """One station, routed by ID prefix, served from cache when fresh."""
        return await self._cached_station(station_id, self.provider_for(station_id))

    async def fetch_energo_station(self, station_id: str) -> StationRecord:
        """One station straight from Energo, whatever its prefix."""
        return await self._cached_station(station_id, Provider.ENERGO)

    async def fetch_multiple_stations(self, station_ids: list[str]) -> list[StationRecord]:
        """
        Fetch many stations in parallel.

        Always returns one record per input ID, in the same order. A station
        that fails shows up as error=True; the others are unaffected.
        """
        results = await asyncio.gather(
            *(self.fetch_station(station_id) for station_id in station_ids),
            return_exceptions=True,
        )

        records = []
        for station_id, result in zip(station_ids, results):
            if isinstance(result, BaseException):
                logger.error(f"[{station_id}] Unexpected error fetching station: {result}")
                result = StationRecord.failed(station_id, ErrorType.NETWORK_ERROR, str(result))
            records.append(result)
        return records

    async def current_stations(self) -> list[StationRecord]:
        """
        The map view: every configured station.

        While the snapshot poller is running and has produced a result, that
        snapshot is returned as-is. Otherwise the stations are fetched now.
        """
        if self._snapshot_task is not None and self._snapshot_task.is_running and self.latest_snapshot:
            return self.latest_snapshot
        return await self.fetch_multiple_stations(self.station_ids)

    # =========================================================================
    # BATTERIES & ORDERS
    # =========================================================================

    async def find_battery_by_id(self, battery_id: str) -> BatteryLookupResult:
        """Latest order for a battery from the configured provider (cached on success)."""
        cache_key = f"battery:{self.battery_provider.value}:{battery_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        result = await self._service(self.battery_provider).find_battery_by_id(battery_id)
        if result.success:
            self.cache.set(cache_key, result)
        return result

    async def fetch_battery_orders(self, page: int = 1, limit: int = 100) -> OrderListResult:
        return await self.chargenow_service.fetch_orders(page, limit)

    async def check_api_health(self) -> bool:
        return await self.chargenow_service.check_health()

    # =========================================================================
    # BACKGROUND POLLING
    # =========================================================================

    def poll_station_data(
        self,
        station_ids: list[str],
        interval_seconds: float,
        callback: PollCallback,
    ) -> PollingTask:
        """Fetch the given stations now and every interval; results go to callback(error, data)."""
        ids = list(station_ids)
        logger.info(f"Starting station polling every {interval_seconds}s for {len(ids)} stations")
        return self.poller.start(
            interval_seconds,
            lambda: self.fetch_multiple_stations(ids),
            callback,
            name="stations",
        )

    def poll_battery_orders(self, interval_seconds: float, callback: PollCallback) -> PollingTask:
        """Fetch the first order page now and every interval."""
        logger.info(f"Starting battery orders polling every {interval_seconds}s")
        return self.poller.start(
            interval_seconds,
            self.fetch_battery_orders,
            callback,
            name="battery_orders",
        )

    def start_station_snapshots(self, station_ids: list[str], interval_seconds: float) -> PollingTask:
        """Keep latest_snapshot up to date in the background."""
        if self._snapshot_task is not None:
            self._snapshot_task.stop()

        def _store(error, data):
            if error is None and data is not None:
                self.latest_snapshot = data

        self._snapshot_task = self.poll_station_data(station_ids, interval_seconds, _store)
        return self._snapshot_task

    # =========================================================================
    # ENERGO TOKEN
    # =========================================================================

    def get_token(self) -> str:
        return self.token_store.get()

    def update_token(self, token: str) -> bool:
        return self.token_store.set(token)

    def start_token_keep_alive(
        self,
        sample_battery_id: str = TokenKeepAlive.DEFAULT_BATTERY_ID,
        interval_seconds: float = TokenKeepAlive.DEFAULT_INTERVAL,
    ) -> TokenKeepAlive:
        """(Re)start the keep-alive. Only one runs at a time."""
        if self.keep_alive is not None:
            self.keep_alive.stop()

        self.keep_alive = TokenKeepAlive(
            self.energo_service,
            self.poller,
            sample_battery_id=sample_battery_id,
            interval_seconds=interval_seconds,
        )
        return self.keep_alive.start()

    # =========================================================================
    # CLEANUP
    # =========================================================================

    async def shutdown(self):
        """Clean up when the server is shutting down."""
        try:
            self.poller.shutdown()
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {e}", exc_info=True)

        # Close HTTP clients (ensure they're closed even if one fails)
        services_to_close = [
            ("chargenow", self.chargenow_service),
            ("energo", self.energo_service),
        ]

        for service_name, service in services_to_close:
            try:
                await service.close()
                logger.debug(f"Closed {service_name} service")
            except Exception as e:
                logger.error(f"Error closing {service_name} service: {e}", exc_info=True)
