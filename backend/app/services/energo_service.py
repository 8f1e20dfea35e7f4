"""
Energo Provider Service
=======================

Talks to the Energo backend API (the Bearer-token provider).

WHAT THIS DOES:
--------------
1. Station status for Energo cabinets (IDs starting with "CUBT")
2. Battery lookup: the most recent order for a battery
3. Keep-alive: a cheap authenticated request so the token does not go idle

HOW ENERGO WORKS:
----------------
Energo has no API keys. We reuse the bearer token of a logged-in console
session, which an admin pastes into the TokenStore. Every request sends:

    Authorization: Bearer <token>
    oid: <organization id>
    Referer: https://backend.energo.vip/...

The token silently expires if nobody uses it for a while, which is why
TokenKeepAlive pings the order endpoint every minute.

Endpoints we use:
    GET /cabinet?cabinetId=CUBT...
        -> {"content": [{"positionInfo": {"returnNum": 4, "borrowNum": 2}}]}

    GET /order?size=0&sort=id,desc&deviceid=RL3D52000012
        -> {"content": [{"starttime": 1700000000000, "returnTime": 0,
                         "orderNo": "...", "status": 1, "deviceid": "..."}]}

Timestamps are epoch milliseconds. returnTime == 0 means "not returned".

Author: CUUB Battery Team
"""

import logging
from typing import Optional

import httpx

from app.models import (
    BatteryLookupResult,
    ErrorType,
    OrderRecord,
    Provider,
    StationRecord,
)
from app.services.provider_base import BaseProviderService, ProviderError
from app.services.token_store import TokenStore
from app.utils.parsing import epoch_ms_to_datetime, optional_str, safe_int

logger = logging.getLogger(__name__)


class EnergoService(BaseProviderService):
    """
    Service for the Energo API.

    The token is read from the TokenStore on EVERY request, so an admin
    update takes effect immediately without restarting anything.
    """

    provider = Provider.ENERGO

    DEFAULT_BASE_URL = "https://backend.energo.vip/api"
    DEFAULT_OID = "3526"

    # Energo checks the Referer against its own console pages
    ORDER_REFERER = "https://backend.energo.vip/order/lease-order"
    CABINET_REFERER = "https://backend.energo.vip/device/list"

    def __init__(
        self,
        token_store: TokenStore,
        base_url: str = DEFAULT_BASE_URL,
        oid: str = DEFAULT_OID,
        request_timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, request_timeout=request_timeout, http_client=http_client)
        self.token_store = token_store
        self.oid = oid

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token_store.get()}",
            "oid": self.oid,
            "Content-Type": "application/json",
        }

    def _content(self, payload) -> list:
        """Pull the "content" list out of a response, or raise a shape error."""
        content = payload.get("content") if isinstance(payload, dict) else None
        if not isinstance(content, list):
            raise ProviderError(ErrorType.UPSTREAM_SHAPE_ERROR, "Response has no content list")
        return content

    async def _latest_orders(self, battery_id: str) -> list:
        payload = await self._get_json(
            "/order",
            params={"size": 0, "sort": "id,desc", "deviceid": battery_id},
            headers={"Referer": self.ORDER_REFERER},
        )
        return self._content(payload)

    # =========================================================================
    # STATIONS
    # =========================================================================

    async def fetch_station(self, station_id: str) -> StationRecord:
        """
        Get slot counts for one Energo cabinet.

        Energo names the counts from the renter's point of view:
            returnNum -> empty slots (you can return a battery here)
            borrowNum -> occupied slots (batteries you can take)
        """
        logger.debug(f"[Energo {station_id}] Fetching cabinet")
        try:
            payload = await self._get_json(
                "/cabinet",
                params={"cabinetId": station_id},
                headers={"Referer": self.CABINET_REFERER},
            )

            content = self._content(payload)
            if not content:
                raise ProviderError(ErrorType.NOT_FOUND, "Cabinet not found in API data")

            cabinet = content[0]
            if not isinstance(cabinet, dict):
                raise ProviderError(ErrorType.UPSTREAM_SHAPE_ERROR, "Cabinet entry is not an object")

            position_info = cabinet.get("positionInfo") or {}
            if not isinstance(position_info, dict):
                raise ProviderError(ErrorType.UPSTREAM_SHAPE_ERROR, "positionInfo is not an object")

            return StationRecord(
                id=station_id,
                available=safe_int(position_info.get("returnNum")),
                occupied=safe_int(position_info.get("borrowNum")),
                provider=self.provider,
                raw_data=cabinet,
            )
        except Exception as e:
            return self._station_failure(station_id, e)

    # =========================================================================
    # ORDERS
    # =========================================================================

    def parse_order(self, battery_id: str, order: dict) -> OrderRecord:
        """
        Normalize one Energo order.

        Epoch milliseconds become aware UTC datetimes. Time zone display
        is the frontend's job, not ours.
        """
        record = OrderRecord(
            battery_id=battery_id,
            borrowed_at=epoch_ms_to_datetime(order.get("starttime")),
            returned_at=epoch_ms_to_datetime(order.get("returnTime")),
            order_no=optional_str(order.get("orderNo")),
            status=order.get("status"),
            device_id=optional_str(order.get("deviceid")),
            provider=self.provider,
            raw=order,
        )
        self._warn_if_return_without_borrow(record)
        return record

    async def find_battery_by_id(self, battery_id: str) -> BatteryLookupResult:
        """
        Get the most recent order for a battery.

        Energo sorts server-side (id desc), so the first element is the
        newest rental.
        """
        logger.info(f"[Energo {battery_id}] Looking up latest order")
        try:
            orders = await self._latest_orders(battery_id)
            if not orders:
                raise ProviderError(ErrorType.NOT_FOUND, "Battery not found in API data")
            if not isinstance(orders[0], dict):
                raise ProviderError(ErrorType.UPSTREAM_SHAPE_ERROR, "Order entry is not an object")

            order = self.parse_order(battery_id, orders[0])
            logger.info(
                f"[Energo {battery_id}] borrowed_at={order.borrowed_at} "
                f"returned_at={order.returned_at}"
            )
            return BatteryLookupResult(success=True, data=order)
        except Exception as e:
            return self._lookup_failure(battery_id, e)

    # =========================================================================
    # KEEP-ALIVE
    # =========================================================================

    async def send_keep_alive(self, sample_battery_id: str) -> bool:
        """
        Touch the order endpoint so the token does not expire from inactivity.

        Returns True if Energo accepted the token.
        """
        try:
            await self._latest_orders(sample_battery_id)
            logger.info("[Token Keep-Alive] Energo API token is active")
            return True
        except httpx.HTTPStatusError as e:
            logger.warning(f"[Token Keep-Alive] Energo API request returned status: {e.response.status_code}")
        except Exception as e:
            logger.error(f"[Token Keep-Alive] Error keeping Energo token alive: {e}")
        return False
