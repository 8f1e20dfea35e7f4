"""
ChargeNow Provider Service
==========================

Talks to the ChargeNow open API (the Basic-Auth provider).

WHAT THIS DOES:
--------------
1. Station status: how many slots are empty / busy in a cabinet
2. Order list: one page of ALL rental orders for our account
3. Battery lookup: find one battery's order by scanning that page

HOW CHARGENOW WORKS:
-------------------
Every request carries the same static header:
    Authorization: Basic <base64 user:password>

Endpoints we use:
    GET /rent/cabinet/query?deviceId=DTN00872
        -> {"data": {"cabinet": {"emptySlots": 3, "busySlots": 5, ...}}}

    GET /order/list?page=1&limit=100
        -> {"page": {"records": [{"pBatteryid": ..., "pBorrowtime": ...,
                                  "pGhtime": ...}, ...],
                     "current": 1, "size": 100, "total": 421, "pages": 5}}

There is no "find order by battery" endpoint, so find_battery_by_id()
pulls one page (newest first) and looks through it.

Author: CUUB Battery Team
"""

import logging
from typing import Optional

import httpx

from app.models import (
    BatteryLookupResult,
    ErrorType,
    OrderListResult,
    OrderRecord,
    Pagination,
    Provider,
    StationRecord,
)
from app.services.provider_base import BaseProviderService, ProviderError, classify_error
from app.utils.parsing import optional_str, parse_provider_time, safe_int

logger = logging.getLogger(__name__)


class ChargeNowService(BaseProviderService):
    """
    Service for the ChargeNow API.

    HOW TO USE:
    ----------
    service = ChargeNowService(
        base_url="https://developer.chargenow.top/cdb-open-api/v1",
        auth_header="Basic VmxhZ...",
    )

    station = await service.fetch_station("DTN00872")
    if station.error:
        print("Something went wrong:", station.message)
    else:
        print(station.available, station.occupied)
    """

    provider = Provider.CHARGENOW

    DEFAULT_BASE_URL = "https://developer.chargenow.top/cdb-open-api/v1"

    # How many orders find_battery_by_id() scans
    LOOKUP_PAGE_SIZE = 100

    HEALTH_CHECK_TIMEOUT = 5.0

    def __init__(
        self,
        auth_header: str,
        base_url: str = DEFAULT_BASE_URL,
        request_timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(base_url, request_timeout=request_timeout, http_client=http_client)
        self.auth_header = auth_header

    def _headers(self) -> dict:
        return {
            "Authorization": self.auth_header,
            "Content-Type": "application/json",
        }

    # =========================================================================
    # STATIONS
    # =========================================================================

    async def fetch_station(self, station_id: str) -> StationRecord:
        """
        Get slot counts for one ChargeNow cabinet.

        Args:
            station_id: The cabinet device ID (e.g. "DTN00872")

        Returns:
            StationRecord - error=True if anything went wrong
        """
        try:
            payload = await self._get_json("/rent/cabinet/query", params={"deviceId": station_id})

            data = payload.get("data") if isinstance(payload, dict) else None
            cabinet = data.get("cabinet") if isinstance(data, dict) else None
            if not isinstance(cabinet, dict):
                raise ProviderError(ErrorType.UPSTREAM_SHAPE_ERROR, "Response has no data.cabinet")

            return StationRecord(
                id=station_id,
                available=safe_int(cabinet.get("emptySlots")),
                occupied=safe_int(cabinet.get("busySlots")),
                provider=self.provider,
                raw_data=data,
            )
        except Exception as e:
            return self._station_failure(station_id, e)

    # =========================================================================
    # ORDERS
    # =========================================================================

    def parse_order(self, record: dict) -> OrderRecord:
        """
        Normalize one ChargeNow order record.

        pGhtime (return time) is missing, null or "" while the battery is
        still out - all of those become returned_at=None.
        """
        order = OrderRecord(
            battery_id=str(record.get("pBatteryid") or ""),
            borrowed_at=parse_provider_time(record.get("pBorrowtime")),
            returned_at=parse_provider_time(record.get("pGhtime")),
            order_no=optional_str(record.get("pOrderid") or record.get("orderNo")),
            status=record.get("pState", record.get("status")),
            device_id=optional_str(record.get("pCabinetid") or record.get("deviceId")),
            provider=self.provider,
            raw=record,
        )
        self._warn_if_return_without_borrow(order)
        return order

    async def fetch_orders(self, page: int = 1, limit: int = 100) -> OrderListResult:
        """
        Fetch one page of battery orders.

        Args:
            page: Page number (starts at 1)
            limit: Results per page

        Returns:
            OrderListResult with the orders and pagination info
        """
        try:
            payload = await self._get_json("/order/list", params={"page": page, "limit": limit})

            page_info = payload.get("page") if isinstance(payload, dict) else None
            if not isinstance(page_info, dict) or not isinstance(page_info.get("records"), list):
                raise ProviderError(ErrorType.UPSTREAM_SHAPE_ERROR, "Invalid API response structure")

            return OrderListResult(
                success=True,
                data=[self.parse_order(r) for r in page_info["records"] if isinstance(r, dict)],
                pagination=Pagination(
                    current=page_info.get("current"),
                    size=page_info.get("size"),
                    total=page_info.get("total"),
                    pages=page_info.get("pages"),
                ),
            )
        except Exception as e:
            failure = classify_error(e)
            logger.error(f"Error fetching battery orders: {failure.message}")
            return OrderListResult(success=False, error=failure.message, error_type=failure.error_type)

    async def find_battery_by_id(self, battery_id: str) -> BatteryLookupResult:
        """
        Find a battery's order by scanning the first page of orders.

        Only the newest LOOKUP_PAGE_SIZE orders are searched. Older rentals
        come back as not found.
        """
        orders = await self.fetch_orders(1, self.LOOKUP_PAGE_SIZE)
        if not orders.success:
            return BatteryLookupResult(success=False, error=orders.error, error_type=orders.error_type)

        for order in orders.data:
            if order.battery_id == battery_id:
                return BatteryLookupResult(success=True, data=order)

        return self._lookup_failure(
            battery_id,
            ProviderError(ErrorType.NOT_FOUND, "Battery not found in API data"),
        )

    # =========================================================================
    # HEALTH
    # =========================================================================

    async def check_health(self) -> bool:
        """True if the order endpoint answers with a 2xx."""
        try:
            await self._get_json(
                "/order/list",
                params={"page": 1, "limit": 1},
                timeout=self.HEALTH_CHECK_TIMEOUT,
            )
            return True
        except Exception as e:
            logger.error(f"ChargeNow API health check failed: {e}")
            return False
