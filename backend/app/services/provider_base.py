"""
Provider Service Base
=====================

Shared plumbing for the two battery-rental providers.

Each provider service owns one httpx.AsyncClient and knows how to:
- GET a JSON document from its API (with its own auth headers)
- Turn whatever went wrong into a value (never an exception)

THE RULE:
--------
Public methods on a provider service NEVER raise. Network errors,
timeouts, non-2xx statuses and weird payloads all come back as a
StationRecord(error=True) or a result with success=False.

Inside a service we raise ProviderError (and let httpx raise its own
errors) and catch them again at the public method boundary.

Author: CUUB Battery Team
"""

import httpx
import logging
from abc import ABC, abstractmethod
from typing import Optional

from app.models import (
    BatteryLookupResult,
    ErrorType,
    OrderRecord,
    Provider,
    StationRecord,
)

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised inside a provider service; never escapes a public method."""

    def __init__(self, error_type: ErrorType, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.status = status


def classify_error(error: Exception) -> ProviderError:
    """Map anything a provider call can raise onto the error taxonomy."""
    if isinstance(error, ProviderError):
        return error
    if isinstance(error, httpx.TimeoutException):
        return ProviderError(ErrorType.NETWORK_ERROR, f"Request timed out: {error}")
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return ProviderError(
            ErrorType.UPSTREAM_STATUS_ERROR,
            f"API request failed with status: {status}",
            status=status,
        )
    if isinstance(error, httpx.RequestError):
        return ProviderError(ErrorType.NETWORK_ERROR, f"Cannot reach provider: {error}")
    if isinstance(error, ValueError):
        # json.JSONDecodeError and pydantic ValidationError both land here
        return ProviderError(ErrorType.UPSTREAM_SHAPE_ERROR, f"Invalid API response: {error}")
    # The transport layer is covered above, so anything left came from
    # picking apart a 2xx payload (AttributeError, KeyError, TypeError...)
    return ProviderError(ErrorType.UPSTREAM_SHAPE_ERROR, f"Unexpected API response: {error}")


class BaseProviderService(ABC):
    """
    Common base for ChargeNowService and EnergoService.

    Args:
        base_url: Provider API root (no trailing slash)
        request_timeout: Upper bound on waiting for one response (seconds)
        http_client: Optional pre-built client. Tests pass one with an
                     httpx.MockTransport so nothing leaves the process.
    """

    provider: Provider

    def __init__(
        self,
        base_url: str,
        request_timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.http_client = http_client or httpx.AsyncClient(
            timeout=request_timeout,
            follow_redirects=True,
        )

    @abstractmethod
    def _headers(self) -> dict:
        """Auth + content headers for every request."""

    async def _get_json(self, path: str, params: Optional[dict] = None, headers: Optional[dict] = None,
                        timeout: Optional[float] = None):
        """GET {base_url}{path} and return the parsed JSON body (raises on failure)."""
        request_headers = self._headers()
        if headers:
            request_headers.update(headers)

        response = await self.http_client.get(
            f"{self.base_url}{path}",
            params=params,
            headers=request_headers,
            timeout=timeout if timeout is not None else self.request_timeout,
        )

        if response.is_error:
            logger.error(
                f"[{self.provider.value}] {path} returned {response.status_code}: "
                f"{response.text[:200]}"
            )
        response.raise_for_status()
        return response.json()

    def _station_failure(self, station_id: str, error: Exception) -> StationRecord:
        failure = classify_error(error)
        logger.error(f"[{self.provider.value} {station_id}] Station fetch failed: {failure.message}")
        return StationRecord.failed(
            station_id,
            failure.error_type,
            failure.message,
            provider=self.provider,
            status=failure.status,
        )

    def _lookup_failure(self, battery_id: str, error: Exception) -> BatteryLookupResult:
        failure = classify_error(error)
        if failure.error_type == ErrorType.NOT_FOUND:
            logger.info(f"[{self.provider.value} {battery_id}] {failure.message}")
        else:
            logger.error(f"[{self.provider.value} {battery_id}] Battery lookup failed: {failure.message}")
        return BatteryLookupResult(
            success=False,
            error=failure.message,
            error_type=failure.error_type,
        )

    def _warn_if_return_without_borrow(self, order: OrderRecord) -> None:
        """A returned order must have started. Log the anomaly, keep the record."""
        if order.returned_at is not None and order.borrowed_at is None:
            logger.warning(
                f"[{self.provider.value} {order.battery_id}] Order has a return time "
                f"but no borrow time (order {order.order_no})"
            )

    @abstractmethod
    async def fetch_station(self, station_id: str) -> StationRecord:
        """Slot counts for one station. Never raises."""

    @abstractmethod
    async def find_battery_by_id(self, battery_id: str) -> BatteryLookupResult:
        """Most relevant order for one battery. Never raises."""

    async def close(self):
        """Close the HTTP client. Called when the server shuts down."""
        await self.http_client.aclose()
