from __future__ import annotations

import asyncio
from typing import Callable, Optional

import httpx
import pytest

from app.models import Provider
from app.services import (
    ChargeNowService,
    EnergoService,
    Poller,
    ResultCache,
    StationManager,
    TokenStore,
)

CHARGENOW_BASE = "https://chargenow.test/v1"
ENERGO_BASE = "https://energo.test/api"


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Recorder:
    """MockTransport handler that records every request it answers."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def count(self) -> int:
        return len(self.requests)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def chargenow_cabinet(empty: int = 3, busy: int = 5) -> dict:
    return {"code": 0, "data": {"cabinet": {"emptySlots": empty, "busySlots": busy}}}


def energo_cabinet(return_num: int = 4, borrow_num: int = 2) -> dict:
    return {"content": [{"cabinetId": "CUBT1", "positionInfo": {"returnNum": return_num, "borrowNum": borrow_num}}]}


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_store(tmp_path) -> TokenStore:
    store = TokenStore(tmp_path / "energo_token.json")
    store.set("test-token")
    return store


@pytest.fixture
def make_chargenow():
    def _make(handler) -> ChargeNowService:
        return ChargeNowService(auth_header="Basic dGVzdDp0ZXN0", base_url=CHARGENOW_BASE, http_client=mock_client(handler))

    return _make


@pytest.fixture
def make_energo(token_store):
    def _make(handler) -> EnergoService:
        return EnergoService(token_store=token_store, base_url=ENERGO_BASE, oid="42", http_client=mock_client(handler))

    return _make


@pytest.fixture
def make_manager(make_chargenow, make_energo, token_store, clock):
    def _make(
        chargenow_handler,
        energo_handler=None,
        poller: Optional[Poller] = None,
        battery_provider: Provider = Provider.ENERGO,
        station_ids: Optional[list[str]] = None,
    ) -> StationManager:
        if energo_handler is None:
            energo_handler = Recorder(lambda request: httpx.Response(200, json=energo_cabinet()))
        return StationManager(
            chargenow_service=make_chargenow(chargenow_handler),
            energo_service=make_energo(energo_handler),
            token_store=token_store,
            cache=ResultCache(ttl_seconds=10, clock=clock),
            poller=poller,
            battery_provider=battery_provider,
            station_ids=station_ids,
        )

    return _make
