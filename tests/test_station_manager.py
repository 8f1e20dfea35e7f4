from __future__ import annotations

import asyncio

import httpx

from conftest import Recorder, chargenow_cabinet, energo_cabinet, wait_until

from app.main import Config, build_station_manager
from app.models import ErrorType, Provider
from app.services import Poller


def _chargenow_by_device(failing: set[str]):
    def respond(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("deviceId") in failing:
            return httpx.Response(500, text="boom")
        return httpx.Response(200, json=chargenow_cabinet(empty=1, busy=2))

    return Recorder(respond)


def test_routing_by_prefix(make_manager) -> None:
    chargenow = _chargenow_by_device(set())
    energo = Recorder(lambda request: httpx.Response(200, json=energo_cabinet()))
    manager = make_manager(chargenow, energo)

    assert manager.provider_for("CUBT062411030004") == Provider.ENERGO
    assert manager.provider_for("DTN00872") == Provider.CHARGENOW
    assert manager.provider_for("") == Provider.CHARGENOW
    assert manager.provider_for("XCUBT1") == Provider.CHARGENOW

    asyncio.run(manager.fetch_station("CUBT062411030004"))
    assert (energo.count, chargenow.count) == (1, 0)

    asyncio.run(manager.fetch_station("DTN00872"))
    assert (energo.count, chargenow.count) == (1, 1)

    empty = asyncio.run(manager.fetch_station(""))
    assert (energo.count, chargenow.count) == (1, 2)
    assert empty.provider == Provider.CHARGENOW


def test_fetch_multiple_keeps_order_and_isolates_failures(make_manager) -> None:
    manager = make_manager(_chargenow_by_device({"B"}))

    records = asyncio.run(manager.fetch_multiple_stations(["A", "B", "C"]))

    assert [r.id for r in records] == ["A", "B", "C"]
    assert [r.error for r in records] == [False, True, False]
    assert records[1].error_type == ErrorType.UPSTREAM_STATUS_ERROR


def test_fetch_multiple_mixes_providers(make_manager) -> None:
    manager = make_manager(_chargenow_by_device(set()))

    records = asyncio.run(manager.fetch_multiple_stations(["DTN00872", "CUBT1", "BJH09881"]))

    assert [r.provider for r in records] == [Provider.CHARGENOW, Provider.ENERGO, Provider.CHARGENOW]
    assert records[1].available == 4


def test_fetch_multiple_survives_unexpected_exceptions(make_manager) -> None:
    manager = make_manager(_chargenow_by_device(set()))

    async def explode(station_id):
        raise RuntimeError("adapter bug")

    manager.chargenow_service.fetch_station = explode

    records = asyncio.run(manager.fetch_multiple_stations(["DTN00872", "CUBT1"]))

    assert records[0].error is True
    assert records[0].id == "DTN00872"
    assert records[1].error is False


def test_cache_window_end_to_end(make_manager, clock) -> None:
    chargenow = _chargenow_by_device(set())
    manager = make_manager(chargenow)

    first = asyncio.run(manager.fetch_multiple_stations(["X"]))
    assert chargenow.count == 1

    clock.advance(5)
    second = asyncio.run(manager.fetch_multiple_stations(["X"]))
    assert chargenow.count == 1
    assert second[0] is first[0]

    clock.advance(6)
    asyncio.run(manager.fetch_multiple_stations(["X"]))
    assert chargenow.count == 2


def test_cache_is_per_station(make_manager, clock) -> None:
    chargenow = _chargenow_by_device(set())
    manager = make_manager(chargenow)

    asyncio.run(manager.fetch_multiple_stations(["A", "B"]))
    clock.advance(3)
    asyncio.run(manager.fetch_multiple_stations(["A", "B", "C"]))

    # Only the new station hit the provider
    assert chargenow.count == 3


def test_failures_are_not_cached(make_manager) -> None:
    chargenow = _chargenow_by_device({"A"})
    manager = make_manager(chargenow)

    asyncio.run(manager.fetch_station("A"))
    asyncio.run(manager.fetch_station("A"))

    assert chargenow.count == 2


def test_battery_lookup_uses_configured_provider_and_cache(make_manager, clock) -> None:
    energo = Recorder(
        lambda request: httpx.Response(200, json={"content": [{"starttime": 1700000000000, "returnTime": 0}]})
    )
    chargenow = _chargenow_by_device(set())
    manager = make_manager(chargenow, energo, battery_provider=Provider.ENERGO)

    first = asyncio.run(manager.find_battery_by_id("RL3D52000012"))
    second = asyncio.run(manager.find_battery_by_id("RL3D52000012"))

    assert first.success is True
    assert second is first
    assert energo.count == 1
    assert chargenow.count == 0

    clock.advance(10)
    asyncio.run(manager.find_battery_by_id("RL3D52000012"))
    assert energo.count == 2


def test_battery_lookup_via_chargenow(make_manager) -> None:
    payload = {"page": {"records": [{"pBatteryid": "B1", "pBorrowtime": "2025-01-28 10:00:00"}]}}
    chargenow = Recorder(lambda request: httpx.Response(200, json=payload))
    manager = make_manager(chargenow, battery_provider=Provider.CHARGENOW)

    result = asyncio.run(manager.find_battery_by_id("B1"))

    assert result.success is True
    assert result.data.provider == Provider.CHARGENOW


def test_failed_battery_lookups_are_retried(make_manager) -> None:
    energo = Recorder(lambda request: httpx.Response(200, json={"content": []}))
    manager = make_manager(_chargenow_by_device(set()), energo)

    asyncio.run(manager.find_battery_by_id("RL3D52000012"))
    asyncio.run(manager.find_battery_by_id("RL3D52000012"))

    assert energo.count == 2


def test_token_round_trip(make_manager, token_store) -> None:
    manager = make_manager(_chargenow_by_device(set()))

    assert manager.get_token() == "test-token"
    assert manager.update_token(" new-token ") is True
    assert manager.get_token() == "new-token"
    assert token_store.get() == "new-token"


def test_injected_cache_is_kept_even_when_empty(make_manager, clock) -> None:
    manager = make_manager(_chargenow_by_device(set()))

    assert len(manager.cache) == 0
    manager.cache.set("k", "v")
    clock.advance(11)
    assert manager.cache.get("k") is None


def test_build_station_manager_uses_configured_cache_ttl(tmp_path) -> None:
    class ShortCacheConfig(Config):
        CACHE_TTL = 2.0
        ENERGO_TOKEN_FILE = str(tmp_path / "token.json")

    manager = build_station_manager(ShortCacheConfig)
    try:
        assert manager.cache.ttl_seconds == 2.0
    finally:
        asyncio.run(manager.shutdown())


def test_forced_energo_lookup_does_not_share_cache_with_routed_lookup(make_manager) -> None:
    chargenow = _chargenow_by_device(set())
    energo = Recorder(lambda request: httpx.Response(200, json=energo_cabinet(return_num=7, borrow_num=1)))
    manager = make_manager(chargenow, energo)

    forced = asyncio.run(manager.fetch_energo_station("DTN00872"))
    routed = asyncio.run(manager.fetch_station("DTN00872"))

    assert forced.provider == Provider.ENERGO
    assert routed.provider == Provider.CHARGENOW
    assert (energo.count, chargenow.count) == (1, 1)


def test_station_list_is_served_from_running_snapshot(make_manager) -> None:
    chargenow = _chargenow_by_device(set())

    async def scenario() -> None:
        manager = make_manager(chargenow, poller=Poller(), station_ids=["DTN00872", "BJH09881"])
        try:
            task = manager.start_station_snapshots(manager.station_ids, 60)
            assert await wait_until(lambda: len(manager.latest_snapshot) == 2)
            assert chargenow.count == 2

            served = await manager.current_stations()
            assert served is manager.latest_snapshot
            assert chargenow.count == 2

            task.stop()
            fetched = await manager.current_stations()
            assert fetched is not manager.latest_snapshot
            assert [r.id for r in fetched] == ["DTN00872", "BJH09881"]
        finally:
            await manager.shutdown()

    asyncio.run(scenario())
