"""Tests for the hub pool and its scaling."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

from aiohttp import web
import pytest

from alexa_hue_bridge.hub import Hub, HubScaler

from conftest import FakeHub


def test_needed_hubs():
    scaler = HubScaler(FakeHub, 2)
    assert scaler.needed_hubs(0) == 1
    assert scaler.needed_hubs(2) == 1
    assert scaler.needed_hubs(3) == 2
    assert scaler.needed_hubs(5) == 3


def test_needed_hubs_without_partition_limit():
    scaler = HubScaler(FakeHub, 0)
    assert scaler.needed_hubs(500) == 1


async def test_scales_one_hub_per_recompute():
    scaler = HubScaler(FakeHub, 2)
    await scaler.async_recompute(5)
    assert len(scaler) == 1
    await scaler.async_recompute(5)
    await scaler.async_recompute(5)
    assert [hub.index for hub in scaler.hubs] == [0, 1, 2]
    assert all(hub.started for hub in scaler.hubs)

    await scaler.async_recompute(5)
    assert len(scaler) == 3


async def test_shrinks_from_the_highest_index():
    scaler = HubScaler(FakeHub, 2)
    for _ in range(3):
        await scaler.async_recompute(5)
    removed = scaler.hubs[-1]

    await scaler.async_recompute(2)
    assert [hub.index for hub in scaler.hubs] == [0, 1]
    assert removed.stopped
    assert removed.closing_when_stopped is True

    await scaler.async_recompute(2)
    assert [hub.index for hub in scaler.hubs] == [0]


async def test_keeps_the_last_hub():
    scaler = HubScaler(FakeHub, 2)
    await scaler.async_recompute(1)
    await scaler.async_recompute(0)
    assert len(scaler) == 1
    assert not scaler.hubs[0].stopped


async def test_index_is_reused_after_drain():
    scaler = HubScaler(FakeHub, 1)
    await scaler.async_recompute(2)
    await scaler.async_recompute(2)
    await scaler.async_recompute(1)
    await scaler.async_recompute(2)
    assert [hub.index for hub in scaler.hubs] == [0, 1]


async def test_concurrent_recomputes_are_serialized():
    scaler = HubScaler(FakeHub, 1)
    await asyncio.gather(scaler.async_recompute(3), scaler.async_recompute(3))
    assert [hub.index for hub in scaler.hubs] == [0, 1]


async def test_failed_stop_still_releases_the_slot():
    hub = FakeHub(0)
    hub.async_stop = AsyncMock(side_effect=RuntimeError("boom"))
    scaler = HubScaler(lambda index: hub, 2)
    await scaler.async_recompute(1)

    with pytest.raises(RuntimeError):
        await scaler.async_stop_all()
    assert len(scaler) == 0
    assert hub.closing is True


async def test_stop_all():
    scaler = HubScaler(FakeHub, 1)
    for _ in range(3):
        await scaler.async_recompute(3)
    hubs = list(scaler.hubs)

    await scaler.async_stop_all()
    assert len(scaler) == 0
    assert all(hub.stopped for hub in hubs)


async def test_hub_announces_after_listening_and_stops_announcing_first():
    calls = []
    announcer = MagicMock()
    announcer.async_start = AsyncMock(side_effect=lambda: calls.append("announce"))
    announcer.async_stop = AsyncMock(side_effect=lambda: calls.append("unannounce"))

    def app_factory(hub: Hub) -> web.Application:
        calls.append("app")
        return web.Application()

    hub = Hub(0, 0, "127.0.0.1", app_factory=app_factory, announcer_factory=lambda hub: announcer)
    await hub.async_start()
    assert hub.site is not None
    assert hub.announcer is announcer

    await hub.async_stop()
    assert calls == ["app", "announce", "unannounce"]
    assert hub.closing is True
    assert hub.runner is None
    assert hub.announcer is None


async def test_hub_keeps_serving_when_ssdp_is_unavailable():
    announcer = MagicMock()
    announcer.async_start = AsyncMock(side_effect=OSError(19, "No such device"))
    announcer.async_stop = AsyncMock()

    def hub_factory(index: int) -> Hub:
        return Hub(
            index,
            0,
            "127.0.0.1",
            app_factory=lambda hub: web.Application(),
            announcer_factory=lambda hub: announcer,
        )

    scaler = HubScaler(hub_factory, 2)
    await scaler.async_recompute(0)
    assert len(scaler) == 1
    hub = scaler.hubs[0]
    assert hub.site is not None
    assert hub.announcer is None

    await scaler.async_stop_all()
    assert hub.runner is None
    announcer.async_stop.assert_not_awaited()
