"""Shared fixtures for the Alexa Hue bridge tests."""
from __future__ import annotations

from aiohttp.test_utils import TestClient, TestServer
import pytest

from alexa_hue_bridge.config import BridgeConfig
from alexa_hue_bridge.controller import AlexaHomeController
from alexa_hue_bridge.hub import Hub

CONTROLLER_ID = "0a1b2c3d4e5f"
ADVERTISE_IP = "192.168.1.10"


class FakeHub:
    """Hub stand-in that never opens a socket."""

    def __init__(self, index: int) -> None:
        self.index = index
        self.port = 8080 + index
        self.closing = False
        self.started = False
        self.stopped = False
        self.closing_when_stopped: bool | None = None

    async def async_start(self) -> None:
        self.started = True

    async def async_stop(self) -> None:
        self.closing_when_stopped = self.closing
        self.closing = True
        self.stopped = True


def make_config(**overrides) -> BridgeConfig:
    values = {
        "listen_port": 8080,
        "bind_address": "127.0.0.1",
        "advertise_ip": ADVERTISE_IP,
        "max_items_per_hub": 2,
        "enable_discovery": False,
        "controller_id": CONTROLLER_ID,
    }
    values.update(overrides)
    return BridgeConfig(**values)


@pytest.fixture
def config() -> BridgeConfig:
    return make_config()


@pytest.fixture
def controller(config: BridgeConfig) -> AlexaHomeController:
    return AlexaHomeController(config, hub_factory=FakeHub)


@pytest.fixture
def events(controller: AlexaHomeController) -> list:
    received: list = []
    controller.add_listener(received.append)
    return received


async def start_hub_client(controller: AlexaHomeController, index: int = 0) -> TestClient:
    hub = Hub(index, controller.config.hub_port(index), "127.0.0.1", app_factory=controller.create_hub_app)
    client = TestClient(TestServer(controller.create_hub_app(hub)))
    await client.start_server()
    return client


@pytest.fixture
async def hub_client(controller: AlexaHomeController):
    client = await start_hub_client(controller)
    yield client
    await client.close()
