"""Controller tying the registry, the hub pool and the protocol views together."""
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import logging
import ssl
from typing import Any, Protocol

from aiohttp import web

from .commands import CanonicalCommand, CommandNormalizer
from .config import BridgeConfig, get_source_ip
from .const import DESCRIPTION_PATH
from .device_registry import DeviceRegistry
from .hub import Hub, HubScaler
from .hue_api import V1_VIEWS
from .hue_api_v2 import V2_VIEWS, HueEventStream
from .hue_device import DeviceRecord, DeviceType
from .identity import HubIdentity, format_uuid, hub_identity
from .upnp import DescriptionXmlView, DiscoveryAnnouncer
from .view import HUB_MIDDLEWARES, KEY_CONTROLLER, KEY_HUB

_LOGGER = logging.getLogger(__name__)

SOURCE_ALEXA = "alexa"
SOURCE_INPUT = "input"


class AccessoryLifecycle(Protocol):
    """Callbacks the hosting runtime invokes as accessories come and go."""

    async def async_on_register(self, device: DeviceRecord) -> str:
        """Expose a device and return its uuid."""

    async def async_on_deregister(self, device_id: str) -> DeviceRecord | None:
        """Stop exposing a device."""


@dataclass
class DeviceEvent:
    """A processed command forwarded to the hosting runtime."""

    device: DeviceRecord
    command: CanonicalCommand
    source: str
    client_ip: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def as_message(self) -> dict[str, Any]:
        """Return the event as a flat message dict."""
        message: dict[str, Any] = {
            "payload": self.command.to_payload(),
            "device_name": self.device.name,
            "light_id": self.device.id,
            "input_trigger": self.source == SOURCE_INPUT,
        }
        if self.client_ip is not None:
            message["alexa_ip"] = self.client_ip
        for key, value in self.headers.items():
            message[f"http_header_{key.lower()}"] = value
        return message


EventListener = Callable[[DeviceEvent], None]


class AlexaHomeController:
    """Owns the devices and the hubs that expose them to Alexa."""

    def __init__(
        self,
        config: BridgeConfig,
        *,
        ssl_context: ssl.SSLContext | None = None,
        hub_factory: Callable[[int], Hub] | None = None,
    ) -> None:
        """Initialize the controller."""
        self.config = config
        self.advertise_ip = config.advertise_ip or get_source_ip()
        self.registry = DeviceRegistry()
        self.normalizer = CommandNormalizer()
        self.event_stream = HueEventStream()
        self.scaler = HubScaler(hub_factory or self._create_hub, config.max_items_per_hub)
        self._ssl_context = ssl_context
        self._listeners: list[EventListener] = []

    @property
    def hubs(self) -> list[Hub]:
        """Return the running hubs ordered by index."""
        return list(self.scaler.hubs)

    async def async_start(self) -> None:
        """Start the first hub."""
        _LOGGER.info(
            "Starting Alexa hub controller on %s:%d (advertising %s)",
            self.config.bind_address,
            self.config.listen_port,
            self.advertise_ip,
        )
        await self.scaler.async_recompute(len(self.registry))

    async def async_stop(self) -> None:
        """Stop every hub and disconnect event stream clients."""
        _LOGGER.info("Stopping Alexa hub controller")
        self.event_stream.close_all()
        await self.scaler.async_stop_all()

    # -- accessory lifecycle ------------------------------------------------

    async def async_on_register(self, device: DeviceRecord) -> str:
        """Register a device and grow the hub pool if needed."""
        uuid = self.registry.register(device)
        await self.scaler.async_recompute(len(self.registry))
        return uuid

    async def async_on_deregister(self, device_id: str) -> DeviceRecord | None:
        """Deregister a device and shrink the hub pool if possible."""
        device = self.registry.deregister(format_uuid(device_id))
        await self.scaler.async_recompute(len(self.registry))
        return device

    async def async_add_device(
        self,
        device_id: str,
        name: str,
        device_type: DeviceType | str = DeviceType.EXTENDED_COLOR_LIGHT,
        *,
        input_trigger: bool = False,
    ) -> DeviceRecord:
        """Create a device with the configured defaults and register it."""
        device = DeviceRecord.create(
            device_id,
            name,
            device_type,
            input_trigger=input_trigger,
            bri_default=self.config.bri_default,
        )
        await self.async_on_register(device)
        return device

    # -- commands -------------------------------------------------------------

    def add_listener(self, listener: EventListener) -> Callable[[], None]:
        """Listen for processed commands, returns a callable that unsubscribes."""
        self._listeners.append(listener)

        def remove_listener() -> None:
            self._listeners.remove(listener)

        return remove_listener

    def process_command(
        self,
        device: DeviceRecord,
        payload: Any,
        *,
        source: str = SOURCE_ALEXA,
        output: bool = False,
        client_ip: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> CanonicalCommand | None:
        """Normalize a payload, update the device and forward the command.

        Commands from Alexa are always forwarded. Local input is forwarded
        unless the device is an input trigger, which ``output`` overrides.
        """
        if source == SOURCE_ALEXA:
            device.record_access(client_ip)

        command = self.normalizer.normalize(device, payload)
        if command is None:
            return None

        if source == SOURCE_ALEXA or output or not device.input_trigger:
            event = DeviceEvent(
                device=device,
                command=command,
                source=source,
                client_ip=client_ip,
                headers=dict(headers) if headers and self.config.debug else {},
            )
            for listener in list(self._listeners):
                listener(event)
        return command

    # -- hubs -----------------------------------------------------------------

    def page(self, hub_index: int) -> list[DeviceRecord]:
        """Return the devices served by a hub."""
        return self.registry.page(hub_index, self.config.max_items_per_hub)

    def hub_identity(self, hub_index: int) -> HubIdentity:
        """Return the identity of a hub."""
        return hub_identity(hub_index, self.config.controller_id)

    def create_hub_app(self, hub: Hub) -> web.Application:
        """Build the aiohttp application served by one hub."""
        app = web.Application(middlewares=HUB_MIDDLEWARES)
        app[KEY_CONTROLLER] = self
        app[KEY_HUB] = hub

        DescriptionXmlView(
            self.hub_identity(hub.index),
            self.config.advertised_base(hub.index, self.advertise_ip),
            self.config.bridge_name,
        ).register(app, app.router)
        if not self.config.disable_v1_api:
            for view in V1_VIEWS:
                view().register(app, app.router)
        for view in V2_VIEWS:
            view().register(app, app.router)

        async def _async_release_event_clients(app: web.Application) -> None:
            self.event_stream.close_hub(app[KEY_HUB].index)

        app.on_shutdown.append(_async_release_event_clients)
        return app

    def _create_hub(self, index: int) -> Hub:
        return Hub(
            index,
            self.config.hub_port(index),
            self.config.bind_address,
            app_factory=self.create_hub_app,
            announcer_factory=self._create_announcer if self.config.enable_discovery else None,
            ssl_context=self._ssl_context,
        )

    def _create_announcer(self, hub: Hub) -> DiscoveryAnnouncer:
        return DiscoveryAnnouncer(
            self.advertise_ip,
            self.config.advertised_base(hub.index, self.advertise_ip).with_path(
                DESCRIPTION_PATH
            ),
            self.hub_identity(hub.index).bridge_uuid,
            upnp_bind_multicast=self.config.upnp_bind_multicast,
        )
