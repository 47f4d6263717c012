"""Hue v2 (CLIP v2) resource API and its server-sent event stream."""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
import datetime
from http import HTTPStatus
import json
import logging
from typing import TYPE_CHECKING, Any
import uuid

from aiohttp import hdrs, web

from .commands import bri_to_percent, percent_to_bri
from .const import (
    DEFAULT_CT,
    DEFAULT_XY,
    EVENT_STREAM_WRITE_TIMEOUT,
    HUE_API_STATE_CT_MAX,
    HUE_API_STATE_CT_MIN,
    V2_EVENTSTREAM_PATH,
    V2_RESOURCE_PATH,
)
from .hue_api import create_bridge_config
from .hue_device import DeviceRecord
from .view import (
    CORS_HEADERS,
    KEY_CONTROLLER,
    KEY_HUB,
    HueView,
    v2_envelope,
    v2_error_response,
)

if TYPE_CHECKING:
    from .controller import AlexaHomeController

_LOGGER = logging.getLogger(__name__)

RESOURCE_LIGHT = "light"
RESOURCE_DEVICE = "device"
RESOURCE_BRIDGE = "bridge"
PLACEHOLDER_RESOURCES = ("room", "zone", "scene", "bridge_home")
READ_ONLY_RESOURCES = (RESOURCE_DEVICE, RESOURCE_BRIDGE, *PLACEHOLDER_RESOURCES)

LIGHT_GAMUT = {
    "red": [0.6915, 0.3083],
    "green": [0.17, 0.7],
    "blue": [0.1532, 0.0475],
}
DEVICE_SW_VERSION = "1.88.1"


def _controller(request: web.Request) -> AlexaHomeController:
    return request.app[KEY_CONTROLLER]


def _creation_time() -> str:
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resource_address(resource_type: str, resource_id: str | None = None) -> str:
    address = f"{V2_RESOURCE_PATH}/{resource_type}"
    return f"{address}/{resource_id}" if resource_id else address


# ---------------------------------------------------------------------------
# Resource builders
# ---------------------------------------------------------------------------


def light_to_v2(device: DeviceRecord) -> dict[str, Any]:
    """Convert a DeviceRecord to a v2 ``light`` resource."""
    state = device.state
    device_type = device.device_type

    light: dict[str, Any] = {
        "id": device.uuid,
        "id_v1": f"/lights/{device.uuid}",
        "type": RESOURCE_LIGHT,
        "metadata": {"name": device.name, "archetype": device_type.archetype},
        "service_id": 0,
        "on": {"on": state.on},
        "dimming": {"brightness": bri_to_percent(device.v1_brightness), "min_dim_level": 0.2},
        "dynamics": {
            "status": "none",
            "status_values": ["none", "dynamic_palette"],
            "speed": 0.0,
            "speed_valid": False,
        },
        "alert": {"action_values": ["breathe"]},
        "signaling": {"signal_values": ["no_signal", "on_off"]},
        "mode": "normal",
        "effects": {
            "status_values": ["no_effect", "candle", "fire"],
            "status": "no_effect",
            "effect_values": ["no_effect", "candle", "fire"],
        },
        "owner": {"rid": device.uuid, "rtype": RESOURCE_DEVICE},
    }

    if device_type.supports_color:
        x, y = state.xy or DEFAULT_XY
        light["color"] = {"xy": {"x": x, "y": y}, "gamut": LIGHT_GAMUT, "gamut_type": "C"}

    if device_type.supports_color_temperature:
        light["color_temperature"] = {
            "mirek": state.ct or DEFAULT_CT,
            "mirek_valid": True,
            "mirek_schema": {
                "mirek_minimum": HUE_API_STATE_CT_MIN,
                "mirek_maximum": HUE_API_STATE_CT_MAX,
            },
        }

    return light


def device_to_v2(device: DeviceRecord) -> dict[str, Any]:
    """Convert a DeviceRecord to a v2 ``device`` resource."""
    device_type = device.device_type
    return {
        "id": device.uuid,
        "id_v1": f"/lights/{device.uuid}",
        "type": RESOURCE_DEVICE,
        "metadata": {"name": device.name, "archetype": device_type.archetype},
        "services": [{"rid": device.uuid, "rtype": RESOURCE_LIGHT}],
        "product_data": {
            "model_id": device_type.model_id,
            "manufacturer_name": "Philips",
            "product_name": device_type.product_name,
            "product_archetype": device_type.archetype,
            "certified": True,
            "software_version": DEVICE_SW_VERSION,
            "hardware_platform_type": "100b-103",
        },
    }


def light_update_commands(
    update: Mapping[str, Any],
) -> Iterator[tuple[str, dict[str, Any]]]:
    """Translate a v2 light update into v1 style command payloads.

    Yields the v2 field name with its payload for each recognized field,
    unknown fields are skipped.
    """
    on = update.get("on")
    if isinstance(on, Mapping) and "on" in on:
        yield "on", {"on": on["on"]}

    dimming = update.get("dimming")
    if isinstance(dimming, Mapping) and isinstance(dimming.get("brightness"), (int, float)):
        yield "dimming", {"bri": percent_to_bri(dimming["brightness"])}

    color = update.get("color")
    if isinstance(color, Mapping) and isinstance(xy := color.get("xy"), Mapping):
        yield "color", {"xy": [xy.get("x"), xy.get("y")]}

    color_temperature = update.get("color_temperature")
    if isinstance(color_temperature, Mapping) and "mirek" in color_temperature:
        yield "color_temperature", {"ct": color_temperature["mirek"]}


# ---------------------------------------------------------------------------
# Event stream
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class EventStreamClient:
    """One subscriber of the event stream."""

    hub_index: int
    response: web.StreamResponse
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    closed: asyncio.Event = field(default_factory=asyncio.Event)


def format_event(events: list[dict[str, Any]]) -> bytes:
    """Encode events as one server-sent event frame."""
    return f"data: {json.dumps(events)}\n\n".encode()


class HueEventStream:
    """Set of event stream clients across all hubs."""

    def __init__(self, write_timeout: float = EVENT_STREAM_WRITE_TIMEOUT) -> None:
        """Initialize the stream."""
        self.write_timeout = write_timeout
        self._clients: set[EventStreamClient] = set()

    def __len__(self) -> int:
        return len(self._clients)

    def clients(self, hub_index: int | None = None) -> list[EventStreamClient]:
        """Return the connected clients, optionally of one hub."""
        return [
            client
            for client in self._clients
            if hub_index is None or client.hub_index == hub_index
        ]

    async def async_subscribe(self, request: web.Request, hub_index: int) -> EventStreamClient:
        """Start a streaming response and register it as a client."""
        response = web.StreamResponse(
            headers={
                hdrs.CONTENT_TYPE: "text/event-stream",
                hdrs.CACHE_CONTROL: "no-cache",
                hdrs.CONNECTION: "keep-alive",
                **CORS_HEADERS,
            }
        )
        await response.prepare(request)

        client = EventStreamClient(hub_index=hub_index, response=response)
        self._clients.add(client)
        _LOGGER.debug("Event stream client %s connected to hub %d", client.id, hub_index)
        await response.write(format_event([{"type": "add", "id": client.id, "data": []}]))
        return client

    def unsubscribe(self, client: EventStreamClient) -> None:
        """Forget a client and release its request handler."""
        self._clients.discard(client)
        client.closed.set()

    async def async_broadcast(self, event: dict[str, Any]) -> None:
        """Send an event to every client, dropping the ones that fail."""
        data = format_event([event])
        # Snapshot, clients may go away while we await writes
        await asyncio.gather(
            *(self._async_send(client, data) for client in list(self._clients))
        )

    async def _async_send(self, client: EventStreamClient, data: bytes) -> None:
        try:
            await asyncio.wait_for(client.response.write(data), self.write_timeout)
        except TimeoutError:
            _LOGGER.warning("Dropping stalled event stream client %s", client.id)
            self.unsubscribe(client)
        except (ConnectionResetError, RuntimeError) as err:
            _LOGGER.warning("Dropping event stream client %s: %s", client.id, err)
            self.unsubscribe(client)

    def close_hub(self, hub_index: int) -> None:
        """Release every client of a hub that is shutting down."""
        for client in self.clients(hub_index):
            self.unsubscribe(client)

    def close_all(self) -> None:
        """Release every client."""
        for client in list(self._clients):
            self.unsubscribe(client)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class HueV2ResourceView(HueView):
    """Handle /clip/v2/resource/{resource_type}[/{resource_id}]."""

    url = V2_RESOURCE_PATH + "/{resource_type}"
    extra_urls = [V2_RESOURCE_PATH + "/{resource_type}/{resource_id}"]
    name = "alexa_hue_bridge:v2:resource"

    def _envelope(self, data: list[Any]) -> web.Response:
        return self.json(v2_envelope(data), headers=CORS_HEADERS)

    async def get(
        self, request: web.Request, resource_type: str, resource_id: str | None = None
    ) -> web.Response:
        """Handle a GET request."""
        controller = _controller(request)
        hub_index = request.app[KEY_HUB].index

        if resource_type == RESOURCE_LIGHT:
            return self._get_devices(
                controller, hub_index, resource_type, resource_id, light_to_v2
            )
        if resource_type == RESOURCE_DEVICE:
            return self._get_devices(
                controller, hub_index, resource_type, resource_id, device_to_v2
            )
        if resource_type == RESOURCE_BRIDGE:
            return self._get_bridge(controller, hub_index, resource_id)
        if resource_type in PLACEHOLDER_RESOURCES:
            return self._envelope([])

        return v2_error_response(
            3, _resource_address(resource_type), "resource not available"
        )

    async def put(
        self, request: web.Request, resource_type: str, resource_id: str | None = None
    ) -> web.Response:
        """Handle a PUT request."""
        if resource_type in READ_ONLY_RESOURCES:
            return v2_error_response(
                4,
                _resource_address(resource_type, resource_id),
                "method, PUT, not available for resource",
            )
        if resource_type != RESOURCE_LIGHT:
            return v2_error_response(
                3, _resource_address(resource_type), "resource not available"
            )
        if resource_id is None:
            return v2_error_response(
                4,
                _resource_address(resource_type),
                "method, PUT, not available for resource",
            )

        controller = _controller(request)
        device = controller.registry.get(resource_id)
        if device is None:
            _LOGGER.warning("v2 update of unknown light requested: %s", resource_id)
            return v2_error_response(
                3, _resource_address(resource_type, resource_id), "resource not available"
            )

        try:
            update = await request.json()
        except ValueError:
            update = None
        if not isinstance(update, dict):
            _LOGGER.error("Received invalid json")
            return v2_error_response(
                2, _resource_address(resource_type, resource_id), "body contains invalid JSON"
            )

        successes = []
        changed: dict[str, Any] = {}
        for field_name, payload in light_update_commands(update):
            command = controller.process_command(
                device,
                payload,
                client_ip=request.remote,
                headers=dict(request.headers),
            )
            if command is not None:
                successes.append({"rid": device.uuid, "rtype": RESOURCE_LIGHT})
                changed[field_name] = update[field_name]

        if successes:
            await controller.event_stream.async_broadcast(
                {
                    "type": "update",
                    "id": device.uuid,
                    "creationtime": _creation_time(),
                    "data": [{"id": device.uuid, "type": RESOURCE_LIGHT, **changed}],
                }
            )

        return self._envelope(successes)

    async def options(
        self, request: web.Request, resource_type: str, resource_id: str | None = None
    ) -> web.Response:
        """Answer CORS preflight requests."""
        return web.Response(status=HTTPStatus.OK, headers=CORS_HEADERS)

    def _get_devices(
        self,
        controller: AlexaHomeController,
        hub_index: int,
        resource_type: str,
        resource_id: str | None,
        to_v2: Callable[[DeviceRecord], dict[str, Any]],
    ) -> web.Response:
        if resource_id is None:
            return self._envelope([to_v2(device) for device in controller.page(hub_index)])

        if (device := controller.registry.get(resource_id)) is None:
            return v2_error_response(
                3, _resource_address(resource_type, resource_id), "resource not available"
            )
        return self._envelope([to_v2(device)])

    def _get_bridge(
        self, controller: AlexaHomeController, hub_index: int, username: str | None
    ) -> web.Response:
        identity = controller.hub_identity(hub_index)
        config = create_bridge_config(controller, hub_index, username or "")
        if not username:
            config.pop("whitelist")
        bridge = {
            "id": identity.bridge_uuid,
            "type": RESOURCE_BRIDGE,
            "bridge_id": identity.bridge_id.lower(),
            **config,
        }
        return self._envelope([bridge])


class HueEventStreamView(HueView):
    """Handle GET /eventstream/clip/v2: server-sent resource updates."""

    url = V2_EVENTSTREAM_PATH
    name = "alexa_hue_bridge:v2:eventstream"

    async def get(self, request: web.Request) -> web.StreamResponse:
        """Keep the response open until the client goes away."""
        stream = _controller(request).event_stream
        client = await stream.async_subscribe(request, request.app[KEY_HUB].index)
        try:
            await client.closed.wait()
        finally:
            stream.unsubscribe(client)
        return client.response


V2_VIEWS: tuple[type[HueView], ...] = (HueV2ResourceView, HueEventStreamView)
