"""Hue v1 REST API endpoints.

Implements the path/verb oriented Philips Hue bridge API so that Alexa can
discover and control the devices of one hub's partition.
"""
from __future__ import annotations

import datetime
from http import HTTPStatus
import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from .const import (
    BRIDGE_MODEL_ID,
    HUE_API_USERNAME,
    HUE_API_VERSION,
    HUE_DATASTORE_VERSION,
    HUE_SW_VERSION,
)
from .hue_device import DeviceRecord
from .identity import generate_unique_id
from .view import KEY_CONTROLLER, KEY_HUB, HueView, hue_api_error

if TYPE_CHECKING:
    from .controller import AlexaHomeController

_LOGGER = logging.getLogger(__name__)

# Hue API state key names (as they appear in JSON requests/responses)
HUE_API_STATE_ON = "on"
HUE_API_STATE_BRI = "bri"
HUE_API_STATE_COLORMODE = "colormode"
HUE_API_STATE_HUE = "hue"
HUE_API_STATE_SAT = "sat"
HUE_API_STATE_CT = "ct"
HUE_API_STATE_XY = "xy"
HUE_API_STATE_EFFECT = "effect"

ITEM_TYPE_LIGHTS = "lights"
LIGHT_SW_VERSION = "1.46.13_r26312"

_SUCCESS_KEYS = (
    HUE_API_STATE_ON,
    HUE_API_STATE_BRI,
    HUE_API_STATE_XY,
    HUE_API_STATE_HUE,
    HUE_API_STATE_SAT,
    HUE_API_STATE_CT,
)


def _controller(request: web.Request) -> AlexaHomeController:
    return request.app[KEY_CONTROLLER]


def _timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


# ---------------------------------------------------------------------------
# View classes, registered on every hub app
# ---------------------------------------------------------------------------


class HueUsernameView(HueView):
    """Handle POST /api: fake username/pairing creation."""

    url = "/api"
    extra_urls = ["/api/{username}"]
    name = "alexa_hue_bridge:api:create_username"

    async def post(self, request: web.Request, username: str = "") -> web.Response:
        """Handle a POST request."""
        _LOGGER.debug("Handling registration request from %s", request.remote)
        return self.json([{"success": {"username": username or HUE_API_USERNAME}}])


class HueConfigView(HueView):
    """Handle GET /api/{username}/config: bridge configuration."""

    url = "/api/config"
    extra_urls = ["/api/{username}/config"]
    name = "alexa_hue_bridge:username:config"

    async def get(self, request: web.Request, username: str = "") -> web.Response:
        """Handle a GET request."""
        return self.json(_create_config_model(request, username))


class HueFullStateView(HueView):
    """Handle GET /api/{username}: full state of this hub."""

    url = "/api/"
    extra_urls = ["/api/{username}"]
    name = "alexa_hue_bridge:username:state"

    async def get(self, request: web.Request, username: str = "") -> web.Response:
        """Handle a GET request."""
        lights = _create_list_of_devices(request)
        _LOGGER.debug(
            "Sending %d lights of hub %d to %s",
            len(lights),
            request.app[KEY_HUB].index,
            request.remote,
        )
        return self.json(
            {
                "lights": lights,
                "config": _create_config_model(request, username),
            }
        )


class HueItemListView(HueView):
    """Handle GET/POST /api/{username}/{item_type}: paginated item listing."""

    url = "/api/{username}/{item_type}"
    name = "alexa_hue_bridge:items:state"

    async def get(self, request: web.Request, username: str, item_type: str) -> web.Response:
        """Handle a GET request."""
        _LOGGER.debug("Handling item list request: %s", item_type)
        # Alexa expects an empty object, not an error, for other item types
        if item_type != ITEM_TYPE_LIGHTS:
            return self.json({})
        return self.json(_create_list_of_devices(request))

    post = get


class HueOneLightStateView(HueView):
    """Handle GET /api/{username}/{item_type}/{item_id}: single device state."""

    url = "/api/{username}/{item_type}/{item_id}"
    name = "alexa_hue_bridge:light:state"

    async def get(
        self, request: web.Request, username: str, item_type: str, item_id: str
    ) -> web.Response:
        """Handle a GET request."""
        if item_type != ITEM_TYPE_LIGHTS:
            return web.Response(status=HTTPStatus.NOT_FOUND)

        device = _controller(request).registry.get(item_id)
        if device is None:
            _LOGGER.warning("Unknown device requested: %s", item_id)
            return web.Response(status=HTTPStatus.BAD_GATEWAY)

        device.record_access(request.remote)
        return self.json(device_to_json(device))


class HueOneLightChangeView(HueView):
    """Handle PUT /api/{username}/{item_type}/{item_id}/state: control a device."""

    url = "/api/{username}/{item_type}/{item_id}/state"
    name = "alexa_hue_bridge:light:change"

    async def put(
        self, request: web.Request, username: str, item_type: str, item_id: str
    ) -> web.Response:
        """Process a request to set the state of an individual device."""
        if item_type != ITEM_TYPE_LIGHTS:
            return web.Response(status=HTTPStatus.NOT_FOUND)

        controller = _controller(request)
        device = controller.registry.get(item_id)
        if device is None:
            _LOGGER.warning("Control of unknown device requested: %s", item_id)
            return web.Response(status=HTTPStatus.BAD_GATEWAY)

        try:
            request_json = await request.json()
        except ValueError:
            _LOGGER.error("Received invalid json")
            return self.json_message("Invalid JSON", HTTPStatus.BAD_REQUEST)

        command = controller.process_command(
            device,
            request_json,
            client_ip=_client_ip(request),
            headers=dict(request.headers),
        )
        if command is None:
            return self.json(
                hue_api_error(
                    6,
                    f"/lights/{item_id}/state",
                    "parameter, state, not available",
                )
            )

        payload = command.to_payload()
        return self.json(
            [
                _create_hue_success_response(item_id, key, payload[key])
                for key in _SUCCESS_KEYS
                if key in payload
            ]
        )


V1_VIEWS: tuple[type[HueView], ...] = (
    # Literal paths first, they would otherwise match a path parameter
    HueConfigView,
    HueUsernameView,
    HueFullStateView,
    HueItemListView,
    HueOneLightStateView,
    HueOneLightChangeView,
)


# ---------------------------------------------------------------------------
# State conversion helpers
# ---------------------------------------------------------------------------


def device_to_json(device: DeviceRecord) -> dict[str, Any]:
    """Convert a DeviceRecord to its Hue v1 light representation."""
    state = device.state
    device_type = device.device_type

    json_state: dict[str, Any] = {
        HUE_API_STATE_ON: state.on,
        HUE_API_STATE_BRI: device.v1_brightness,
        "alert": "none",
        "mode": "homeautomation",
        "reachable": True,
    }

    if device_type.supports_color:
        json_state.update(
            {
                HUE_API_STATE_HUE: state.hue or 0,
                HUE_API_STATE_SAT: state.sat or 0,
                HUE_API_STATE_XY: state.xy,
                HUE_API_STATE_EFFECT: "none",
                HUE_API_STATE_COLORMODE: "xy",
            }
        )
    if device_type.supports_color_temperature:
        json_state[HUE_API_STATE_CT] = state.ct
        json_state.setdefault(HUE_API_STATE_COLORMODE, "ct")

    retval: dict[str, Any] = {
        "state": {key: value for key, value in json_state.items() if value is not None},
        "type": device_type.value,
        "name": device.name,
        "modelid": device_type.model_id,
        "manufacturername": "Philips",
        "productname": device_type.product_name,
        "uniqueid": generate_unique_id(device.uuid),
        "swversion": LIGHT_SW_VERSION,
    }
    return retval


def _create_list_of_devices(request: web.Request) -> dict[str, Any]:
    """Create a dict of the hub's partition keyed by uuid."""
    controller = _controller(request)
    hub = request.app[KEY_HUB]
    return {device.uuid: device_to_json(device) for device in controller.page(hub.index)}


def _create_hue_success_response(item_id: str, attr: str, value: Any) -> dict[str, Any]:
    """Create a success response for an attribute set on a light."""
    success_key = f"/lights/{item_id}/state/{attr}"
    return {"success": {success_key: value}}


def _create_config_model(request: web.Request, username: str = "") -> dict[str, Any]:
    """Create the bridge config response for this hub."""
    controller = _controller(request)
    return create_bridge_config(controller, request.app[KEY_HUB].index, username)


def create_bridge_config(
    controller: AlexaHomeController, hub_index: int, username: str = ""
) -> dict[str, Any]:
    """Build the bridge configuration shared by the v1 and v2 APIs."""
    identity = controller.hub_identity(hub_index)
    now = _timestamp()
    return {
        "name": controller.config.bridge_name,
        "datastoreversion": HUE_DATASTORE_VERSION,
        "swversion": HUE_SW_VERSION,
        "apiversion": HUE_API_VERSION,
        "mac": identity.mac,
        "bridgeid": identity.bridge_id,
        "factorynew": False,
        "replacesbridgeid": None,
        "modelid": BRIDGE_MODEL_ID,
        "starterkitid": "",
        "linkbutton": False,
        "ipaddress": controller.advertise_ip,
        "netmask": "255.255.255.0",
        "gateway": controller.advertise_ip,
        "dhcp": True,
        "portalservices": False,
        "UTC": now,
        "localtime": now,
        "timezone": "UTC",
        "zigbeechannel": 25,
        "whitelist": {
            username
            or HUE_API_USERNAME: {
                "last use date": now,
                "create date": now,
                "name": "Alexa#Echo",
            }
        },
    }


def _client_ip(request: web.Request) -> str | None:
    """Return the address of the Alexa device behind a request."""
    return request.headers.get("X-Forwarded-For") or request.remote
