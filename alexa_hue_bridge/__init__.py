"""Alexa Hue bridge emulator.

Runs one or more HTTP listeners plus SSDP responders that emulate Philips
Hue bridges, so that Alexa can discover and control accessories registered
by the hosting runtime. Each emulated bridge (a hub) serves a fixed size
slice of the registered devices.
"""
from __future__ import annotations

from collections.abc import Mapping
import logging
import os
import ssl
from typing import Any

from .config import BridgeConfig, config_from_env
from .controller import AccessoryLifecycle, AlexaHomeController, DeviceEvent
from .exceptions import BridgeError, DeviceNotFoundError, UnrecognizedCommandError
from .hue_device import DeviceRecord, DeviceState, DeviceType

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "AccessoryLifecycle",
    "AlexaHomeController",
    "BridgeConfig",
    "BridgeError",
    "DeviceEvent",
    "DeviceNotFoundError",
    "DeviceRecord",
    "DeviceState",
    "DeviceType",
    "UnrecognizedCommandError",
    "async_setup_bridge",
]


async def async_setup_bridge(
    config: BridgeConfig | Mapping[str, Any] | None = None,
    *,
    ssl_context: ssl.SSLContext | None = None,
) -> AlexaHomeController:
    """Set up and start an Alexa Hue bridge.

    Without an explicit config the ``ALEXA_*`` environment variables are used.
    """
    if config is None:
        config = config_from_env(os.environ)
    elif not isinstance(config, BridgeConfig):
        config = BridgeConfig.from_dict(config)

    if config.use_https and ssl_context is None:
        _LOGGER.warning("HTTPS requested without an SSL context, serving plain HTTP")

    controller = AlexaHomeController(config, ssl_context=ssl_context)
    await controller.async_start()
    return controller
