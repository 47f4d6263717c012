"""Bridge identity derivation.

Alexa caches the identity a bridge presents during discovery, so every
function here is pure: identical input always yields identical output.
"""
from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any

from .const import BRIDGE_ID_TOKEN, BRIDGE_UUID_PREFIX, MAC_TEMPLATE, UNIQUE_ID_TEMPLATE

_NON_HEX = re.compile(r"[^a-fA-F0-9]")
_DIGIT = re.compile(r"\d")


def _fill_template(template: str, source: str) -> str:
    """Replace each digit slot of ``template`` with one character of ``source``.

    Non-hex characters of ``source`` become ``F``. Once the source is used
    up the remaining slots get a descending filler 8, 7, ... 0.
    """
    chars = list(_NON_HEX.sub("f", source).upper())
    filler = 9

    def _next_slot(_match: re.Match[str]) -> str:
        nonlocal filler
        if chars:
            return chars.pop(0)
        filler = max(filler - 1, 0)
        return str(filler)

    return _DIGIT.sub(_next_slot, template)


def generate_mac_address(device_id: str) -> str:
    """Generate a pseudo MAC address from an opaque identifier."""
    return _fill_template(MAC_TEMPLATE, device_id)


def generate_unique_id(device_id: str) -> str:
    """Generate a Hue ``uniqueid`` (MAC plus endpoint) for a light."""
    return _fill_template(UNIQUE_ID_TEMPLATE, device_id)


def get_bridge_id(mac: str) -> str:
    """Return the 16 character bridge id for a MAC address."""
    compact = mac.replace(":", "")
    return compact[:6] + BRIDGE_ID_TOKEN + compact[6:]


def format_uuid(light_id: Any) -> str:
    """Normalize an accessory id into a registry key."""
    if light_id is None:
        return ""
    return str(light_id).replace(".", "").strip()


def format_bridge_uuid(light_id: Any) -> str:
    """Return a bridge UUID for ``light_id``."""
    if light_id is None:
        return ""
    return BRIDGE_UUID_PREFIX + format_uuid(light_id)


@dataclass(frozen=True)
class HubIdentity:
    """The identity one hub presents to discovery clients."""

    mac: str
    bridge_id: str
    bridge_uuid: str

    @property
    def serial_number(self) -> str:
        """Return the bridge id without the ``FFFE`` infix."""
        return (self.bridge_id[:6] + self.bridge_id[6 + len(BRIDGE_ID_TOKEN) :]).lower()


def hub_identity(index: int, controller_id: Any) -> HubIdentity:
    """Derive the identity of hub ``index`` for a controller."""
    mac = generate_mac_address(f"{index:02x}{format_uuid(controller_id)}")
    return HubIdentity(
        mac=mac.lower(),
        bridge_id=get_bridge_id(mac),
        bridge_uuid=format_bridge_uuid(mac.replace(":", "").lower()),
    )
