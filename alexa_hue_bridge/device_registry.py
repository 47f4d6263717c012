"""Ordered registry of the devices exposed through the emulated hubs."""
from __future__ import annotations

from collections.abc import Iterator
import logging
from typing import Any

from .exceptions import DeviceNotFoundError
from .hue_device import DeviceRecord
from .identity import format_uuid

_LOGGER = logging.getLogger(__name__)


class DeviceRegistry:
    """Insertion-ordered mapping of device uuid to DeviceRecord.

    Enumeration order is stable as long as nothing is added or removed,
    which the per-hub pagination depends on. Re-registering an existing id
    replaces the record in place and keeps its position.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._devices: dict[str, DeviceRecord] = {}

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[DeviceRecord]:
        return iter(list(self._devices.values()))

    def __contains__(self, uuid: object) -> bool:
        return uuid in self._devices

    def register(self, device: DeviceRecord) -> str:
        """Add or replace a device and return its uuid."""
        uuid = format_uuid(device.id)
        if not uuid:
            raise ValueError(f"Device {device.name!r} has no usable id")

        existing = self._devices.get(uuid)
        if existing is not None and existing is not device:
            # Same accessory registering again keeps its identity
            device.created_at = existing.created_at
        device.uuid = uuid
        self._devices[uuid] = device

        _LOGGER.info(
            "%s device: %s (uuid: %s, type: %s)",
            "Re-registered" if existing is not None else "Registered",
            device.name,
            uuid,
            device.device_type.value,
        )
        return uuid

    def deregister(self, uuid: str) -> DeviceRecord | None:
        """Remove a device, returning it if it was registered."""
        device = self._devices.pop(uuid, None)
        if device is None:
            _LOGGER.debug("Deregistering unknown device: %s", uuid)
            return None
        _LOGGER.info("Deregistered device: %s (uuid: %s)", device.name, uuid)
        return device

    def get(self, uuid: str) -> DeviceRecord | None:
        """Get a device by uuid."""
        return self._devices.get(uuid)

    def require(self, uuid: str) -> DeviceRecord:
        """Get a device by uuid or raise DeviceNotFoundError."""
        try:
            return self._devices[uuid]
        except KeyError:
            raise DeviceNotFoundError(uuid) from None

    def get_all_devices(self) -> list[DeviceRecord]:
        """Get all devices in registration order."""
        return list(self._devices.values())

    def items_per_hub(self, max_items_per_hub: int) -> int:
        """Return the partition size used for pagination."""
        return len(self._devices) if max_items_per_hub <= 0 else max_items_per_hub

    def page(self, hub_index: int, max_items_per_hub: int) -> list[DeviceRecord]:
        """Return the slice of devices served by hub ``hub_index``."""
        items_per_hub = self.items_per_hub(max_items_per_hub)
        start_item = hub_index * items_per_hub + 1
        end_item = (hub_index + 1) * items_per_hub + 1

        page: list[DeviceRecord] = []
        for count, device in enumerate(self._devices.values(), start=1):
            if count < start_item:
                continue
            if count >= end_item:
                break
            page.append(device)

        _LOGGER.debug(
            "Hub %d serves items %d till %d of %d",
            hub_index,
            start_item - 1,
            end_item - 1,
            len(self._devices),
        )
        return page

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        by_type: dict[str, int] = {}
        for device in self._devices.values():
            by_type[device.device_type.value] = by_type.get(device.device_type.value, 0) + 1
        return {"total_devices": len(self._devices), "by_type": by_type}
