"""Hub pool: one HTTP listener plus discovery announcer per device partition."""
from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
import math
import ssl
from typing import Protocol

from aiohttp import web

from .const import HUB_SHUTDOWN_TIMEOUT

_LOGGER = logging.getLogger(__name__)


class Announcer(Protocol):
    """Something that advertises a hub on the network."""

    async def async_start(self) -> None:
        """Start announcing."""

    async def async_stop(self) -> None:
        """Stop announcing and release the network resources."""


class Hub:
    """One emulated Hue bridge bound to its own port."""

    def __init__(
        self,
        index: int,
        port: int,
        bind_address: str,
        app_factory: Callable[[Hub], web.Application],
        announcer_factory: Callable[[Hub], Announcer] | None = None,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        """Initialize the hub."""
        self.index = index
        self.port = port
        self.bind_address = bind_address
        self.closing = False
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None
        self.announcer: Announcer | None = None
        self._app_factory = app_factory
        self._announcer_factory = announcer_factory
        self._ssl_context = ssl_context

    def __repr__(self) -> str:
        return f"<Hub {self.index} port={self.port} closing={self.closing}>"

    async def async_start(self) -> None:
        """Start the listener, then the announcer."""
        self.runner = web.AppRunner(
            self._app_factory(self),
            shutdown_timeout=HUB_SHUTDOWN_TIMEOUT,
            access_log=None,
        )
        await self.runner.setup()
        self.site = web.TCPSite(
            self.runner,
            self.bind_address,
            self.port,
            ssl_context=self._ssl_context,
            reuse_address=True,
        )

        try:
            await self.site.start()
        except OSError as error:
            _LOGGER.error(
                "Failed to start hub %d on %s:%d: %s",
                self.index,
                self.bind_address,
                self.port,
                error,
            )
            await self.runner.cleanup()
            raise

        _LOGGER.info("Hub %d listening on %s:%d", self.index, self.bind_address, self.port)

        # Only announce a port that already accepts connections
        if self._announcer_factory is not None:
            self.announcer = self._announcer_factory(self)
            try:
                await self.announcer.async_start()
            except OSError as error:
                _LOGGER.error(
                    "Failed to create SSDP responder for hub %d: %s", self.index, error
                )
                self.announcer = None

    async def async_stop(self) -> None:
        """Drain the hub: stop announcing, then close the listener."""
        self.closing = True
        _LOGGER.info("Stopping hub %d on port %d", self.index, self.port)

        if self.announcer is not None:
            await self.announcer.async_stop()
            self.announcer = None

        # Waits up to the shutdown timeout for in-flight responses
        if self.runner is not None:
            await self.runner.cleanup()
        self.site = None
        self.runner = None
        _LOGGER.info("Hub %d stopped", self.index)


class HubScaler:
    """Keep the number of running hubs in line with the registry size.

    Growth and shrink happen one hub per recompute. The highest index is
    always the one removed, and it is only dropped from the pool once it
    has fully drained, so an index is never handed out twice at once.
    """

    def __init__(self, hub_factory: Callable[[int], Hub], max_items_per_hub: int) -> None:
        """Initialize the scaler."""
        self._hub_factory = hub_factory
        self.max_items_per_hub = max_items_per_hub
        self.hubs: list[Hub] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self.hubs)

    def needed_hubs(self, device_count: int) -> int:
        """Return how many hubs ``device_count`` devices require."""
        if self.max_items_per_hub <= 0:
            return 1
        return max(1, math.ceil(device_count / self.max_items_per_hub))

    async def async_recompute(self, device_count: int) -> None:
        """Add or remove at most one hub to approach the needed count."""
        async with self._lock:
            needed = self.needed_hubs(device_count)
            current = len(self.hubs)
            if needed > current:
                _LOGGER.debug("Upscaling hubs: %d/%d", needed, current)
                await self._async_add_hub()
            elif needed < current:
                _LOGGER.debug("Downscaling hubs: %d/%d", needed, current)
                await self._async_remove_hub()

    async def async_stop_all(self) -> None:
        """Stop every hub, highest index first."""
        async with self._lock:
            while self.hubs:
                await self._async_remove_hub()

    async def _async_add_hub(self) -> None:
        hub = self._hub_factory(len(self.hubs))
        await hub.async_start()
        self.hubs.append(hub)

    async def _async_remove_hub(self) -> None:
        hub = self.hubs[-1]
        # Late requests must see the drain before any socket work starts
        hub.closing = True
        try:
            await hub.async_stop()
        finally:
            self.hubs.pop()
