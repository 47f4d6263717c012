"""Support UPNP discovery method that mimics Hue hubs."""
from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from typing import Any

from aiohttp import web
from yarl import URL

from .const import (
    BRIDGE_MODEL_ID,
    DESCRIPTION_PATH,
    SSDP_BROADCAST_ADDR,
    SSDP_BROADCAST_PORT,
    SSDP_MAX_AGE,
    SSDP_NOTIFY_INTERVAL,
    SSDP_SERVER,
    USN_BASIC_DEVICE,
    USN_ROOT_DEVICE,
)
from .identity import HubIdentity
from .view import HueView

_LOGGER = logging.getLogger(__name__)

NTS_ALIVE = "ssdp:alive"
NTS_BYEBYE = "ssdp:byebye"
ST_ALL = "ssdp:all"

DESCRIPTION_XML = """<?xml version="1.0" encoding="UTF-8" ?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
<specVersion>
<major>1</major>
<minor>0</minor>
</specVersion>
<URLBase>{base_url}/</URLBase>
<device>
<deviceType>urn:schemas-upnp-org:device:Basic:1</deviceType>
<friendlyName>{friendly_name}</friendlyName>
<manufacturer>Royal Philips Electronics</manufacturer>
<manufacturerURL>http://www.philips.com</manufacturerURL>
<modelDescription>Philips hue Personal Wireless Lighting</modelDescription>
<modelName>Philips hue bridge 2015</modelName>
<modelNumber>{model_number}</modelNumber>
<modelURL>http://www.meethue.com</modelURL>
<serialNumber>{serial_number}</serialNumber>
<UDN>uuid:{bridge_uuid}</UDN>
<presentationURL>index.html</presentationURL>
</device>
</root>
"""


class DescriptionXmlView(HueView):
    """Handles requests for the description.xml file."""

    url = DESCRIPTION_PATH
    name = "alexa_hue_bridge:description:xml"

    def __init__(self, identity: HubIdentity, base_url: URL, bridge_name: str) -> None:
        """Initialize the instance of the view."""
        self.identity = identity
        self.base_url = base_url
        self.bridge_name = bridge_name

    async def get(self, request: web.Request) -> web.Response:
        """Handle a GET request."""
        resp_text = DESCRIPTION_XML.format(
            base_url=str(self.base_url).rstrip("/"),
            friendly_name=f"{self.bridge_name} ({self.base_url.host})",
            model_number=BRIDGE_MODEL_ID,
            serial_number=self.identity.serial_number,
            bridge_uuid=self.identity.bridge_uuid,
        )
        return web.Response(text=resp_text, content_type="text/xml")


def _ssdp_message(start_line: str, headers: list[tuple[str, str]]) -> bytes:
    lines = [start_line, *(f"{key}: {value}" for key, value in headers), "", ""]
    return "\r\n".join(lines).encode("utf-8")


def build_search_response(location: str, udn: str, st: str) -> bytes:
    """Build the unicast answer to an M-SEARCH for ``st``."""
    usn = udn if st == udn else f"{udn}::{st}"
    return _ssdp_message(
        "HTTP/1.1 200 OK",
        [
            ("CACHE-CONTROL", f"max-age={SSDP_MAX_AGE}"),
            ("EXT", ""),
            ("LOCATION", location),
            ("SERVER", SSDP_SERVER),
            ("ST", st),
            ("USN", usn),
        ],
    )


def build_notify(location: str, udn: str, nt: str, nts: str) -> bytes:
    """Build a multicast NOTIFY for ``nt``."""
    headers = [
        ("HOST", f"{SSDP_BROADCAST_ADDR}:{SSDP_BROADCAST_PORT}"),
        ("CACHE-CONTROL", f"max-age={SSDP_MAX_AGE}"),
        ("LOCATION", location),
        ("SERVER", SSDP_SERVER),
        ("NTS", nts),
        ("NT", nt),
        ("USN", f"{udn}::{nt}"),
    ]
    if nts == NTS_BYEBYE:
        headers = [header for header in headers if header[0] in ("HOST", "NTS", "NT", "USN")]
    return _ssdp_message("NOTIFY * HTTP/1.1", headers)


def _parse_headers(data: str) -> dict[str, str]:
    headers: dict[str, str] = {}
    for line in data.splitlines()[1:]:
        key, sep, value = line.partition(":")
        if sep:
            headers[key.strip().upper()] = value.strip()
    return headers


class UPNPResponderProtocol(asyncio.DatagramProtocol):
    """Handle responding to UPNP/SSDP discovery requests."""

    def __init__(
        self,
        ssdp_socket: socket.socket,
        location: str,
        udn: str,
    ) -> None:
        """Initialize the class."""
        self.transport: asyncio.DatagramTransport | None = None
        self._sock = ssdp_socket
        self.location = location
        self.udn = udn

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        """Set the transport."""
        self.transport = transport  # type: ignore[assignment]

    def connection_lost(self, exc: Exception | None) -> None:
        """Handle connection lost."""

    def datagram_received(self, data: bytes, addr: Any) -> None:
        """Respond to M-SEARCH requests for this bridge."""
        for response in self._handle_request(data.decode("utf-8", errors="replace")):
            _LOGGER.debug("SSDP answering %s for %s", addr, self.location)
            if self.transport is not None:
                self.transport.sendto(response, addr)

    def error_received(self, exc: Exception) -> None:
        """Log UPNP errors."""
        _LOGGER.error("UPNP Error received: %s", exc)

    def send_notify(self, nts: str) -> None:
        """Multicast a NOTIFY for every USN of this bridge."""
        if self.transport is None:
            return
        for nt in (USN_ROOT_DEVICE, USN_BASIC_DEVICE):
            self.transport.sendto(
                build_notify(self.location, self.udn, nt, nts),
                (SSDP_BROADCAST_ADDR, SSDP_BROADCAST_PORT),
            )

    def close(self) -> None:
        """Stop the server."""
        _LOGGER.info("UPNP responder shutting down")
        if self.transport:
            self.transport.close()
        self._sock.close()

    def _handle_request(self, decoded_data: str) -> list[bytes]:
        if not decoded_data.startswith("M-SEARCH"):
            return []

        st = _parse_headers(decoded_data).get("ST", "")
        if st == ST_ALL:
            targets = [USN_ROOT_DEVICE, USN_BASIC_DEVICE]
        elif st in (USN_ROOT_DEVICE, USN_BASIC_DEVICE, self.udn):
            targets = [st]
        else:
            return []
        return [build_search_response(self.location, self.udn, target) for target in targets]


async def async_create_upnp_datagram_endpoint(
    host_ip_addr: str,
    upnp_bind_multicast: bool,
    location: str,
    udn: str,
) -> UPNPResponderProtocol:
    """Create the UPNP socket and protocol."""
    # Listen for UDP port 1900 packets sent to SSDP multicast address
    ssdp_socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    ssdp_socket.setblocking(False)

    try:
        # Required for receiving multicast
        ssdp_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        ssdp_socket.setsockopt(
            socket.SOL_IP, socket.IP_MULTICAST_IF, socket.inet_aton(host_ip_addr)
        )
        ssdp_socket.setsockopt(
            socket.SOL_IP,
            socket.IP_ADD_MEMBERSHIP,
            socket.inet_aton(SSDP_BROADCAST_ADDR) + socket.inet_aton(host_ip_addr),
        )

        ssdp_socket.bind(("" if upnp_bind_multicast else host_ip_addr, SSDP_BROADCAST_PORT))
    except OSError:
        ssdp_socket.close()
        raise

    loop = asyncio.get_running_loop()
    _, protocol = await loop.create_datagram_endpoint(
        lambda: UPNPResponderProtocol(ssdp_socket, location, udn),
        sock=ssdp_socket,
    )
    return protocol


class DiscoveryAnnouncer:
    """SSDP presence of one hub: M-SEARCH answers plus periodic NOTIFY."""

    def __init__(
        self,
        host_ip_addr: str,
        location: URL,
        bridge_uuid: str,
        upnp_bind_multicast: bool = True,
        notify_interval: float = SSDP_NOTIFY_INTERVAL,
    ) -> None:
        """Initialize the announcer."""
        self.host_ip_addr = host_ip_addr
        self.location = str(location)
        self.udn = f"uuid:{bridge_uuid}"
        self.upnp_bind_multicast = upnp_bind_multicast
        self.notify_interval = notify_interval
        self.protocol: UPNPResponderProtocol | None = None
        self._notify_task: asyncio.Task[None] | None = None

    async def async_start(self) -> None:
        """Bind the SSDP socket and start announcing."""
        self.protocol = await async_create_upnp_datagram_endpoint(
            self.host_ip_addr, self.upnp_bind_multicast, self.location, self.udn
        )
        self._notify_task = asyncio.create_task(self._async_notify_loop())
        _LOGGER.info("Announcing %s as %s", self.location, self.udn)

    async def async_stop(self) -> None:
        """Say goodbye and unbind the SSDP socket."""
        if self._notify_task is not None:
            self._notify_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._notify_task
            self._notify_task = None

        if self.protocol is not None:
            self.protocol.send_notify(NTS_BYEBYE)
            self.protocol.close()
            self.protocol = None
        _LOGGER.info("Stopped announcing %s", self.location)

    async def _async_notify_loop(self) -> None:
        while self.protocol is not None:
            self.protocol.send_notify(NTS_ALIVE)
            await asyncio.sleep(self.notify_interval)
