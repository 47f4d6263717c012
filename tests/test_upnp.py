"""Tests for the SSDP responder and announcer."""
from unittest.mock import MagicMock

import pytest

from alexa_hue_bridge.const import SSDP_BROADCAST_ADDR, SSDP_BROADCAST_PORT
from alexa_hue_bridge.upnp import (
    NTS_ALIVE,
    NTS_BYEBYE,
    DiscoveryAnnouncer,
    UPNPResponderProtocol,
    build_notify,
    build_search_response,
)

LOCATION = "http://192.168.1.10:8080/alexa-home/setup.xml"
UDN = "uuid:f6543a06-da50-11ba-8d8f-00abc8765432"


def _m_search(st: str) -> str:
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {SSDP_BROADCAST_ADDR}:{SSDP_BROADCAST_PORT}\r\n"
        'MAN: "ssdp:discover"\r\n'
        "MX: 2\r\n"
        f"ST: {st}\r\n"
        "\r\n"
    )


@pytest.fixture
def protocol() -> UPNPResponderProtocol:
    protocol = UPNPResponderProtocol(MagicMock(), LOCATION, UDN)
    protocol.connection_made(MagicMock())
    return protocol


def test_search_for_all_answers_every_usn(protocol):
    responses = protocol._handle_request(_m_search("ssdp:all"))
    assert len(responses) == 2
    assert b"USN: " + UDN.encode() + b"::upnp:rootdevice" in responses[0]
    assert b"ST: urn:schemas-upnp-org:device:basic:1" in responses[1]


def test_search_for_root_device(protocol):
    responses = protocol._handle_request(_m_search("upnp:rootdevice"))
    assert len(responses) == 1
    response = responses[0].decode()
    assert response.startswith("HTTP/1.1 200 OK\r\n")
    assert f"LOCATION: {LOCATION}\r\n" in response
    assert response.endswith("\r\n\r\n")


def test_search_for_our_udn(protocol):
    responses = protocol._handle_request(_m_search(UDN))
    assert f"USN: {UDN}\r\n".encode() in responses[0]


@pytest.mark.parametrize(
    "data",
    [
        _m_search("urn:dial-multiscreen-org:service:dial:1"),
        _m_search("uuid:someone-else"),
        "NOTIFY * HTTP/1.1\r\nNT: upnp:rootdevice\r\n\r\n",
        "garbage",
    ],
)
def test_other_requests_are_ignored(protocol, data):
    assert protocol._handle_request(data) == []


def test_datagram_received_answers_sender(protocol):
    addr = ("192.168.1.50", 50000)
    protocol.datagram_received(_m_search("ssdp:all").encode(), addr)
    assert protocol.transport.sendto.call_count == 2
    assert protocol.transport.sendto.call_args.args[1] == addr


def test_send_notify_multicasts_every_usn(protocol):
    protocol.send_notify(NTS_ALIVE)
    calls = protocol.transport.sendto.call_args_list
    assert len(calls) == 2
    assert all(call.args[1] == (SSDP_BROADCAST_ADDR, SSDP_BROADCAST_PORT) for call in calls)


def test_close_releases_socket(protocol):
    transport = protocol.transport
    protocol.close()
    transport.close.assert_called_once()
    protocol._sock.close.assert_called_once()


def test_build_search_response():
    response = build_search_response(LOCATION, UDN, "upnp:rootdevice").decode()
    assert "CACHE-CONTROL: max-age=100\r\n" in response
    assert "EXT: \r\n" in response
    assert "ST: upnp:rootdevice\r\n" in response


def test_build_notify_alive_and_byebye():
    alive = build_notify(LOCATION, UDN, "upnp:rootdevice", NTS_ALIVE).decode()
    assert alive.startswith("NOTIFY * HTTP/1.1\r\n")
    assert "NTS: ssdp:alive\r\n" in alive
    assert "LOCATION: " in alive

    byebye = build_notify(LOCATION, UDN, "upnp:rootdevice", NTS_BYEBYE).decode()
    assert "NTS: ssdp:byebye\r\n" in byebye
    assert "LOCATION: " not in byebye
    assert f"USN: {UDN}::upnp:rootdevice\r\n" in byebye


async def test_announcer_says_goodbye_on_stop(protocol):
    announcer = DiscoveryAnnouncer("192.168.1.10", LOCATION, "f6543a06-da50-11ba-8d8f-00abc8765432")
    assert announcer.udn == UDN
    announcer.protocol = protocol
    transport = protocol.transport

    await announcer.async_stop()
    sent = [call.args[0] for call in transport.sendto.call_args_list]
    assert len(sent) == 2
    assert all(b"NTS: ssdp:byebye" in data for data in sent)
    transport.close.assert_called_once()
    assert announcer.protocol is None


async def test_announcer_stop_without_start():
    announcer = DiscoveryAnnouncer("192.168.1.10", LOCATION, "abc")
    await announcer.async_stop()
    assert announcer.protocol is None
