"""Tests for bridge identity derivation."""
from alexa_hue_bridge.const import BRIDGE_UUID_PREFIX
from alexa_hue_bridge.identity import (
    HubIdentity,
    format_bridge_uuid,
    format_uuid,
    generate_mac_address,
    generate_unique_id,
    get_bridge_id,
    hub_identity,
)


def test_mac_address_pads_with_descending_filler():
    assert generate_mac_address("abc") == "AB:C8:76:54:32:10"


def test_mac_address_replaces_non_hex_characters():
    assert generate_mac_address("xyz") == "FF:F8:76:54:32:10"


def test_mac_address_truncates_long_ids():
    assert generate_mac_address("0123456789abcdef") == "01:23:45:67:89:AB"


def test_unique_id_keeps_template_shape():
    unique_id = generate_unique_id("abc")
    assert unique_id == "AB:C8:76:54:32:10:00:00-00"


def test_bridge_id_inserts_token():
    assert get_bridge_id("01:23:45:67:89:AB") == "012345FFFE6789AB"


def test_format_uuid():
    assert format_uuid("light.kitchen") == "lightkitchen"
    assert format_uuid(" 42 ") == "42"
    assert format_uuid(None) == ""


def test_format_bridge_uuid():
    assert format_bridge_uuid("001122334455") == BRIDGE_UUID_PREFIX + "001122334455"
    assert format_bridge_uuid(None) == ""


def test_hub_identity_is_deterministic():
    assert hub_identity(0, "abc") == hub_identity(0, "abc")


def test_hub_identity_differs_per_hub():
    first = hub_identity(0, "abc")
    second = hub_identity(1, "abc")
    assert first.mac == "00:ab:c8:76:54:32"
    assert second.mac == "01:ab:c8:76:54:32"
    assert first.bridge_id != second.bridge_id
    assert first.bridge_uuid != second.bridge_uuid


def test_hub_identity_fields():
    identity = hub_identity(0, "abc")
    assert identity.bridge_id == "00ABC8FFFE765432"
    assert identity.bridge_uuid == BRIDGE_UUID_PREFIX + "00abc8765432"
    assert identity.serial_number == "00abc8765432"


def test_serial_number_strips_only_the_infix():
    identity = HubIdentity(mac="", bridge_id="FFFE00FFFE112233", bridge_uuid="")
    assert identity.serial_number == "fffe00112233"
