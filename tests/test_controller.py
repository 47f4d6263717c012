"""Tests for the controller: lifecycle, forwarding and hub sizing."""
from alexa_hue_bridge.controller import SOURCE_INPUT, AlexaHomeController
from alexa_hue_bridge.hue_device import DeviceType

from conftest import ADVERTISE_IP, FakeHub, make_config


async def test_register_grows_and_shrinks_hubs(controller):
    for number in range(3):
        await controller.async_add_device(f"light.{number}", f"Light {number}")
    assert [hub.index for hub in controller.hubs] == [0, 1]
    assert [device.uuid for device in controller.page(1)] == ["light2"]

    removed = await controller.async_on_deregister("light.2")
    assert removed is not None
    assert [hub.index for hub in controller.hubs] == [0]


async def test_start_and_stop(controller):
    await controller.async_start()
    assert len(controller.hubs) == 1
    hub = controller.hubs[0]

    await controller.async_stop()
    assert controller.hubs == []
    assert hub.stopped


async def test_add_device_uses_configured_brightness():
    controller = AlexaHomeController(make_config(bri_default=100), hub_factory=FakeHub)
    device = await controller.async_add_device("light.hall", "Hall", DeviceType.DIMMABLE_LIGHT)
    assert device.state.bri == 100
    assert controller.registry.get("lighthall") is device


async def test_alexa_command_is_forwarded(controller, events):
    device = await controller.async_add_device("light.kitchen", "Kitchen", input_trigger=True)
    command = controller.process_command(device, {"bri": 127}, client_ip="10.0.0.7")

    assert command is not None
    assert len(events) == 1
    message = events[0].as_message()
    assert message["payload"]["bri"] == 127
    assert message["payload"]["bri_normalized"] == 50
    assert message["device_name"] == "Kitchen"
    assert message["light_id"] == "light.kitchen"
    assert message["alexa_ip"] == "10.0.0.7"
    assert device.last_accessed_by == "10.0.0.7"


async def test_input_trigger_suppresses_local_input(controller, events):
    device = await controller.async_add_device("light.kitchen", "Kitchen", input_trigger=True)
    controller.process_command(device, True, source=SOURCE_INPUT)
    assert events == []
    assert device.state.on is True

    controller.process_command(device, False, source=SOURCE_INPUT, output=True)
    assert len(events) == 1
    assert events[0].as_message()["input_trigger"] is True


async def test_local_input_is_forwarded_without_trigger(controller, events):
    device = await controller.async_add_device("light.kitchen", "Kitchen")
    controller.process_command(device, "on", source=SOURCE_INPUT)
    assert len(events) == 1
    assert device.last_accessed_at is None


async def test_unrecognized_command_is_not_forwarded(controller, events):
    device = await controller.async_add_device("light.kitchen", "Kitchen")
    assert controller.process_command(device, {"foo": "bar"}) is None
    assert events == []


async def test_headers_are_forwarded_in_debug_only():
    controller = AlexaHomeController(make_config(debug=True), hub_factory=FakeHub)
    received = []
    controller.add_listener(received.append)
    device = await controller.async_add_device("light.kitchen", "Kitchen")
    controller.process_command(device, True, headers={"User-Agent": "Echo"})
    assert received[0].as_message()["http_header_user-agent"] == "Echo"


async def test_headers_are_dropped_without_debug(controller, events):
    device = await controller.async_add_device("light.kitchen", "Kitchen")
    controller.process_command(device, True, headers={"User-Agent": "Echo"})
    assert not any(key.startswith("http_header_") for key in events[0].as_message())


async def test_listener_can_unsubscribe(controller):
    received = []
    remove = controller.add_listener(received.append)
    device = await controller.async_add_device("light.kitchen", "Kitchen")
    remove()
    controller.process_command(device, True)
    assert received == []


def test_hub_identity_is_per_hub(controller):
    assert controller.hub_identity(0) == controller.hub_identity(0)
    assert controller.hub_identity(0).bridge_id != controller.hub_identity(1).bridge_id


def test_advertise_ip_from_config(controller):
    assert controller.advertise_ip == ADVERTISE_IP


async def test_five_devices_three_hubs_then_back_to_one(controller):
    for number in range(5):
        await controller.async_add_device(f"light.{number}", f"Light {number}")
    hubs = controller.hubs
    assert len(hubs) == 3

    for number in range(3):
        await controller.async_on_deregister(f"light.{number}")
    assert [hub.index for hub in controller.hubs] == [0]
    assert hubs[2].closing_when_stopped is True
    assert hubs[1].closing_when_stopped is True
    assert [device.uuid for device in controller.page(0)] == ["light3", "light4"]


async def test_deregistering_the_last_device_keeps_a_hub(controller):
    await controller.async_add_device("light.only", "Only")
    assert await controller.async_on_deregister("light.only") is not None
    assert await controller.async_on_deregister("light.only") is None
    assert len(controller.hubs) == 1
