"""Tests for configuration parsing."""
import pytest
from pydantic import ValidationError
from yarl import URL

from alexa_hue_bridge.config import BridgeConfig, config_from_env


def test_defaults():
    config = BridgeConfig.from_dict({})
    assert config.listen_port == 80
    assert config.max_items_per_hub == 30
    assert config.bri_default == 254
    assert config.enable_discovery is True
    assert config.protocol == "http"
    assert len(config.controller_id) == 12


def test_explicit_controller_id_is_kept():
    config = BridgeConfig.from_dict({"controller_id": 1234})
    assert config.controller_id == "1234"


def test_unknown_keys_are_dropped():
    config = BridgeConfig.from_dict({"listen_port": "8080", "something": "else"})
    assert config.listen_port == 8080


@pytest.mark.parametrize(
    "data",
    [
        {"listen_port": 70000},
        {"listen_port": "abc"},
        {"bri_default": 300},
        {"advertise_uri": "ftp://example.com"},
    ],
)
def test_invalid_values(data):
    with pytest.raises(ValidationError):
        BridgeConfig.from_dict(data)


def test_config_from_env():
    config = config_from_env(
        {
            "ALEXA_PORT": "8080",
            "ALEXA_IP": "10.0.0.5",
            "ALEXA_MAX_ITEMS": "10",
            "ALEXA_HTTPS": "true",
            "BRI_DEFAULT": "128",
            "DEBUG": "alexa-home:*",
        }
    )
    assert config.listen_port == 8080
    assert config.bind_address == "10.0.0.5"
    assert config.max_items_per_hub == 10
    assert config.use_https is True
    assert config.protocol == "https"
    assert config.bri_default == 128
    assert config.debug is True


def test_config_from_env_rejects_bad_port():
    with pytest.raises(ValidationError):
        config_from_env({"ALEXA_PORT": "70000"})


def test_hub_ports_are_consecutive():
    config = BridgeConfig(listen_port=8080)
    assert [config.hub_port(index) for index in range(3)] == [8080, 8081, 8082]


def test_advertised_base_from_host():
    config = BridgeConfig(listen_port=8080)
    assert config.advertised_base(1, "10.0.0.2") == URL("http://10.0.0.2:8081")


def test_advertised_base_from_uri():
    config = BridgeConfig.from_dict({"advertise_uri": "https://bridge.example.com:8443/"})
    assert config.advertised_base(2, "10.0.0.2") == URL("https://bridge.example.com:8445")


def test_advertised_base_from_uri_without_port():
    config = BridgeConfig.from_dict({"listen_port": 9000, "advertise_uri": "http://bridge.local"})
    assert config.advertised_base(1, "10.0.0.2") == URL("http://bridge.local:9001")
