"""Configuration for the Alexa Hue bridge emulator."""
from __future__ import annotations

from collections.abc import Mapping
import socket
from typing import Any
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator
from yarl import URL

from .const import (
    CONF_ADVERTISE_URI,
    CONF_BIND_ADDRESS,
    CONF_BRI_DEFAULT,
    CONF_CONTROLLER_ID,
    CONF_DEBUG,
    CONF_LISTEN_PORT,
    CONF_MAX_ITEMS_PER_HUB,
    CONF_USE_HTTPS,
    DEFAULT_BIND_ADDRESS,
    DEFAULT_BRI,
    DEFAULT_BRIDGE_NAME,
    DEFAULT_LISTEN_PORT,
    DEFAULT_MAX_ITEMS_PER_HUB,
    HUE_API_STATE_BRI_MAX,
    HUE_API_STATE_BRI_MIN,
)


class BridgeConfig(BaseModel):
    """Validated bridge configuration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    listen_port: int = Field(DEFAULT_LISTEN_PORT, ge=1, le=65535)
    bind_address: str = DEFAULT_BIND_ADDRESS
    advertise_ip: str | None = None
    advertise_uri: str | None = None
    # <= 0 serves every device from a single hub
    max_items_per_hub: int = DEFAULT_MAX_ITEMS_PER_HUB
    upnp_bind_multicast: bool = True
    enable_discovery: bool = True
    disable_v1_api: bool = False
    bri_default: int = Field(DEFAULT_BRI, ge=HUE_API_STATE_BRI_MIN, le=HUE_API_STATE_BRI_MAX)
    bridge_name: str = DEFAULT_BRIDGE_NAME
    controller_id: str = ""
    use_https: bool = False
    debug: bool = False

    @field_validator("advertise_uri")
    @classmethod
    def _validate_advertise_uri(cls, value: str | None) -> str | None:
        """Validate a ``proto://host[:port]`` base URI."""
        if value is None:
            return None
        url = URL(value.strip())
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"invalid advertise uri: {value}")
        return str(url).rstrip("/")

    @field_validator("controller_id", mode="before")
    @classmethod
    def _coerce_controller_id(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BridgeConfig:
        """Validate ``data`` and build a config from it."""
        config = cls.model_validate(dict(data))
        if not config.controller_id:
            config = config.model_copy(update={CONF_CONTROLLER_ID: f"{uuid.getnode():012x}"})
        return config

    @property
    def protocol(self) -> str:
        """Return the URL scheme the hubs are served on."""
        return "https" if self.use_https else "http"

    def hub_port(self, index: int) -> int:
        """Return the listening port of hub ``index``."""
        return self.listen_port + index

    def advertised_base(self, index: int, host: str) -> URL:
        """Return the base URL a hub advertises over SSDP."""
        if self.advertise_uri:
            url = URL(self.advertise_uri)
            if url.explicit_port is not None:
                return url.with_port(url.explicit_port + index)
            return url.with_port(self.hub_port(index))
        return URL.build(scheme=self.protocol, host=host, port=self.hub_port(index))


def config_from_env(environ: Mapping[str, str]) -> BridgeConfig:
    """Build a config from ``ALEXA_*`` style environment variables."""
    data: dict[str, Any] = {}
    if (port := environ.get("ALEXA_PORT")) is not None:
        data[CONF_LISTEN_PORT] = port
    if ip := environ.get("ALEXA_IP"):
        data[CONF_BIND_ADDRESS] = ip
    if uri := environ.get("ALEXA_URI"):
        data[CONF_ADVERTISE_URI] = uri
    if (max_items := environ.get("ALEXA_MAX_ITEMS")) is not None:
        data[CONF_MAX_ITEMS_PER_HUB] = max_items
    if (https := environ.get("ALEXA_HTTPS")) is not None:
        data[CONF_USE_HTTPS] = https
    if (bri := environ.get("BRI_DEFAULT")) is not None:
        data[CONF_BRI_DEFAULT] = bri
    if "alexa-home" in environ.get("DEBUG", ""):
        data[CONF_DEBUG] = True
    return BridgeConfig.from_dict(data)


def get_source_ip(target_ip: str = "8.8.8.8") -> str:
    """Return the local address used to reach ``target_ip``."""
    test_sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    test_sock.setblocking(False)
    try:
        test_sock.connect((target_ip, 1))
        return test_sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        test_sock.close()
