"""Device representation for the Alexa Hue bridge emulator."""
from __future__ import annotations

from dataclasses import dataclass, field
import datetime
from enum import Enum
from typing import Any

from .const import (
    DEFAULT_BRI,
    DEFAULT_TEMPERATURE,
    DEFAULT_XY,
    HUE_API_STATE_BRI_MAX,
    HUE_API_STATE_BRI_MIN,
    SCALE_CELSIUS,
)


class DeviceType(str, Enum):
    """Accessory kinds, valued by their Hue v1 ``type`` string."""

    EXTENDED_COLOR_LIGHT = "Extended color light"
    COLOR_LIGHT = "Color light"
    COLOR_TEMPERATURE_LIGHT = "Color temperature light"
    DIMMABLE_LIGHT = "Dimmable light"
    WINDOW_COVERING = "Window covering"
    ON_OFF_PLUG = "On/Off plug-in unit"
    TEMPERATURE_SENSOR = "Temperature sensor"

    @property
    def is_light(self) -> bool:
        """Return True for the four light kinds."""
        return self in LIGHT_TYPES

    @property
    def supports_color(self) -> bool:
        """Return True if the device accepts xy / hue+sat."""
        return self in (DeviceType.EXTENDED_COLOR_LIGHT, DeviceType.COLOR_LIGHT)

    @property
    def supports_color_temperature(self) -> bool:
        """Return True if the device accepts ``ct``."""
        return self in (
            DeviceType.EXTENDED_COLOR_LIGHT,
            DeviceType.COLOR_TEMPERATURE_LIGHT,
        )

    @property
    def archetype(self) -> str:
        """Return the Hue v2 archetype reported for this kind."""
        return _ARCHETYPES.get(self, "sultan_bulb")

    @property
    def model_id(self) -> str:
        """Return the Hue model id reported for this kind."""
        return _MODEL_IDS.get(self, "LTW011")

    @property
    def product_name(self) -> str:
        """Return the Hue product name reported for this kind."""
        return _PRODUCT_NAMES.get(self, "Hue white lamp")

    @classmethod
    def parse(cls, value: Any) -> DeviceType:
        """Resolve a type by value or member name, defaulting to a color light."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if value in (member.value, member.name):
                return member
        return cls.EXTENDED_COLOR_LIGHT


LIGHT_TYPES = frozenset(
    {
        DeviceType.EXTENDED_COLOR_LIGHT,
        DeviceType.COLOR_LIGHT,
        DeviceType.COLOR_TEMPERATURE_LIGHT,
        DeviceType.DIMMABLE_LIGHT,
    }
)

_ARCHETYPES = {
    DeviceType.EXTENDED_COLOR_LIGHT: "hue_bulb",
    DeviceType.COLOR_LIGHT: "hue_bulb",
    DeviceType.COLOR_TEMPERATURE_LIGHT: "white_and_color_ambiance_bulb",
    DeviceType.DIMMABLE_LIGHT: "sultan_bulb",
    DeviceType.ON_OFF_PLUG: "plug",
}

_MODEL_IDS = {
    DeviceType.EXTENDED_COLOR_LIGHT: "LCT015",
    DeviceType.COLOR_LIGHT: "LCT015",
    DeviceType.COLOR_TEMPERATURE_LIGHT: "LTW011",
    DeviceType.DIMMABLE_LIGHT: "LTW011",
    DeviceType.ON_OFF_PLUG: "LOM001",
}

_PRODUCT_NAMES = {
    DeviceType.EXTENDED_COLOR_LIGHT: "Hue color lamp",
    DeviceType.COLOR_LIGHT: "Hue color lamp",
    DeviceType.COLOR_TEMPERATURE_LIGHT: "Hue white ambiance lamp",
    DeviceType.DIMMABLE_LIGHT: "Hue white lamp",
    DeviceType.ON_OFF_PLUG: "Hue smart plug",
}


@dataclass
class DeviceState:
    """Mutable state of a device as seen by Alexa."""

    on: bool = False
    bri: int = DEFAULT_BRI
    xy: list[float] | None = None
    hue: int | None = None
    sat: int | None = None
    ct: int | None = None
    position: int | None = None
    temperature: float | None = None
    scale: str | None = None

    @classmethod
    def initial(cls, device_type: DeviceType, bri_default: int = DEFAULT_BRI) -> DeviceState:
        """Return the power-on state for a device kind."""
        if device_type is DeviceType.WINDOW_COVERING:
            return cls(on=True, bri=HUE_API_STATE_BRI_MAX, position=100)
        if device_type is DeviceType.TEMPERATURE_SENSOR:
            return cls(on=True, bri=0, temperature=DEFAULT_TEMPERATURE, scale=SCALE_CELSIUS)
        if device_type is DeviceType.ON_OFF_PLUG:
            return cls(on=False, bri=HUE_API_STATE_BRI_MAX)
        state = cls(on=False, bri=bri_default)
        if device_type.supports_color:
            state.xy = list(DEFAULT_XY)
            state.hue = 0
            state.sat = 0
        if device_type.supports_color_temperature:
            state.ct = 200
        return state

    def to_dict(self) -> dict[str, Any]:
        """Return the populated fields of the state."""
        return {key: value for key, value in vars(self).items() if value is not None}


@dataclass
class DeviceRecord:
    """A virtual Hue device backed by an external accessory."""

    id: str
    name: str
    device_type: DeviceType = DeviceType.EXTENDED_COLOR_LIGHT
    uuid: str = ""
    state: DeviceState = field(default_factory=DeviceState)
    input_trigger: bool = False
    created_at: str = ""
    modified_at: str = ""
    last_accessed_at: str | None = None
    last_accessed_by: str | None = None

    def __post_init__(self) -> None:
        """Set timestamps if not provided."""
        now = datetime.datetime.now().isoformat()
        if not self.created_at:
            self.created_at = now
        if not self.modified_at:
            self.modified_at = now

    @classmethod
    def create(
        cls,
        device_id: str,
        name: str,
        device_type: DeviceType | str = DeviceType.EXTENDED_COLOR_LIGHT,
        *,
        input_trigger: bool = False,
        bri_default: int = DEFAULT_BRI,
    ) -> DeviceRecord:
        """Create a record with the initial state of its kind."""
        kind = DeviceType.parse(device_type)
        return cls(
            id=device_id,
            name=name,
            device_type=kind,
            state=DeviceState.initial(kind, bri_default),
            input_trigger=input_trigger,
        )

    @property
    def v1_brightness(self) -> int:
        """Return the 0-254 brightness reported through the v1 API."""
        if self.device_type is DeviceType.TEMPERATURE_SENSOR:
            temperature = self.state.temperature or 0.0
            level = int((temperature + 50) * 2.54 + 0.5)
            return max(HUE_API_STATE_BRI_MIN, min(HUE_API_STATE_BRI_MAX, level))
        return self.state.bri

    def record_access(self, client_ip: str | None) -> None:
        """Record an API access from a client."""
        self.last_accessed_at = datetime.datetime.now().isoformat()
        self.last_accessed_by = client_ip

    def update_name(self, new_name: str) -> None:
        """Update the device name."""
        self.name = new_name
        self.modified_at = datetime.datetime.now().isoformat()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for diagnostics."""
        return {
            "id": self.id,
            "uuid": self.uuid,
            "name": self.name,
            "device_type": self.device_type.value,
            "state": self.state.to_dict(),
            "input_trigger": self.input_trigger,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
            "last_accessed_at": self.last_accessed_at,
            "last_accessed_by": self.last_accessed_by,
        }
