"""Normalization of inbound control payloads into canonical device commands.

Payloads arrive as booleans, numbers, strings or JSON objects. They are
first wrapped in one of the ``RawCommand`` variants and then matched
against the device kind. Decision order for lights (first match wins):

  1. ``xy``            -> color
  2. ``hue`` + ``sat`` -> color
  3. ``ct``            -> color
  4. ``bri``           -> dim
  5. on / off          -> switch

Coverings and sensors follow the same precedence with their own keys.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import logging
import math
from typing import Any, Union

from .const import (
    DEFAULT_XY,
    HUE_API_STATE_BRI_MAX,
    HUE_API_STATE_BRI_MIN,
    HUE_API_STATE_CT_MAX,
    HUE_API_STATE_CT_MIN,
    HUE_API_STATE_HUE_MAX,
    HUE_API_STATE_HUE_MIN,
    HUE_API_STATE_SAT_MAX,
    HUE_API_STATE_SAT_MIN,
    POSITION_MAX,
    POSITION_MIN,
    SCALE_CELSIUS,
    SCALE_FAHRENHEIT,
)
from .exceptions import UnrecognizedCommandError
from .hue_device import DeviceRecord, DeviceState, DeviceType

_LOGGER = logging.getLogger(__name__)

COMMAND_SWITCH = "switch"
COMMAND_DIM = "dim"
COMMAND_COLOR = "color"
COMMAND_POSITION = "position"
COMMAND_TEMPERATURE = "temperature"

_TEXT_ON = ("1", "on")
_TEXT_OFF = ("0", "off")
_SCALES = (SCALE_CELSIUS, SCALE_FAHRENHEIT)


# ---------------------------------------------------------------------------
# Raw command variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BooleanCommand:
    """A bare true/false payload."""

    value: bool


@dataclass(frozen=True)
class NumericCommand:
    """A bare numeric payload."""

    value: float


@dataclass(frozen=True)
class TextCommand:
    """A bare string payload."""

    value: str


@dataclass(frozen=True)
class ObjectCommand:
    """A JSON object payload."""

    values: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UnknownCommand:
    """Anything else (lists, None, ...)."""

    value: Any = None


RawCommand = Union[BooleanCommand, NumericCommand, TextCommand, ObjectCommand, UnknownCommand]
RAW_COMMAND_TYPES = (BooleanCommand, NumericCommand, TextCommand, ObjectCommand, UnknownCommand)


def parse_raw_command(payload: Any) -> RawCommand:
    """Wrap an arbitrary payload in its RawCommand variant."""
    if isinstance(payload, RAW_COMMAND_TYPES):
        return payload
    # bool is an int subclass, test it first
    if isinstance(payload, bool):
        return BooleanCommand(payload)
    if isinstance(payload, (int, float)):
        return NumericCommand(payload)
    if isinstance(payload, str):
        return TextCommand(payload)
    if isinstance(payload, Mapping):
        return ObjectCommand(dict(payload))
    return UnknownCommand(payload)


# ---------------------------------------------------------------------------
# Canonical command
# ---------------------------------------------------------------------------


@dataclass
class CanonicalCommand:
    """The single command shape forwarded downstream."""

    command: str
    on: bool
    bri: int
    change_direction: int = 0
    xy: list[float] | None = None
    hue: int | None = None
    sat: int | None = None
    ct: int | None = None
    position: int | None = None
    temperature: float | None = None
    scale: str | None = None

    @property
    def bri_normalized(self) -> int:
        """Return the brightness as a 0-100 percentage."""
        return bri_to_percent(self.bri)

    def to_payload(self) -> dict[str, Any]:
        """Return the command as a flat payload dict."""
        payload: dict[str, Any] = {
            "on": self.on,
            "bri": self.bri,
            "bri_normalized": self.bri_normalized,
            "command": self.command,
            "change_direction": self.change_direction,
        }
        for key in ("xy", "hue", "sat", "ct", "position", "temperature", "scale"):
            if (value := getattr(self, key)) is not None:
                payload[key] = value
        return payload


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float) -> int:
    """Round like JavaScript's Math.round (0.5 always rounds up)."""
    return int(math.floor(value + 0.5))


def bri_to_percent(bri: float) -> int:
    """Convert Hue v1 brightness 0..254 to v2 0..100."""
    return round_half_up(bri / HUE_API_STATE_BRI_MAX * 100)


def percent_to_bri(percent: float) -> int:
    """Convert Hue v2 brightness 0..100 to v1 0..254."""
    return round_half_up(percent / 100 * HUE_API_STATE_BRI_MAX)


def _clamp(value: float, v_min: float, v_max: float) -> float:
    return max(v_min, min(value, v_max))


def _to_number(value: Any, key: str) -> float:
    """Coerce a payload value to a finite float or raise."""
    if isinstance(value, bool):
        raise UnrecognizedCommandError(f"{key} must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise UnrecognizedCommandError(f"{key} must be numeric, got {value!r}") from None
    if not math.isfinite(number):
        raise UnrecognizedCommandError(f"{key} must be finite, got {value!r}")
    return number


def _clamped_int(value: Any, key: str, v_min: int, v_max: int) -> int:
    return int(_clamp(int(_to_number(value, key)), v_min, v_max))


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


def validate_xy(value: Any) -> list[float]:
    """Return clamped xy coordinates, or warm white if malformed."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return list(DEFAULT_XY)
    coordinates: list[float] = []
    for component in value:
        try:
            number = _to_number(component, "xy")
        except UnrecognizedCommandError:
            return list(DEFAULT_XY)
        coordinates.append(_clamp(number, 0.0, 1.0))
    return coordinates


def convert_temperature(value: float, from_scale: str, to_scale: str) -> float:
    """Convert a reading between Celsius and Fahrenheit."""
    if from_scale == to_scale:
        return value
    if from_scale == SCALE_CELSIUS and to_scale == SCALE_FAHRENHEIT:
        return value * 9 / 5 + 32
    if from_scale == SCALE_FAHRENHEIT and to_scale == SCALE_CELSIUS:
        return (value - 32) * 5 / 9
    return value


def _parse_scale(value: Any) -> str | None:
    scale = str(value).upper()
    return scale if scale in _SCALES else None


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


class CommandNormalizer:
    """Turn raw payloads into CanonicalCommands and apply them to a device."""

    def normalize(self, device: DeviceRecord, payload: Any) -> CanonicalCommand | None:
        """Normalize ``payload`` for ``device`` and write the result back.

        Returns None, leaving the device untouched, when the payload shape
        is not understood for this kind of device.
        """
        raw = parse_raw_command(payload)
        try:
            command = self.build(device.device_type, device.state, raw)
        except UnrecognizedCommandError as err:
            _LOGGER.warning("%s - ignoring command %r: %s", device.name, payload, err)
            return None

        apply_command(device.state, command)
        _LOGGER.debug("%s - processed %s command: %s", device.name, command.command, command)
        return command

    def build(
        self, device_type: DeviceType, state: DeviceState, raw: RawCommand
    ) -> CanonicalCommand:
        """Build the canonical command without touching ``state``."""
        if device_type is DeviceType.WINDOW_COVERING:
            return self._covering_command(state, raw)
        if device_type is DeviceType.TEMPERATURE_SENSOR:
            return self._sensor_command(state, raw)
        if device_type is DeviceType.ON_OFF_PLUG:
            is_on = self._parse_on_off(raw)
            return CanonicalCommand(
                command=COMMAND_SWITCH,
                on=is_on,
                bri=HUE_API_STATE_BRI_MAX if is_on else HUE_API_STATE_BRI_MIN,
            )
        return self._light_command(state, raw)

    # -- lights ------------------------------------------------------------

    def _light_command(self, state: DeviceState, raw: RawCommand) -> CanonicalCommand:
        if not isinstance(raw, ObjectCommand):
            return CanonicalCommand(
                command=COMMAND_SWITCH, on=self._parse_on_off(raw), bri=state.bri
            )

        values = raw.values
        if "xy" in values:
            return self._color_command(state, values, xy=validate_xy(values["xy"]))

        if "hue" in values and "sat" in values:
            return self._color_command(
                state,
                values,
                hue=_clamped_int(
                    values["hue"], "hue", HUE_API_STATE_HUE_MIN, HUE_API_STATE_HUE_MAX
                ),
                sat=_clamped_int(
                    values["sat"], "sat", HUE_API_STATE_SAT_MIN, HUE_API_STATE_SAT_MAX
                ),
            )

        if "ct" in values:
            return self._color_command(
                state,
                values,
                ct=_clamped_int(
                    values["ct"], "ct", HUE_API_STATE_CT_MIN, HUE_API_STATE_CT_MAX
                ),
            )

        if "bri" in values:
            bri = _clamped_int(
                values["bri"], "bri", HUE_API_STATE_BRI_MIN, HUE_API_STATE_BRI_MAX
            )
            return CanonicalCommand(
                command=COMMAND_DIM,
                on=bri > 0,
                bri=bri,
                change_direction=_sign(bri - state.bri),
            )

        return CanonicalCommand(
            command=COMMAND_SWITCH, on=self._parse_on_off(raw), bri=state.bri
        )

    def _color_command(
        self, state: DeviceState, values: Mapping[str, Any], **color: Any
    ) -> CanonicalCommand:
        is_on = self._parse_on_off(parse_raw_command(values["on"])) if "on" in values else True
        bri = state.bri
        if "bri" in values:
            bri = _clamped_int(
                values["bri"], "bri", HUE_API_STATE_BRI_MIN, HUE_API_STATE_BRI_MAX
            )
        return CanonicalCommand(command=COMMAND_COLOR, on=is_on, bri=bri, **color)

    # -- coverings ---------------------------------------------------------

    def _covering_command(self, state: DeviceState, raw: RawCommand) -> CanonicalCommand:
        command = COMMAND_POSITION
        if isinstance(raw, ObjectCommand) and "position" in raw.values:
            position = _clamped_int(raw.values["position"], "position", POSITION_MIN, POSITION_MAX)
            bri = round_half_up(position / 100 * HUE_API_STATE_BRI_MAX)
        elif isinstance(raw, ObjectCommand) and "bri" in raw.values:
            bri = _clamped_int(
                raw.values["bri"], "bri", HUE_API_STATE_BRI_MIN, HUE_API_STATE_BRI_MAX
            )
            position = bri_to_percent(bri)
        else:
            is_open = self._parse_on_off(raw)
            position = POSITION_MAX if is_open else POSITION_MIN
            bri = HUE_API_STATE_BRI_MAX if is_open else HUE_API_STATE_BRI_MIN
            command = COMMAND_SWITCH

        # A covering is always reachable, open or closed
        return CanonicalCommand(
            command=command,
            on=True,
            bri=bri,
            position=position,
            change_direction=_sign(bri - state.bri),
        )

    # -- sensors -----------------------------------------------------------

    def _sensor_command(self, state: DeviceState, raw: RawCommand) -> CanonicalCommand:
        scale = state.scale or SCALE_CELSIUS

        if isinstance(raw, NumericCommand):
            temperature = _to_number(raw.value, "temperature")
        elif isinstance(raw, ObjectCommand) and "temperature" in raw.values:
            temperature = _to_number(raw.values["temperature"], "temperature")
            if "scale" in raw.values and (input_scale := _parse_scale(raw.values["scale"])):
                temperature = convert_temperature(temperature, input_scale, scale)
        elif isinstance(raw, ObjectCommand) and "scale" in raw.values:
            new_scale = _parse_scale(raw.values["scale"])
            if new_scale is None:
                raise UnrecognizedCommandError(f"unknown scale {raw.values['scale']!r}")
            temperature = convert_temperature(state.temperature or 0.0, scale, new_scale)
            scale = new_scale
        else:
            raise UnrecognizedCommandError("sensor payload carries no temperature")

        level = round_half_up((temperature + 50) * 2.54)
        return CanonicalCommand(
            command=COMMAND_TEMPERATURE,
            on=True,
            bri=int(_clamp(level, HUE_API_STATE_BRI_MIN, HUE_API_STATE_BRI_MAX)),
            temperature=temperature,
            scale=scale,
        )

    # -- on / off ----------------------------------------------------------

    def _parse_on_off(self, raw: RawCommand) -> bool:
        """Interpret a payload as an explicit on/off request."""
        if isinstance(raw, BooleanCommand):
            return raw.value
        if isinstance(raw, NumericCommand):
            if raw.value in (0, 1):
                return raw.value == 1
            raise UnrecognizedCommandError(f"numeric switch value must be 0 or 1, got {raw.value}")
        if isinstance(raw, TextCommand):
            text = raw.value.strip().lower()
            if text in _TEXT_ON:
                return True
            if text in _TEXT_OFF:
                return False
            raise UnrecognizedCommandError(f"unknown switch value {raw.value!r}")
        if isinstance(raw, ObjectCommand) and "on" in raw.values:
            return self._parse_on_off(parse_raw_command(raw.values["on"]))
        if isinstance(raw, ObjectCommand):
            raise UnrecognizedCommandError(f"unsupported payload keys {sorted(raw.values)}")
        raise UnrecognizedCommandError(f"unsupported payload {raw.value!r}")


def apply_command(state: DeviceState, command: CanonicalCommand) -> None:
    """Write a canonical command back into a device state."""
    state.on = command.on
    state.bri = command.bri
    for key in ("hue", "sat", "ct", "position", "temperature", "scale"):
        if (value := getattr(command, key)) is not None:
            setattr(state, key, value)
    if command.xy is not None:
        state.xy = list(command.xy)
