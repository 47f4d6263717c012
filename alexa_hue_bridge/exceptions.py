"""Exceptions raised by the Alexa Hue bridge emulator."""


class BridgeError(Exception):
    """Base class for bridge errors."""


class DeviceNotFoundError(BridgeError, KeyError):
    """Raised when a uuid is not registered."""


class UnrecognizedCommandError(BridgeError, ValueError):
    """Raised when a payload cannot be mapped onto a device command."""
