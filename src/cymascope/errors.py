"""
Exception types raised by the cymatic field engine.
"""


class CymascopeError(Exception):
    """Base class for all engine errors."""


class ConfigError(CymascopeError, ValueError):
    """A setting could not be parsed or is not one of the recognised options."""


class DeviceAcquisitionError(CymascopeError):
    """The audio device could not provide a stream."""

    def __init__(self, message: str, device=None):
        super().__init__(message)
        self.device = device
