"""
Custom exceptions for the RADIUS relay.

Transport failures are fatal to a relay run; protocol and crypto input
errors are contained where they occur.
"""

from typing import Any


class RelayError(Exception):
    """Base exception for all relay errors."""

    error_code = "relay_error"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(RelayError):
    """Raised when relay configuration is missing or malformed."""

    error_code = "config_error"

    def __init__(
        self, message: str, field: str | None = None, value: Any = None, **kwargs: Any
    ):
        details = {"field": field, "value": value, **kwargs}
        super().__init__(message, details)
        self.field = field
        self.value = value


class RelayTransportError(RelayError):
    """Fatal socket failure (resolve, bind or read). Ends the relay run."""

    error_code = "transport_error"

    def __init__(self, message: str, port: int | None = None, **kwargs: Any):
        super().__init__(message, {"port": port, **kwargs})
        self.port = port


class ProtocolError(RelayError, ValueError):
    """RADIUS wire-format error.

    Subclasses ValueError so low-level parsers keep raising what callers expect.
    """

    error_code = "protocol_error"


class PacketDecodeError(ProtocolError):
    """Raw datagram could not be decoded into a RADIUS packet."""

    error_code = "decode_error"


class MsChapV2Error(RelayError, ValueError):
    """No MS-CHAPv2 response can be computed from the given inputs."""

    error_code = "mschapv2_error"


class PasswordEncodingError(MsChapV2Error):
    """Password is not representable as UTF-16 little-endian."""

    error_code = "password_encoding_error"


__all__ = [
    "RelayError",
    "ConfigurationError",
    "RelayTransportError",
    "ProtocolError",
    "PacketDecodeError",
    "MsChapV2Error",
    "PasswordEncodingError",
]
