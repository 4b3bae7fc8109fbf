"""RADIUS man-in-the-middle relay with MS-CHAPv2 (RFC 2759) support."""

__version__ = "0.1.0"

from .exceptions import (
    ConfigurationError,
    MsChapV2Error,
    PacketDecodeError,
    PasswordEncodingError,
    ProtocolError,
    RelayError,
    RelayTransportError,
)
from .radius import PacketCodec, RADIUSPacket, RADIUSPacketCodec
from .relay import (
    LoggingInterceptor,
    Mode,
    PacketInterceptor,
    PassThroughInterceptor,
    RelayEngine,
)

__all__ = [
    "__version__",
    "RelayEngine",
    "Mode",
    "PacketInterceptor",
    "PassThroughInterceptor",
    "LoggingInterceptor",
    "PacketCodec",
    "RADIUSPacketCodec",
    "RADIUSPacket",
    "RelayError",
    "ConfigurationError",
    "RelayTransportError",
    "ProtocolError",
    "PacketDecodeError",
    "MsChapV2Error",
    "PasswordEncodingError",
]
