from .engine import RelayEngine
from .interceptor import (
    FunctionInterceptor,
    LoggingInterceptor,
    PacketInterceptor,
    PassThroughInterceptor,
    as_interceptor,
)
from .session import Direction, Mode, Session, classify_direction
from .stats import RelayStats
from .table import ClientEndpoint, SessionTable

__all__ = [
    "RelayEngine",
    "PacketInterceptor",
    "FunctionInterceptor",
    "PassThroughInterceptor",
    "LoggingInterceptor",
    "as_interceptor",
    "Mode",
    "Direction",
    "Session",
    "classify_direction",
    "RelayStats",
    "ClientEndpoint",
    "SessionTable",
]
