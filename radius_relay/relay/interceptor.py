"""Interception hook consulted by the relay in active mode."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from radius_relay.utils.logger import format_addr, get_logger

logger = get_logger("radius_relay.relay.interceptor", component="relay")


@runtime_checkable
class PacketInterceptor(Protocol):
    def decide(self, packet: Any, from_addr: tuple, to_addr: tuple) -> bool:
        """Return True to forward ``packet``; it may be mutated in place first."""
        ...


class FunctionInterceptor:
    """Adapts a plain ``(packet, from_addr, to_addr) -> bool`` callable."""

    def __init__(self, func: Callable[[Any, tuple, tuple], bool]):
        self.func = func

    def decide(self, packet: Any, from_addr: tuple, to_addr: tuple) -> bool:
        return bool(self.func(packet, from_addr, to_addr))

    def __repr__(self) -> str:
        return f"FunctionInterceptor({getattr(self.func, '__name__', self.func)!r})"


class PassThroughInterceptor:
    """Forwards every packet untouched."""

    def decide(self, packet: Any, from_addr: tuple, to_addr: tuple) -> bool:
        return True


class LoggingInterceptor:
    """Logs a one-line summary of each packet and forwards it."""

    def __init__(self, level: str = "info"):
        self.level = level.lower()

    def decide(self, packet: Any, from_addr: tuple, to_addr: tuple) -> bool:
        getattr(logger, self.level, logger.info)(
            "Relaying packet",
            event="relay.intercept.packet",
            packet=str(packet),
            src=format_addr(from_addr),
            dst=format_addr(to_addr),
        )
        return True


def as_interceptor(obj: Any) -> PacketInterceptor:
    """Accept an interceptor object or a bare callable."""
    if obj is None:
        return PassThroughInterceptor()
    if isinstance(obj, PacketInterceptor):
        return obj
    if callable(obj):
        return FunctionInterceptor(obj)
    raise TypeError(f"Not a packet interceptor: {obj!r}")


__all__ = [
    "PacketInterceptor",
    "FunctionInterceptor",
    "PassThroughInterceptor",
    "LoggingInterceptor",
    "as_interceptor",
]
