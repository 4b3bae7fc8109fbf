"""Relay session configuration and traffic direction classification."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from radius_relay.exceptions import ConfigurationError

Address = tuple[str, int]


class Mode(str, Enum):
    """Passive relays raw bytes; Active decodes, intercepts and re-encodes."""

    PASSIVE = "passive"
    ACTIVE = "active"

    @classmethod
    def parse(cls, value: "Mode | str") -> "Mode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown relay mode: {value!r}", field="mode", value=value
            ) from None


class Direction(str, Enum):
    UPSTREAM = "upstream"  # authenticator -> authenticator server
    DOWNSTREAM = "downstream"  # authenticator server -> authenticator


@dataclass(frozen=True)
class Session:
    """Target of one relay run: server host, its ports and the relay mode."""

    host: str
    ports: tuple[int, ...]
    mode: Mode = Mode.PASSIVE

    @classmethod
    def build(cls, mode: Mode | str, host: str, ports: Iterable[int]) -> "Session":
        """Validate structural shape only; no name resolution happens here."""
        resolved_mode = Mode.parse(mode)
        if not isinstance(host, str) or not host.strip():
            raise ConfigurationError(
                "Relay host must be a non-empty string", field="host", value=host
            )
        unique: list[int] = []
        for port in ports:
            if isinstance(port, bool) or not isinstance(port, int):
                raise ConfigurationError(
                    f"Port must be an integer: {port!r}", field="ports", value=port
                )
            if not 1 <= port <= 65535:
                raise ConfigurationError(
                    f"Port out of range: {port}", field="ports", value=port
                )
            if port not in unique:
                unique.append(port)
        if not unique:
            raise ConfigurationError("At least one target port is required", field="ports")
        return cls(host=host.strip(), ports=tuple(unique), mode=resolved_mode)

    def __str__(self) -> str:
        ports = ",".join(str(p) for p in self.ports)
        return f"Session({self.mode.value} {self.host}:{ports})"


def peer_key(addr: tuple) -> Address:
    """Reduce a socket address (IPv4 pair or IPv6 4-tuple) to ``(ip, port)``."""
    host, port = addr[0], int(addr[1])
    try:
        host = str(ipaddress.ip_address(host.split("%", 1)[0]))
    except ValueError:
        pass
    return host, port


def same_ip(a: str, b: str) -> bool:
    """Compare two textual IPs; IPv4-mapped IPv6 equals its IPv4 form."""
    try:
        ip_a = ipaddress.ip_address(a.split("%", 1)[0])
        ip_b = ipaddress.ip_address(b.split("%", 1)[0])
    except ValueError:
        return a == b
    if isinstance(ip_a, ipaddress.IPv6Address) and ip_a.ipv4_mapped:
        ip_a = ip_a.ipv4_mapped
    if isinstance(ip_b, ipaddress.IPv6Address) and ip_b.ipv4_mapped:
        ip_b = ip_b.ipv4_mapped
    return ip_a == ip_b


def classify_direction(
    sender: tuple, host_ip: str, ports: Iterable[int]
) -> Direction:
    """DOWNSTREAM only when the sender is the server IP *and* a target port."""
    if same_ip(sender[0], host_ip) and int(sender[1]) in ports:
        return Direction.DOWNSTREAM
    return Direction.UPSTREAM
