"""Per-peer relay endpoints and the table that owns them.

The table is mutated by the relay's central loop only and therefore has no
lock. Receiver threads never touch it.
"""

from __future__ import annotations

import socket
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, field

from radius_relay.exceptions import RelayTransportError
from radius_relay.utils.logger import format_addr, get_logger

from .session import Address

logger = get_logger("radius_relay.relay.table", component="relay")

MAX_PORT = 65535


def _family_for(ip: str) -> socket.AddressFamily:
    return socket.AF_INET6 if ":" in ip else socket.AF_INET


@dataclass(eq=False)
class ClientEndpoint:
    """Dedicated server-facing socket for one authenticator peer."""

    peer: Address
    sock: socket.socket
    local_port: int
    target: Address
    created_at: float = field(default_factory=time.monotonic)
    last_seen: float = field(default_factory=time.monotonic)
    closed: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def open(
        cls,
        peer: Address,
        local_port: int,
        target: Address,
        *,
        bind_address: str = "",
        socket_timeout: float | None = 1.0,
        rcvbuf: int | None = None,
    ) -> "ClientEndpoint":
        """Bind ``local_port`` and connect to ``target``.

        Raises:
            RelayTransportError: bind or connect failed.
        """
        sock = socket.socket(_family_for(target[0]), socket.SOCK_DGRAM)
        try:
            if rcvbuf:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, rcvbuf)
            sock.bind((bind_address, local_port))
            sock.connect(target)
            sock.settimeout(socket_timeout)
        except OSError as exc:
            sock.close()
            raise RelayTransportError(
                f"Cannot open endpoint on port {local_port} "
                f"towards {format_addr(target)}: {exc}",
                port=local_port,
                peer=format_addr(peer),
            ) from exc
        return cls(peer=peer, sock=sock, local_port=local_port, target=target)

    def touch(self, now: float | None = None) -> None:
        self.last_seen = time.monotonic() if now is None else now

    def send(self, data: bytes) -> int:
        return self.sock.send(data)

    def close(self) -> None:
        if self.closed.is_set():
            return
        self.closed.set()
        try:
            self.sock.close()
        except OSError as exc:
            logger.warning(
                "Failed to close endpoint socket",
                event="relay.endpoint.close_failed",
                port=self.local_port,
                error=str(exc),
            )

    def __str__(self) -> str:
        return f"ClientEndpoint({format_addr(self.peer)} via :{self.local_port})"


class SessionTable:
    """Maps peers to endpoints and hands out unique local ports.

    ``idle_timeout`` (seconds) and ``max_endpoints`` enable eviction; both
    default to 0, which keeps every endpoint for the whole run. Ports of
    evicted endpoints are retired, never handed out again.
    """

    def __init__(self, idle_timeout: float = 0.0, max_endpoints: int = 0):
        self.idle_timeout = max(0.0, float(idle_timeout or 0.0))
        self.max_endpoints = max(0, int(max_endpoints or 0))
        self._by_peer: dict[Address, ClientEndpoint] = {}
        self._by_port: dict[int, ClientEndpoint] = {}
        self._retired: set[int] = set()

    def __len__(self) -> int:
        return len(self._by_peer)

    def __iter__(self) -> Iterator[ClientEndpoint]:
        return iter(list(self._by_peer.values()))

    @property
    def eviction_enabled(self) -> bool:
        return self.idle_timeout > 0 or self.max_endpoints > 0

    def find_by_peer(self, peer: Address) -> ClientEndpoint | None:
        return self._by_peer.get(peer)

    def find_by_port(self, port: int) -> ClientEndpoint | None:
        return self._by_port.get(port)

    def holds_port(self, port: int) -> bool:
        return port in self._by_port or port in self._retired

    def allocate_port(self, preferred: int) -> int:
        """First port >= ``preferred`` that no endpoint holds or held."""
        candidate = preferred
        while self.holds_port(candidate):
            candidate += 1
        if candidate > MAX_PORT:
            raise RelayTransportError(
                f"No free local port at or above {preferred}", port=preferred
            )
        return candidate

    def add(self, endpoint: ClientEndpoint) -> None:
        if endpoint.peer in self._by_peer:
            raise ValueError(f"Peer already mapped: {endpoint.peer}")
        if self.holds_port(endpoint.local_port):
            raise ValueError(f"Local port already claimed: {endpoint.local_port}")
        self._by_peer[endpoint.peer] = endpoint
        self._by_port[endpoint.local_port] = endpoint

    def remove(self, endpoint: ClientEndpoint) -> None:
        """Drop and close ``endpoint``; its port stays retired."""
        self._by_peer.pop(endpoint.peer, None)
        self._by_port.pop(endpoint.local_port, None)
        self._retired.add(endpoint.local_port)
        endpoint.close()

    def expire_idle(self, now: float | None = None) -> list[ClientEndpoint]:
        """Evict endpoints idle for longer than ``idle_timeout``."""
        if self.idle_timeout <= 0:
            return []
        now = time.monotonic() if now is None else now
        expired = [
            ep for ep in self._by_peer.values() if now - ep.last_seen > self.idle_timeout
        ]
        for ep in expired:
            self.remove(ep)
        return expired

    def make_room(self) -> list[ClientEndpoint]:
        """Evict least-recently-seen endpoints so one more fits under the cap."""
        if self.max_endpoints <= 0:
            return []
        evicted = []
        while len(self._by_peer) >= self.max_endpoints:
            oldest = min(self._by_peer.values(), key=lambda ep: ep.last_seen)
            self.remove(oldest)
            evicted.append(oldest)
        return evicted

    def close_all(self) -> None:
        for ep in list(self._by_peer.values()):
            ep.close()
        self._by_peer.clear()
        self._by_port.clear()
