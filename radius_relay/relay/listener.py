"""Receiver threads and the events they feed into the relay's central queue."""

from __future__ import annotations

import queue
import socket
import threading
from collections.abc import Callable
from dataclasses import dataclass

from radius_relay.exceptions import RelayTransportError
from radius_relay.radius.constants import MAX_RADIUS_PACKET_LENGTH
from radius_relay.utils.logger import get_logger

logger = get_logger("radius_relay.relay.listener", component="relay")


@dataclass(frozen=True)
class InboundDatagram:
    data: bytes
    sender: tuple
    local_port: int


@dataclass(frozen=True)
class ReceiverFailed:
    """A socket read failed; the relay run must end."""

    local_port: int
    error: OSError


@dataclass(frozen=True)
class StopRequested:
    """Graceful shutdown asked for by :meth:`RelayEngine.stop`."""

    reason: str = "stop requested"


RelayEvent = InboundDatagram | ReceiverFailed | StopRequested


class DatagramReceiver(threading.Thread):
    """Reads one socket and puts every datagram on the shared queue.

    ``should_stop`` is polled between reads (the socket carries a timeout);
    once it returns True, read errors caused by closing the socket are not
    reported.
    """

    def __init__(
        self,
        sock: socket.socket,
        local_port: int,
        events: "queue.Queue[RelayEvent]",
        should_stop: Callable[[], bool],
        *,
        buffer_size: int = MAX_RADIUS_PACKET_LENGTH,
        name: str | None = None,
    ):
        super().__init__(daemon=True, name=name or f"RADIUS-Relay-{local_port}")
        self.sock = sock
        self.local_port = local_port
        self.events = events
        self.should_stop = should_stop
        self.buffer_size = buffer_size

    def run(self) -> None:
        while not self.should_stop():
            try:
                data, addr = self.sock.recvfrom(self.buffer_size)
            except TimeoutError:
                continue
            except OSError as exc:
                if not self.should_stop():
                    logger.warning(
                        "Relay socket read failed",
                        event="relay.receiver.read_failed",
                        port=self.local_port,
                        error=str(exc),
                    )
                    self.events.put(ReceiverFailed(self.local_port, exc))
                break
            if data:
                self.events.put(InboundDatagram(data, addr, self.local_port))


class PortListener:
    """Authenticator-facing socket bound to one target port."""

    def __init__(self, sock: socket.socket, port: int):
        self.sock = sock
        self.port = port
        self.receiver: DatagramReceiver | None = None

    @classmethod
    def bind(
        cls,
        bind_address: str,
        port: int,
        *,
        socket_timeout: float | None = 1.0,
        rcvbuf: int | None = None,
    ) -> "PortListener":
        """Bind a UDP socket on ``(bind_address, port)``.

        Raises:
            RelayTransportError: the socket could not be bound.
        """
        family = socket.AF_INET6 if ":" in bind_address else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if rcvbuf:
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, rcvbuf)
                except OSError as exc:
                    logger.warning(
                        "Failed to set relay socket buffer size",
                        event="relay.listener.rcvbuf_failed",
                        port=port,
                        error=str(exc),
                    )
            sock.bind((bind_address, port))
            sock.settimeout(socket_timeout)
        except OSError as exc:
            sock.close()
            raise RelayTransportError(
                f"Cannot bind relay listener on {bind_address or '*'}:{port}: {exc}",
                port=port,
            ) from exc
        logger.debug(
            "Relay listener bound",
            event="relay.listener.bound",
            host=bind_address or "*",
            port=port,
        )
        return cls(sock, port)

    def start(
        self,
        events: "queue.Queue[RelayEvent]",
        should_stop: Callable[[], bool],
        *,
        buffer_size: int = MAX_RADIUS_PACKET_LENGTH,
    ) -> None:
        self.receiver = DatagramReceiver(
            self.sock, self.port, events, should_stop, buffer_size=buffer_size
        )
        self.receiver.start()

    def sendto(self, data: bytes, addr: tuple) -> int:
        return self.sock.sendto(data, addr)

    def close(self) -> None:
        try:
            self.sock.close()
        except OSError as exc:
            logger.warning(
                "Failed to close relay listener",
                event="relay.listener.close_failed",
                port=self.port,
                error=str(exc),
            )
