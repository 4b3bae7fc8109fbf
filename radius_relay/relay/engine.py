"""
RADIUS relay engine

Sits between an authenticator (NAS) and its authenticator server. Every
configured port gets a listener; every authenticator peer gets a dedicated
socket towards the server. All sockets are read by their own thread and
feed one queue, drained by a single central loop that alone owns the
SessionTable.
"""

from __future__ import annotations

import ipaddress
import queue
import socket
import threading
import time
from collections.abc import Callable
from typing import Any

from radius_relay.exceptions import ConfigurationError, RelayTransportError
from radius_relay.radius.codec import PacketCodec, RADIUSPacketCodec
from radius_relay.radius.constants import MAX_RADIUS_PACKET_LENGTH
from radius_relay.utils import metrics
from radius_relay.utils.logger import format_addr, get_logger, logging_context

from .interceptor import PacketInterceptor, as_interceptor
from .listener import (
    DatagramReceiver,
    InboundDatagram,
    PortListener,
    ReceiverFailed,
    RelayEvent,
    StopRequested,
)
from .session import Address, Direction, Mode, Session, classify_direction, peer_key
from .stats import RelayStats
from .table import ClientEndpoint, SessionTable

logger = get_logger("radius_relay.relay.engine", component="relay")


class RelayEngine:
    """Man-in-the-middle relay for RADIUS over UDP.

    Usage::

        engine = RelayEngine()
        engine.configure(Mode.ACTIVE, "10.0.0.5", 1812, 1813)
        engine.run(my_interceptor)  # blocks until stop() or a fatal error

    ``run`` returns normally after :meth:`stop` and raises
    :class:`RelayTransportError` when a socket fails.
    """

    def __init__(
        self,
        codec: PacketCodec | None = None,
        *,
        bind_address: str = "",
        endpoint_address: str = "",
        socket_timeout: float = 1.0,
        rcvbuf: int | None = None,
        idle_timeout: float = 0.0,
        max_endpoints: int = 0,
        buffer_size: int = MAX_RADIUS_PACKET_LENGTH,
    ):
        self.codec: PacketCodec = codec or RADIUSPacketCodec()
        self.bind_address = bind_address
        self.endpoint_address = endpoint_address
        self.socket_timeout = socket_timeout
        self.rcvbuf = rcvbuf
        self.idle_timeout = idle_timeout
        self.max_endpoints = max_endpoints
        self.buffer_size = buffer_size

        self.session: Session | None = None
        self.stats = RelayStats()
        self.ready = threading.Event()

        self._running = False
        self._events: queue.Queue[RelayEvent] | None = None

    @property
    def running(self) -> bool:
        return self._running

    def configure(self, mode: Mode | str, host: str, *ports: int) -> Session:
        """Set the relay target. No I/O happens here."""
        if self._running:
            raise ConfigurationError("Cannot reconfigure a running relay")
        self.session = Session.build(mode, host, ports)
        logger.debug(
            "Relay configured",
            event="relay.configured",
            mode=self.session.mode.value,
            host=self.session.host,
            ports=list(self.session.ports),
        )
        return self.session

    def stop(self, reason: str = "stop requested") -> None:
        """Ask a running relay to finish; safe to call from any thread."""
        events = self._events
        if events is None:
            return
        events.put(StopRequested(reason))

    def run(self, interceptor: PacketInterceptor | Callable[..., bool] | None = None) -> None:
        """Relay until :meth:`stop` is called.

        Raises:
            ConfigurationError: not configured, or already running.
            RelayTransportError: resolving the host, binding a socket or
                reading from one failed.
        """
        session = self.session
        if session is None:
            raise ConfigurationError("Relay is not configured; call configure() first")
        if self._running:
            raise ConfigurationError("Relay is already running")

        hook = as_interceptor(interceptor) if session.mode is Mode.ACTIVE else None
        events: queue.Queue[RelayEvent] = queue.Queue()
        stopping = threading.Event()
        table = SessionTable(self.idle_timeout, self.max_endpoints)
        listeners: dict[int, PortListener] = {}

        self._events = events
        self._running = True
        try:
            with logging_context(relay_host=session.host, relay_mode=session.mode.value):
                host_ip = self._resolve(session.host)
                for port in session.ports:
                    listener = PortListener.bind(
                        self.bind_address,
                        port,
                        socket_timeout=self.socket_timeout,
                        rcvbuf=self.rcvbuf,
                    )
                    listeners[port] = listener
                    listener.start(events, stopping.is_set, buffer_size=self.buffer_size)

                logger.info(
                    "RADIUS relay listening",
                    event="service.start",
                    service="radius_relay",
                    host=self.bind_address or "*",
                    ports=list(session.ports),
                    target=host_ip,
                    mode=session.mode.value,
                )
                self.ready.set()
                self._loop(session, host_ip, hook, events, stopping, table, listeners)
        finally:
            stopping.set()
            for listener in listeners.values():
                listener.close()
            table.close_all()
            self.stats.endpoints_changed(0)
            self._events = None
            self._running = False
            self.ready.clear()
            logger.info(
                "RADIUS relay stopped",
                event="service.stop",
                service="radius_relay",
            )

    def get_stats(self) -> dict[str, Any]:
        stats = self.stats.get_all()
        stats["running"] = self._running
        stats["mode"] = self.session.mode.value if self.session else None
        return stats

    # Central loop

    def _loop(
        self,
        session: Session,
        host_ip: str,
        hook: PacketInterceptor | None,
        events: queue.Queue[RelayEvent],
        stopping: threading.Event,
        table: SessionTable,
        listeners: dict[int, PortListener],
    ) -> None:
        sweep_interval = None
        if table.idle_timeout > 0:
            sweep_interval = min(max(table.idle_timeout / 2, 0.05), 5.0)
        last_sweep = time.monotonic()

        while True:
            try:
                event = events.get(timeout=sweep_interval)
            except queue.Empty:
                event = None

            if isinstance(event, StopRequested):
                logger.info(
                    "Relay stop requested",
                    event="relay.stop_requested",
                    reason=event.reason,
                )
                return
            if isinstance(event, ReceiverFailed):
                raise RelayTransportError(
                    f"Socket read failed on port {event.local_port}: {event.error}",
                    port=event.local_port,
                ) from event.error
            if isinstance(event, InboundDatagram):
                started = time.perf_counter()
                self._handle(event, session, host_ip, hook, events, stopping, table, listeners)
                metrics.relay_handle_seconds.observe(time.perf_counter() - started)

            if sweep_interval is not None and time.monotonic() - last_sweep >= sweep_interval:
                last_sweep = time.monotonic()
                evicted = table.expire_idle()
                if evicted:
                    self._log_evicted(evicted, "idle")
                    self.stats.endpoints_changed(len(table), evicted=len(evicted))

    def _handle(
        self,
        datagram: InboundDatagram,
        session: Session,
        host_ip: str,
        hook: PacketInterceptor | None,
        events: queue.Queue[RelayEvent],
        stopping: threading.Event,
        table: SessionTable,
        listeners: dict[int, PortListener],
    ) -> None:
        sender = peer_key(datagram.sender)
        direction = classify_direction(sender, host_ip, session.ports)
        self.stats.received(direction)
        logger.debug(
            "Datagram received",
            event="relay.datagram.received",
            direction=direction.value,
            src=format_addr(sender),
            local_port=datagram.local_port,
            size=len(datagram.data),
            payload=datagram.data.hex(),
        )

        if direction is Direction.DOWNSTREAM:
            endpoint = table.find_by_port(datagram.local_port)
            if endpoint is None:
                self._drop("no_endpoint", direction, sender, local_port=datagram.local_port)
                return
            endpoint.touch()
            listener = listeners[sender[1]]
            peer = endpoint.peer

            def send(raw: bytes) -> int:
                return listener.sendto(raw, peer)

            self._forward(direction, datagram.data, sender, peer, send, hook)
            return

        endpoint = table.find_by_peer(sender)
        if endpoint is None:
            endpoint = self._open_endpoint(
                sender, datagram.local_port, host_ip, events, stopping, table
            )
        endpoint.touch()
        self._forward(
            direction, datagram.data, endpoint.peer, endpoint.target, endpoint.send, hook
        )

    def _open_endpoint(
        self,
        peer: Address,
        target_port: int,
        host_ip: str,
        events: queue.Queue[RelayEvent],
        stopping: threading.Event,
        table: SessionTable,
    ) -> ClientEndpoint:
        evicted = table.make_room()
        if evicted:
            self._log_evicted(evicted, "capacity")

        local_port = table.allocate_port(peer[1])
        endpoint = ClientEndpoint.open(
            peer,
            local_port,
            (host_ip, target_port),
            bind_address=self.endpoint_address,
            socket_timeout=self.socket_timeout,
            rcvbuf=self.rcvbuf,
        )
        table.add(endpoint)

        def should_stop() -> bool:
            return stopping.is_set() or endpoint.closed.is_set()

        DatagramReceiver(
            endpoint.sock,
            local_port,
            events,
            should_stop,
            buffer_size=self.buffer_size,
            name=f"RADIUS-Relay-Peer-{local_port}",
        ).start()

        self.stats.endpoints_changed(len(table), created=1, evicted=len(evicted))
        logger.info(
            "Relay endpoint created",
            event="relay.endpoint.created",
            peer=format_addr(peer),
            local_port=local_port,
            target=f"{host_ip}:{target_port}",
        )
        return endpoint

    def _forward(
        self,
        direction: Direction,
        data: bytes,
        src: Address,
        dst: Address,
        send: Callable[[bytes], int],
        hook: PacketInterceptor | None,
    ) -> None:
        if hook is None:
            payload = data
        else:
            # client peer and server port name the conversation in both directions
            if direction is Direction.UPSTREAM:
                flow = (src, dst[1])
            else:
                flow = (dst, src[1])
            try:
                packet = self.codec.decode(data, flow)
            except Exception as exc:
                self._drop("decode_failed", direction, src, error=str(exc))
                return
            try:
                forward = hook.decide(packet, src, dst)
            except Exception as exc:
                logger.warning(
                    "Interceptor raised; dropping datagram",
                    event="relay.intercept.failed",
                    src=format_addr(src),
                    error=str(exc),
                    exc_info=True,
                )
                self._drop("interceptor_error", direction, src)
                return
            if not forward:
                self._drop("denied", direction, src)
                return
            try:
                ok, payload = self.codec.encode(packet)
            except Exception as exc:
                self._drop("encode_failed", direction, src, error=str(exc))
                return
            if not ok:
                self._drop("encode_failed", direction, src)
                return

        try:
            send(payload)
        except OSError as exc:
            self._drop("send_failed", direction, src, error=str(exc))
            return
        self.stats.forwarded(direction)
        logger.debug(
            "Datagram forwarded",
            event="relay.datagram.forwarded",
            direction=direction.value,
            src=format_addr(src),
            dst=format_addr(dst),
            size=len(payload),
        )

    def _drop(
        self, reason: str, direction: Direction, src: Address, **fields: Any
    ) -> None:
        self.stats.dropped(reason)
        logger.debug(
            "Datagram dropped",
            event=f"relay.drop.{reason}",
            direction=direction.value,
            src=format_addr(src),
            **fields,
        )

    def _log_evicted(self, evicted: list[ClientEndpoint], why: str) -> None:
        for ep in evicted:
            logger.info(
                "Relay endpoint evicted",
                event="relay.endpoint.evicted",
                reason=why,
                peer=format_addr(ep.peer),
                local_port=ep.local_port,
            )

    @staticmethod
    def _resolve(host: str) -> str:
        try:
            return str(ipaddress.ip_address(host))
        except ValueError:
            pass
        try:
            infos = socket.getaddrinfo(host, None, type=socket.SOCK_DGRAM)
        except socket.gaierror as exc:
            raise RelayTransportError(f"Cannot resolve relay host {host!r}: {exc}") from exc
        return str(infos[0][4][0])
