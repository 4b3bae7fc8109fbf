"""PacketCodec contract and the default RADIUS implementation.

The relay engine only needs ``decode(raw, flow) -> packet`` and
``encode(packet) -> (ok, raw)``; any object providing both can be handed to
:class:`~radius_relay.relay.engine.RelayEngine`. ``flow`` identifies the
conversation a datagram belongs to (authenticator peer and server port) so
that identifiers from different peers or ports never get mixed up.
"""

from __future__ import annotations

import struct
from collections.abc import Hashable
from typing import Any, Protocol, runtime_checkable

from radius_relay.exceptions import PacketDecodeError
from radius_relay.utils.logger import get_logger
from radius_relay.utils.simple_cache import LRUDict

from .authenticator import verify_message_authenticator, verify_response_authenticator
from .packet import RADIUSPacket

logger = get_logger("radius_relay.radius.codec", component="radius")

Flow = Hashable


@runtime_checkable
class PacketCodec(Protocol):
    def decode(self, raw: bytes, flow: Flow = None) -> Any:
        """Decode a datagram. Raises PacketDecodeError on malformed input."""
        ...

    def encode(self, packet: Any) -> tuple[bool, bytes]:
        """Encode a packet. Failure is ``(False, b"")``."""
        ...


class RADIUSPacketCodec:
    """Codec built on :class:`RADIUSPacket`.

    With a shared secret, decoding reveals User-Password and remembers the
    Request Authenticator of every request under ``(flow, identifier)``.
    A response decoded on the same flow is checked against it; only a
    response whose Response Authenticator verifies is re-signed on encode.
    Any other response keeps the authenticators it arrived with. The memo
    is bounded by ``memo_size``.

    Only the relay's central loop may call into one codec instance.
    """

    def __init__(self, secret: bytes | str | None = None, memo_size: int = 256):
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        self.secret = secret or None
        self._request_auth: LRUDict[tuple[Flow, int], bytes] = LRUDict(
            maxsize=memo_size, on_evict=self._forget_request
        )

    @staticmethod
    def _forget_request(key: tuple[Flow, int], _authenticator: bytes) -> None:
        logger.debug(
            "Request authenticator evicted from memo",
            event="radius.codec.memo_evicted",
            flow=str(key[0]),
            identifier=key[1],
        )

    def decode(self, raw: bytes, flow: Flow = None) -> RADIUSPacket:
        try:
            packet = RADIUSPacket.unpack(raw, secret=self.secret)
        except PacketDecodeError:
            raise
        except (ValueError, IndexError, struct.error) as exc:
            raise PacketDecodeError(f"Malformed RADIUS datagram: {exc}") from exc
        if self.secret is None:
            return packet

        if not packet.is_response:
            if not verify_message_authenticator(raw, self.secret):
                logger.debug(
                    "Request Message-Authenticator does not verify",
                    event="radius.codec.bad_message_authenticator",
                    flow=str(flow),
                    identifier=packet.identifier,
                )
            self._request_auth[(flow, packet.identifier)] = packet.authenticator
            return packet

        request_auth = self._request_auth.peek((flow, packet.identifier))
        if request_auth is None:
            logger.debug(
                "No request seen for response on this flow",
                event="radius.codec.unmatched_response",
                flow=str(flow),
                identifier=packet.identifier,
            )
        elif verify_response_authenticator(raw, self.secret, request_auth):
            packet.request_authenticator = request_auth
        else:
            logger.debug(
                "Response Authenticator does not match the remembered request",
                event="radius.codec.unverified_response",
                flow=str(flow),
                identifier=packet.identifier,
            )
        return packet

    def encode(self, packet: RADIUSPacket) -> tuple[bool, bytes]:
        request_auth = packet.request_authenticator if packet.is_response else None
        try:
            return True, packet.pack(secret=self.secret, request_auth=request_auth)
        except (ValueError, TypeError, OverflowError, struct.error) as exc:
            logger.debug(
                "Failed to encode RADIUS packet",
                event="radius.codec.encode_failed",
                packet=str(packet),
                error=str(exc),
            )
            return False, b""

    def request_authenticator(self, identifier: int, flow: Flow = None) -> bytes | None:
        """Request Authenticator remembered for ``identifier`` on ``flow``, if any."""
        return self._request_auth.peek((flow, identifier))


__all__ = ["Flow", "PacketCodec", "RADIUSPacketCodec"]
