"""Interceptor that follows MS-CHAPv2 exchanges crossing the relay.

Access-Requests carrying MS-CHAP-Challenge and MS-CHAP2-Response are
remembered per (authenticator peer, RADIUS identifier). When a password is
known for the user, the peer's NT-Response is verified and the server's
MS-CHAP2-Success authenticator response is checked on the way back.
Packets are never altered or denied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from radius_relay.exceptions import MsChapV2Error, ProtocolError
from radius_relay.radius.constants import (
    ATTR_USER_NAME,
    RADIUS_ACCESS_ACCEPT,
    RADIUS_ACCESS_REJECT,
    RADIUS_ACCESS_REQUEST,
)
from radius_relay.radius.packet import RADIUSPacket
from radius_relay.utils.logger import format_addr, get_logger
from radius_relay.utils.simple_cache import LRUDict

from .attributes import (
    MsChap2Response,
    get_ms_chap2_response,
    get_ms_chap2_success,
    get_ms_chap_challenge,
    get_ms_chap_error,
)
from .crypto import check_authenticator_response, verify_nt_response

logger = get_logger("radius_relay.mschapv2.inspector", component="mschapv2")


def challenge_username(user_name: str) -> str:
    """Name fed into ChallengeHash(): any ``DOMAIN\\`` prefix is removed."""
    return user_name.rsplit("\\", 1)[-1]


@dataclass
class MsChapV2Exchange:
    peer: tuple
    identifier: int
    user_name: str
    auth_challenge: bytes
    response: MsChap2Response
    nt_response_valid: bool | None = None
    authenticator_valid: bool | None = None
    outcome: str | None = None
    error: str | None = None
    notes: list[str] = field(default_factory=list)


class MsChapV2Inspector:
    """PacketInterceptor for MS-CHAPv2 traffic.

    ``passwords`` maps user names (without domain) to clear-text passwords.
    """

    def __init__(self, passwords: dict[str, str] | None = None, max_exchanges: int = 1024):
        self.passwords = dict(passwords or {})
        self.exchanges: LRUDict[tuple, MsChapV2Exchange] = LRUDict(
            maxsize=max_exchanges, on_evict=self._expire
        )

    @staticmethod
    def _expire(_key: tuple, exchange: MsChapV2Exchange) -> None:
        if exchange.outcome is None:
            logger.debug(
                "MS-CHAPv2 exchange dropped before the server answered",
                event="mschapv2.exchange.unanswered",
                user=exchange.user_name,
                peer=format_addr(exchange.peer),
                identifier=exchange.identifier,
            )

    def decide(self, packet: Any, from_addr: tuple, to_addr: tuple) -> bool:
        if not isinstance(packet, RADIUSPacket):
            return True
        try:
            if packet.code == RADIUS_ACCESS_REQUEST:
                self._on_request(packet, from_addr)
            elif packet.code in (RADIUS_ACCESS_ACCEPT, RADIUS_ACCESS_REJECT):
                self._on_response(packet, to_addr)
        except ProtocolError as exc:
            logger.warning(
                "Malformed MS-CHAPv2 attribute",
                event="mschapv2.attribute.invalid",
                packet=str(packet),
                error=str(exc),
            )
        return True

    def lookup(self, peer: tuple, identifier: int) -> MsChapV2Exchange | None:
        return self.exchanges.get((tuple(peer[:2]), identifier))

    def _on_request(self, packet: RADIUSPacket, peer: tuple) -> None:
        response = get_ms_chap2_response(packet)
        if response is None:
            return
        auth_challenge = get_ms_chap_challenge(packet)
        if auth_challenge is None:
            raise ProtocolError("MS-CHAP2-Response without MS-CHAP-Challenge")

        user_name = packet.get_string(ATTR_USER_NAME) or ""
        exchange = MsChapV2Exchange(
            peer=tuple(peer[:2]),
            identifier=packet.identifier,
            user_name=user_name,
            auth_challenge=auth_challenge,
            response=response,
        )
        password = self.passwords.get(challenge_username(user_name))
        if password is not None:
            exchange.nt_response_valid = verify_nt_response(
                auth_challenge,
                response.peer_challenge,
                challenge_username(user_name),
                password,
                response.nt_response,
            )
        self.exchanges[(exchange.peer, exchange.identifier)] = exchange

        logger.info(
            "MS-CHAPv2 request observed",
            event="mschapv2.request",
            user=user_name,
            peer=format_addr(peer),
            identifier=packet.identifier,
            auth_challenge=auth_challenge,
            peer_challenge=response.peer_challenge,
            nt_response=response.nt_response,
            nt_response_valid=exchange.nt_response_valid,
        )

    def _on_response(self, packet: RADIUSPacket, peer: tuple) -> None:
        exchange = self.lookup(peer, packet.identifier)
        if exchange is None:
            return

        if packet.code == RADIUS_ACCESS_REJECT:
            exchange.outcome = "reject"
            exchange.error = get_ms_chap_error(packet)
            logger.info(
                "MS-CHAPv2 authentication rejected",
                event="mschapv2.reject",
                user=exchange.user_name,
                identifier=packet.identifier,
                error=exchange.error,
            )
            return

        exchange.outcome = "accept"
        success = get_ms_chap2_success(packet)
        password = self.passwords.get(challenge_username(exchange.user_name))
        if success is not None and password is not None:
            try:
                exchange.authenticator_valid = check_authenticator_response(
                    password,
                    exchange.response.nt_response,
                    exchange.response.peer_challenge,
                    exchange.auth_challenge,
                    challenge_username(exchange.user_name),
                    success.authenticator_response,
                )
            except MsChapV2Error as exc:
                exchange.authenticator_valid = False
                exchange.notes.append(str(exc))
        elif success is None:
            exchange.notes.append("Access-Accept without MS-CHAP2-Success")

        log = logger.info if exchange.authenticator_valid is not False else logger.warning
        log(
            "MS-CHAPv2 authentication accepted",
            event="mschapv2.accept",
            user=exchange.user_name,
            identifier=packet.identifier,
            authenticator_response=success.authenticator_response if success else None,
            authenticator_valid=exchange.authenticator_valid,
        )


__all__ = ["MsChapV2Exchange", "MsChapV2Inspector", "challenge_username"]
