"""Microsoft vendor-specific attributes carrying MS-CHAPv2 (RFC 2548 §2.3)."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from radius_relay.exceptions import ProtocolError
from radius_relay.radius.constants import (
    MS_CHAP2_RESPONSE,
    MS_CHAP2_SUCCESS,
    MS_CHAP_CHALLENGE,
    MS_CHAP_ERROR,
    VENDOR_MICROSOFT,
)
from radius_relay.radius.packet import RADIUSPacket

from .crypto import CHALLENGE_LENGTH, NT_RESPONSE_LENGTH

MS_CHAP2_RESPONSE_LENGTH = 50
AUTHENTICATOR_RESPONSE_LENGTH = 42  # "S=" + 40 hex digits


@dataclass(frozen=True)
class MsChap2Response:
    """MS-CHAP2-Response: Ident(1) Flags(1) Peer-Challenge(16) Reserved(8) Response(24)."""

    ident: int
    flags: int
    peer_challenge: bytes
    nt_response: bytes

    @classmethod
    def unpack(cls, data: bytes) -> "MsChap2Response":
        if len(data) != MS_CHAP2_RESPONSE_LENGTH:
            raise ProtocolError(
                f"MS-CHAP2-Response must be {MS_CHAP2_RESPONSE_LENGTH} bytes, got {len(data)}"
            )
        ident, flags = struct.unpack("BB", data[:2])
        return cls(
            ident=ident,
            flags=flags,
            peer_challenge=bytes(data[2:18]),
            nt_response=bytes(data[26:50]),
        )

    def pack(self) -> bytes:
        if len(self.peer_challenge) != CHALLENGE_LENGTH:
            raise ProtocolError("Peer challenge must be 16 bytes")
        if len(self.nt_response) != NT_RESPONSE_LENGTH:
            raise ProtocolError("NT-Response must be 24 bytes")
        return (
            struct.pack("BB", self.ident, self.flags)
            + self.peer_challenge
            + b"\x00" * 8
            + self.nt_response
        )


@dataclass(frozen=True)
class MsChap2Success:
    """MS-CHAP2-Success: Ident(1) followed by the authenticator response string."""

    ident: int
    authenticator_response: str

    @classmethod
    def unpack(cls, data: bytes) -> "MsChap2Success":
        if len(data) < 1 + AUTHENTICATOR_RESPONSE_LENGTH:
            raise ProtocolError(f"MS-CHAP2-Success too short: {len(data)} bytes")
        try:
            text = data[1 : 1 + AUTHENTICATOR_RESPONSE_LENGTH].decode("ascii")
        except UnicodeDecodeError as exc:
            raise ProtocolError("MS-CHAP2-Success is not ASCII") from exc
        if not text.startswith("S="):
            raise ProtocolError("MS-CHAP2-Success lacks the S= prefix")
        return cls(ident=data[0], authenticator_response=text)

    def pack(self) -> bytes:
        return bytes([self.ident]) + self.authenticator_response.encode("ascii")


def get_ms_chap_challenge(packet: RADIUSPacket) -> bytes | None:
    vsa = packet.get_vsa(VENDOR_MICROSOFT, MS_CHAP_CHALLENGE)
    if vsa is None:
        return None
    if len(vsa.vendor_data) != CHALLENGE_LENGTH:
        raise ProtocolError(
            f"MS-CHAP-Challenge must be {CHALLENGE_LENGTH} bytes, got {len(vsa.vendor_data)}"
        )
    return vsa.vendor_data


def get_ms_chap2_response(packet: RADIUSPacket) -> MsChap2Response | None:
    vsa = packet.get_vsa(VENDOR_MICROSOFT, MS_CHAP2_RESPONSE)
    return MsChap2Response.unpack(vsa.vendor_data) if vsa else None


def get_ms_chap2_success(packet: RADIUSPacket) -> MsChap2Success | None:
    vsa = packet.get_vsa(VENDOR_MICROSOFT, MS_CHAP2_SUCCESS)
    return MsChap2Success.unpack(vsa.vendor_data) if vsa else None


def get_ms_chap_error(packet: RADIUSPacket) -> str | None:
    """MS-CHAP-Error text (``E=691 R=0 ...``) without the leading ident octet."""
    vsa = packet.get_vsa(VENDOR_MICROSOFT, MS_CHAP_ERROR)
    if vsa is None or not vsa.vendor_data:
        return None
    return vsa.vendor_data[1:].decode("ascii", errors="replace")


def add_ms_chapv2_request(
    packet: RADIUSPacket, auth_challenge: bytes, response: MsChap2Response
) -> None:
    """Attach MS-CHAP-Challenge and MS-CHAP2-Response to an Access-Request."""
    packet.add_vsa(VENDOR_MICROSOFT, MS_CHAP_CHALLENGE, auth_challenge)
    packet.add_vsa(VENDOR_MICROSOFT, MS_CHAP2_RESPONSE, response.pack())


def set_ms_chap2_success(packet: RADIUSPacket, success: MsChap2Success) -> None:
    """Replace (or add) the MS-CHAP2-Success attribute of a response."""
    if not packet.replace_vsa(VENDOR_MICROSOFT, MS_CHAP2_SUCCESS, success.pack()):
        packet.add_vsa(VENDOR_MICROSOFT, MS_CHAP2_SUCCESS, success.pack())


__all__ = [
    "MsChap2Response",
    "MsChap2Success",
    "get_ms_chap_challenge",
    "get_ms_chap2_response",
    "get_ms_chap2_success",
    "get_ms_chap_error",
    "add_ms_chapv2_request",
    "set_ms_chap2_success",
]
