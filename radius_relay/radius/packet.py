"""RADIUS wire format (RFC 2865 §3, §5).

The relay decodes a datagram, lets an interceptor look at or rewrite it and
encodes it again. Attributes are kept as raw ``(type, value)`` pairs in wire
order so that anything the relay does not understand goes back out
byte-for-byte.
"""

import ipaddress
import struct
from dataclasses import dataclass

from radius_relay.exceptions import PacketDecodeError
from radius_relay.utils.logger import get_logger

from .authenticator import (
    decrypt_password_value,
    encrypt_password_value,
    hashed_request_authenticator,
    message_authenticator,
    response_authenticator,
)
from .constants import (
    ATTR_MESSAGE_AUTHENTICATOR,
    ATTR_USER_PASSWORD,
    ATTR_VENDOR_SPECIFIC,
    AUTHENTICATOR_LENGTH,
    CODE_NAMES,
    HASHED_REQUEST_CODES,
    KNOWN_CODES,
    MAX_RADIUS_PACKET_LENGTH,
    RADIUS_ACCESS_REQUEST,
    RADIUS_HEADER_LENGTH,
    RESPONSE_CODES,
    VENDOR_MICROSOFT,
)

logger = get_logger("radius_relay.radius.packet", component="radius")

_TLV = struct.Struct("BB")
_VSA_HEADER = struct.Struct("!LBB")
MAX_ATTRIBUTE_VALUE = 253


@dataclass
class RADIUSAttribute:
    attr_type: int
    value: bytes

    def pack(self) -> bytes:
        if len(self.value) > MAX_ATTRIBUTE_VALUE:
            raise ValueError(
                f"Attribute {self.attr_type} too long: {len(self.value) + 2} bytes"
            )
        return _TLV.pack(self.attr_type, len(self.value) + 2) + self.value

    @classmethod
    def unpack(cls, data: bytes) -> tuple["RADIUSAttribute", int]:
        """Read one attribute from the front of ``data``.

        Returns the attribute and the number of bytes it occupied.
        """
        if len(data) < _TLV.size:
            raise ValueError("truncated attribute header")
        attr_type, length = _TLV.unpack_from(data)
        if not _TLV.size <= length <= len(data):
            raise ValueError(f"bad attribute length {length}")
        return cls(attr_type, bytes(data[_TLV.size:length])), length

    def as_string(self) -> str:
        return self.value.decode("utf-8", errors="replace")

    def as_int(self) -> int:
        if len(self.value) != 4:
            raise ValueError(f"{len(self.value)}-byte value is not a 32-bit integer")
        return int.from_bytes(self.value, "big")

    def as_ipaddr(self) -> str:
        return str(ipaddress.IPv4Address(self.value))


@dataclass
class VendorSpecificAttribute:
    """Value of a Vendor-Specific attribute (RFC 2865 §5.26).

    Only the single sub-attribute layout is handled: Vendor-Id(4),
    Vendor-Type(1), Vendor-Length(1), data. Microsoft's MS-CHAP attributes
    all use it.
    """

    vendor_id: int
    vendor_type: int
    vendor_data: bytes

    def pack(self) -> bytes:
        sub_length = len(self.vendor_data) + 2
        if 4 + sub_length > MAX_ATTRIBUTE_VALUE:
            raise ValueError(f"VSA too long: {2 + 4 + sub_length} bytes (max 255)")
        return _VSA_HEADER.pack(self.vendor_id, self.vendor_type, sub_length) + self.vendor_data

    @classmethod
    def unpack(cls, data: bytes) -> tuple["VendorSpecificAttribute", int]:
        """Parse the value of a Type 26 attribute; returns ``(vsa, bytes_consumed)``."""
        if len(data) < _VSA_HEADER.size:
            raise ValueError(f"VSA data too short: {len(data)} bytes")
        vendor_id, vendor_type, sub_length = _VSA_HEADER.unpack_from(data)
        end = 4 + sub_length
        if sub_length < 2 or end > len(data):
            raise ValueError(f"bad vendor-length {sub_length} for {len(data)} bytes")
        return cls(vendor_id, vendor_type, bytes(data[_VSA_HEADER.size:end])), end

    def as_string(self) -> str:
        return self.vendor_data.decode("utf-8", errors="replace")

    def __str__(self) -> str:
        vendor = "Microsoft" if self.vendor_id == VENDOR_MICROSOFT else f"Vendor-{self.vendor_id}"
        return f"VSA({vendor}, type={self.vendor_type}, len={len(self.vendor_data)})"


class RADIUSPacket:
    """Decoded RADIUS packet.

    ``attributes`` keeps wire order; vendor-specific attributes stay in it as
    raw Type 26 values and are parsed on demand by :meth:`get_vsas`.
    """

    def __init__(
        self,
        code: int,
        identifier: int,
        authenticator: bytes,
        attributes: list[RADIUSAttribute] | None = None,
    ):
        self.code = code
        self.identifier = identifier
        self.authenticator = authenticator  # 16 bytes
        self.attributes = attributes or []
        # Hidden User-Password length seen on the wire, kept so re-encoding
        # reproduces the sender's padding
        self.password_pad_length = 0
        # Responses only: authenticator of the request this one answers,
        # set by the codec after the server's signature checked out
        self.request_authenticator: bytes | None = None

    @property
    def code_name(self) -> str:
        return CODE_NAMES.get(self.code, str(self.code))

    @property
    def is_response(self) -> bool:
        return self.code in RESPONSE_CODES

    def pack(
        self, secret: bytes | None = None, request_auth: bytes | None = None
    ) -> bytes:
        """Pack RADIUS packet into bytes.

        Without ``secret`` every field, authenticators included, is carried
        through as-is. With ``secret`` User-Password is hidden again and the
        Message-Authenticator and Request/Response Authenticator are
        recomputed. Responses are only re-signed when the Request
        Authenticator of their request is supplied.
        """
        can_sign = bool(secret) and (
            self.code not in RESPONSE_CODES or request_auth is not None
        )

        raw_attrs: list[bytes] = []
        msg_auth_idx = None
        for attr in self.attributes:
            if (
                can_sign
                and attr.attr_type == ATTR_MESSAGE_AUTHENTICATOR
                and len(attr.value) == AUTHENTICATOR_LENGTH
            ):
                msg_auth_idx = len(raw_attrs)
                raw_attrs.append(
                    RADIUSAttribute(
                        ATTR_MESSAGE_AUTHENTICATOR, b"\x00" * AUTHENTICATOR_LENGTH
                    ).pack()
                )
            elif (
                secret
                and attr.attr_type == ATTR_USER_PASSWORD
                and self.code == RADIUS_ACCESS_REQUEST
            ):
                hidden = encrypt_password_value(
                    attr.value,
                    secret,
                    self.authenticator,
                    pad_to=self.password_pad_length,
                )
                raw_attrs.append(RADIUSAttribute(ATTR_USER_PASSWORD, hidden).pack())
            else:
                raw_attrs.append(attr.pack())
        attrs_data = b"".join(raw_attrs)

        length = RADIUS_HEADER_LENGTH + len(attrs_data)
        if length > MAX_RADIUS_PACKET_LENGTH:
            raise ValueError(f"Packet too large: {length} bytes")
        header = struct.pack("!BBH", self.code, self.identifier, length)

        if can_sign and msg_auth_idx is not None:
            assert secret is not None
            if self.code in RESPONSE_CODES:
                assert request_auth is not None
                mac_auth = request_auth
            elif self.code in HASHED_REQUEST_CODES:
                mac_auth = b"\x00" * AUTHENTICATOR_LENGTH
            else:
                mac_auth = self.authenticator
            mac = message_authenticator(header, mac_auth, attrs_data, secret)
            raw_attrs[msg_auth_idx] = (
                bytes([ATTR_MESSAGE_AUTHENTICATOR, 2 + AUTHENTICATOR_LENGTH]) + mac
            )
            attrs_data = b"".join(raw_attrs)

        if can_sign and self.code in RESPONSE_CODES:
            assert secret is not None and request_auth is not None
            authenticator = response_authenticator(
                header, request_auth, attrs_data, secret
            )
        elif can_sign and self.code in HASHED_REQUEST_CODES:
            assert secret is not None
            authenticator = hashed_request_authenticator(header, attrs_data, secret)
        else:
            authenticator = self.authenticator

        if len(authenticator) != AUTHENTICATOR_LENGTH:
            raise ValueError(f"Invalid authenticator length: {len(authenticator)}")
        return header + authenticator + attrs_data

    @classmethod
    def unpack(cls, data: bytes, secret: bytes | None = None) -> "RADIUSPacket":
        """Unpack RADIUS packet from bytes.

        Bytes beyond the Length field are ignored (RFC 2865 §3). With
        ``secret`` a hidden User-Password is revealed.
        """
        if len(data) < RADIUS_HEADER_LENGTH:
            raise PacketDecodeError(f"Packet too short: {len(data)} bytes")

        code, identifier, length = struct.unpack("!BBH", data[:4])

        if length > MAX_RADIUS_PACKET_LENGTH:
            raise PacketDecodeError(f"Packet too large: {length} bytes")
        if length < RADIUS_HEADER_LENGTH:
            raise PacketDecodeError(f"Invalid packet length field: {length}")
        if len(data) < length:
            raise PacketDecodeError(
                f"Incomplete packet: got {len(data)}, expected {length}"
            )
        if code not in KNOWN_CODES:
            raise PacketDecodeError(f"Invalid RADIUS code: {code}")

        authenticator = bytes(data[4:20])

        attributes = []
        offset = RADIUS_HEADER_LENGTH
        while offset < length:
            try:
                attr, consumed = RADIUSAttribute.unpack(data[offset:length])
            except ValueError as e:
                logger.debug(
                    "Error parsing attribute at offset",
                    offset=offset,
                    error=str(e),
                    event="radius.packet.parse_failed",
                )
                raise PacketDecodeError(
                    f"Invalid attribute at offset {offset}: {e}"
                ) from e
            attributes.append(attr)
            offset += consumed

        packet = cls(code, identifier, authenticator, attributes)

        if secret and code == RADIUS_ACCESS_REQUEST:
            packet._decrypt_password(secret)

        return packet

    def _decrypt_password(self, secret: bytes) -> None:
        for i, attr in enumerate(self.attributes):
            if attr.attr_type != ATTR_USER_PASSWORD:
                continue
            try:
                revealed = decrypt_password_value(
                    attr.value, secret, self.authenticator
                )
            except ValueError as exc:
                raise PacketDecodeError(str(exc)) from exc
            self.password_pad_length = len(attr.value)
            self.attributes[i] = RADIUSAttribute(ATTR_USER_PASSWORD, revealed)

    def add_attribute(self, attr_type: int, value: bytes):
        self.attributes.append(RADIUSAttribute(attr_type, value))

    def add_string(self, attr_type: int, value: str):
        self.add_attribute(attr_type, value.encode("utf-8"))

    def add_integer(self, attr_type: int, value: int):
        self.add_attribute(attr_type, value.to_bytes(4, "big"))

    def get_attribute(self, attr_type: int) -> RADIUSAttribute | None:
        """First attribute of ``attr_type`` in wire order."""
        return next((a for a in self.attributes if a.attr_type == attr_type), None)

    def remove_attributes(self, attr_type: int) -> int:
        """Drop every attribute of ``attr_type``; returns the count removed."""
        kept = [a for a in self.attributes if a.attr_type != attr_type]
        removed = len(self.attributes) - len(kept)
        self.attributes = kept
        return removed

    def get_string(self, attr_type: int) -> str | None:
        attr = self.get_attribute(attr_type)
        return None if attr is None else attr.as_string()

    def get_integer(self, attr_type: int) -> int | None:
        """Integer value of ``attr_type``; None when absent or not 4 bytes long."""
        attr = self.get_attribute(attr_type)
        if attr is None or len(attr.value) != 4:
            return None
        return attr.as_int()

    def add_vsa(self, vendor_id: int, vendor_type: int, vendor_data: bytes):
        """Append a single-sub-attribute Vendor-Specific attribute."""
        vsa = VendorSpecificAttribute(vendor_id, vendor_type, vendor_data)
        self.attributes.append(RADIUSAttribute(ATTR_VENDOR_SPECIFIC, vsa.pack()))

    def get_vsas(self, vendor_id: int | None = None) -> list[VendorSpecificAttribute]:
        """Well-formed VSAs in wire order, optionally only those of ``vendor_id``."""
        vsas = []
        for attr in self.attributes:
            if attr.attr_type != ATTR_VENDOR_SPECIFIC:
                continue
            try:
                vsa, consumed = VendorSpecificAttribute.unpack(attr.value)
            except (ValueError, struct.error) as exc:
                logger.debug(
                    "Failed to decode VSA attribute",
                    event="radius.vsa.decode_failed",
                    error=str(exc),
                )
                continue
            if consumed != len(attr.value):
                continue
            if vendor_id is None or vsa.vendor_id == vendor_id:
                vsas.append(vsa)
        return vsas

    def get_vsa(self, vendor_id: int, vendor_type: int) -> VendorSpecificAttribute | None:
        for vsa in self.get_vsas(vendor_id):
            if vsa.vendor_type == vendor_type:
                return vsa
        return None

    def replace_vsa(self, vendor_id: int, vendor_type: int, vendor_data: bytes) -> bool:
        """Replace the first matching VSA in place, keeping attribute order.

        Returns False (and leaves the packet untouched) when no VSA matches.
        """
        for i, attr in enumerate(self.attributes):
            if attr.attr_type != ATTR_VENDOR_SPECIFIC:
                continue
            try:
                vsa, _ = VendorSpecificAttribute.unpack(attr.value)
            except ValueError:
                continue
            if vsa.vendor_id == vendor_id and vsa.vendor_type == vendor_type:
                replacement = VendorSpecificAttribute(vendor_id, vendor_type, vendor_data)
                self.attributes[i] = RADIUSAttribute(
                    ATTR_VENDOR_SPECIFIC, replacement.pack()
                )
                return True
        return False

    def __str__(self) -> str:
        return (
            f"RADIUSPacket(code={self.code_name}, "
            f"id={self.identifier}, attrs={len(self.attributes)})"
        )
