"""RADIUS authenticator and attribute-hiding primitives.

MD5 is used throughout because RFC 2865/2866/3579 mandate it, not as a
general-purpose hash.
"""

import hashlib
import hmac
import struct
import warnings

from .constants import (
    ATTR_MESSAGE_AUTHENTICATOR,
    AUTHENTICATOR_LENGTH,
    HASHED_REQUEST_CODES,
    MAX_RADIUS_PACKET_LENGTH,
    RADIUS_HEADER_LENGTH,
    RESPONSE_CODES,
)

_ZERO_AUTH = b"\x00" * AUTHENTICATOR_LENGTH


def _md5(data: bytes) -> bytes:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", DeprecationWarning)
        return hashlib.md5(data, usedforsecurity=False).digest()


def _hmac_md5(key: bytes, data: bytes) -> bytes:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", DeprecationWarning)
        return hmac.new(key, data, digestmod=hashlib.md5).digest()


def _normalize_auth(authenticator: bytes) -> bytes:
    if len(authenticator) != AUTHENTICATOR_LENGTH:
        return (authenticator or b"")[:AUTHENTICATOR_LENGTH].ljust(
            AUTHENTICATOR_LENGTH, b"\x00"
        )
    return authenticator


def encrypt_password_value(
    password: bytes, secret: bytes, authenticator: bytes, pad_to: int = 0
) -> bytes:
    """Hide User-Password per RFC 2865 §5.2.

    The value is NUL padded to a multiple of 16 bytes, or to ``pad_to`` when
    that is larger, so a re-encoded packet keeps its original padding.
    """
    target = max(16, len(password) + (-len(password)) % 16, pad_to)
    padded = password.ljust(target, b"\x00")
    encrypted = b""
    prev = _normalize_auth(authenticator)
    for i in range(0, len(padded), 16):
        digest = _md5(secret + prev)
        block = bytes(a ^ b for a, b in zip(padded[i : i + 16], digest))
        encrypted += block
        prev = block
    return encrypted


def decrypt_password_value(
    encrypted: bytes, secret: bytes, authenticator: bytes
) -> bytes:
    """Reveal a hidden User-Password; trailing NUL padding is stripped."""
    if not encrypted or len(encrypted) % 16 != 0:
        raise ValueError(f"Invalid encrypted password length: {len(encrypted)}")
    decrypted = b""
    prev = _normalize_auth(authenticator)
    for i in range(0, len(encrypted), 16):
        chunk = encrypted[i : i + 16]
        digest = _md5(secret + prev)
        decrypted += bytes(a ^ b for a, b in zip(chunk, digest))
        prev = chunk
    return decrypted.rstrip(b"\x00")


def response_authenticator(
    header: bytes, request_auth: bytes, attrs_data: bytes, secret: bytes
) -> bytes:
    """MD5(Code+ID+Length+RequestAuth+Attributes+Secret), RFC 2865 §3."""
    return _md5(header + _normalize_auth(request_auth) + attrs_data + secret)


def hashed_request_authenticator(
    header: bytes, attrs_data: bytes, secret: bytes
) -> bytes:
    """Request Authenticator of Accounting/CoA/Disconnect requests (RFC 2866 §3)."""
    return _md5(header + _ZERO_AUTH + attrs_data + secret)


def message_authenticator(
    header: bytes, authenticator: bytes, attrs_data: bytes, secret: bytes
) -> bytes:
    """HMAC-MD5 over the packet with Message-Authenticator zeroed (RFC 3579 §3.2).

    ``attrs_data`` must already carry the zeroed attribute. For responses the
    caller passes the Request Authenticator of the matching request.
    """
    return _hmac_md5(secret, header + _normalize_auth(authenticator) + attrs_data)


def _locate_message_authenticator(data: bytes, length: int) -> int | None:
    """Return the offset of the Message-Authenticator value, if any."""
    idx = RADIUS_HEADER_LENGTH
    while idx + 2 <= length:
        atype = data[idx]
        alen = data[idx + 1]
        if alen < 2 or idx + alen > length:
            return None
        if atype == ATTR_MESSAGE_AUTHENTICATOR:
            if alen != 2 + AUTHENTICATOR_LENGTH:
                return None
            return idx + 2
        idx += alen
    return None


def verify_message_authenticator(
    data: bytes, secret: bytes, request_auth: bytes | None = None
) -> bool:
    """Verify Message-Authenticator (Attr 80) of a raw packet.

    Packets without the attribute verify as True. Responses need the
    Request Authenticator of their request in ``request_auth``.
    """
    if len(data) < RADIUS_HEADER_LENGTH:
        return False
    code, _identifier, length = struct.unpack("!BBH", data[:4])
    if length > MAX_RADIUS_PACKET_LENGTH or length < RADIUS_HEADER_LENGTH:
        return False
    if len(data) < length:
        return False
    offset = _locate_message_authenticator(data, length)
    if offset is None:
        return True
    received = bytes(data[offset : offset + AUTHENTICATOR_LENGTH])
    mutable = bytearray(data[:length])
    mutable[offset : offset + AUTHENTICATOR_LENGTH] = _ZERO_AUTH
    if code in RESPONSE_CODES:
        if request_auth is None:
            return False
        mutable[4:20] = _normalize_auth(request_auth)
    elif code in HASHED_REQUEST_CODES:
        mutable[4:20] = _ZERO_AUTH
    calc = _hmac_md5(secret, bytes(mutable))
    return hmac.compare_digest(calc, received)


def verify_response_authenticator(
    data: bytes, secret: bytes, request_auth: bytes
) -> bool:
    """Verify the Response Authenticator of a raw response packet."""
    if len(data) < RADIUS_HEADER_LENGTH:
        return False
    length = struct.unpack("!H", data[2:4])[0]
    if length < RADIUS_HEADER_LENGTH or len(data) < length:
        return False
    calc = response_authenticator(
        data[:4], request_auth, data[RADIUS_HEADER_LENGTH:length], secret
    )
    return hmac.compare_digest(calc, data[4:20])


__all__ = [
    "encrypt_password_value",
    "decrypt_password_value",
    "response_authenticator",
    "hashed_request_authenticator",
    "message_authenticator",
    "verify_message_authenticator",
    "verify_response_authenticator",
]
