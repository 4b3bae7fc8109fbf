"""MS-CHAPv2 response generation (RFC 2759 §8).

Every function is a pure mapping from its inputs to bytes or a string and
is safe to call from any number of threads. DES and MD4 come from
pycryptodome; SHA-1 from hashlib.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

from Crypto.Cipher import DES
from Crypto.Hash import MD4

from radius_relay.exceptions import MsChapV2Error, PasswordEncodingError

CHALLENGE_LENGTH = 16
CHALLENGE_HASH_LENGTH = 8
PASSWORD_HASH_LENGTH = 16
NT_RESPONSE_LENGTH = 24

# RFC 2759 §8.7
MAGIC1 = (
    b"\x4D\x61\x67\x69\x63\x20\x73\x65\x72\x76"
    b"\x65\x72\x20\x74\x6F\x20\x63\x6C\x69\x65"
    b"\x6E\x74\x20\x73\x69\x67\x6E\x69\x6E\x67"
    b"\x20\x63\x6F\x6E\x73\x74\x61\x6E\x74"
)  # "Magic server to client signing constant"
MAGIC2 = (
    b"\x50\x61\x64\x20\x74\x6F\x20\x6D\x61\x6B"
    b"\x65\x20\x69\x74\x20\x64\x6F\x20\x6D\x6F"
    b"\x72\x65\x20\x74\x68\x61\x6E\x20\x6F\x6E"
    b"\x65\x20\x69\x74\x65\x72\x61\x74\x69\x6F"
    b"\x6E"
)  # "Pad to make it do more than one iteration"


def _username_bytes(username: str | bytes) -> bytes:
    # RFC 2759 hashes the user name as sent: raw octets, no Unicode conversion
    if isinstance(username, bytes):
        return username
    return username.encode("utf-8")


def challenge_hash(
    peer_challenge: bytes, auth_challenge: bytes, username: str | bytes
) -> bytes:
    """ChallengeHash(): first 8 octets of SHA1(PeerChallenge + AuthChallenge + UserName)."""
    digest = hashlib.sha1(
        peer_challenge + auth_challenge + _username_bytes(username)
    ).digest()
    return digest[:CHALLENGE_HASH_LENGTH]


def nt_password_hash(password: str) -> bytes:
    """NtPasswordHash(): MD4 of the password in UTF-16LE without BOM.

    Raises:
        PasswordEncodingError: password holds characters (lone surrogates)
            that cannot be encoded as UTF-16.
    """
    try:
        encoded = password.encode("utf-16-le")
    except UnicodeEncodeError as exc:
        raise PasswordEncodingError(
            "Password is not representable as UTF-16LE",
            {"position": exc.start},
        ) from exc
    return MD4.new(encoded).digest()


def hash_nt_password_hash(password_hash: bytes) -> bytes:
    """HashNtPasswordHash(): MD4 of the 16-octet NT password hash."""
    return MD4.new(password_hash).digest()


def expand_des_key(key7: bytes) -> bytes:
    """Spread 56 key bits over 8 octets and set odd parity in the low bit.

    Octet ``i`` of the result carries bits ``7*i .. 7*i+6`` of the input
    stream in its top seven bits.
    """
    if len(key7) != 7:
        raise ValueError(f"DES key material must be 7 bytes, got {len(key7)}")
    out = bytearray(8)
    carry = 0
    for i, byte in enumerate(key7):
        out[i] = ((byte >> i) | carry) & 0xFE
        carry = (byte << (7 - i)) & 0xFF
    out[7] = carry & 0xFE
    for i, byte in enumerate(out):
        if bin(byte >> 1).count("1") % 2 == 0:
            out[i] = byte | 0x01
    return bytes(out)


def challenge_response(challenge: bytes, password_hash: bytes) -> bytes:
    """ChallengeResponse(): three single-block DES encryptions of the challenge.

    The password hash is zero-padded to 21 octets and split into three
    7-octet DES keys.
    """
    z_password_hash = password_hash.ljust(21, b"\x00")
    response = b""
    for i in range(3):
        key = expand_des_key(z_password_hash[i * 7 : (i + 1) * 7])
        response += DES.new(key, DES.MODE_ECB).encrypt(challenge)
    return response


def generate_nt_response(
    auth_challenge: bytes,
    peer_challenge: bytes,
    username: str | bytes,
    password: str,
) -> bytes:
    """GenerateNTResponse(): the 24-octet NT-Response a peer sends.

    Raises:
        MsChapV2Error: no response can be computed (unencodable password or
            an intermediate value of unexpected length).
    """
    challenge = challenge_hash(peer_challenge, auth_challenge, username)
    password_hash = nt_password_hash(password)
    if len(challenge) != CHALLENGE_HASH_LENGTH:
        raise MsChapV2Error(
            f"Challenge hash must be {CHALLENGE_HASH_LENGTH} bytes, got {len(challenge)}"
        )
    if len(password_hash) != PASSWORD_HASH_LENGTH:
        raise MsChapV2Error(
            f"Password hash must be {PASSWORD_HASH_LENGTH} bytes, got {len(password_hash)}"
        )
    return challenge_response(challenge, password_hash)


def generate_authenticator_response(
    password: str,
    nt_response: bytes,
    peer_challenge: bytes,
    auth_challenge: bytes,
    username: str | bytes,
) -> str:
    """GenerateAuthenticatorResponse(): ``"S="`` + 40 uppercase hex digits."""
    password_hash_hash = hash_nt_password_hash(nt_password_hash(password))
    digest = hashlib.sha1(password_hash_hash + nt_response + MAGIC1).digest()
    challenge = challenge_hash(peer_challenge, auth_challenge, username)
    digest = hashlib.sha1(digest + challenge + MAGIC2).digest()
    return "S=" + digest.hex().upper()


def check_authenticator_response(
    password: str,
    nt_response: bytes,
    peer_challenge: bytes,
    auth_challenge: bytes,
    username: str | bytes,
    received_response: str | bytes,
) -> bool:
    """CheckAuthenticatorResponse() (RFC 2759 §8.8)."""
    if isinstance(received_response, bytes):
        try:
            received_response = received_response.decode("ascii")
        except UnicodeDecodeError:
            return False
    expected = generate_authenticator_response(
        password, nt_response, peer_challenge, auth_challenge, username
    )
    return hmac.compare_digest(
        expected.encode("ascii"), received_response.encode("ascii", "replace")
    )


def verify_nt_response(
    auth_challenge: bytes,
    peer_challenge: bytes,
    username: str | bytes,
    password: str,
    nt_response: bytes,
) -> bool:
    """True when ``nt_response`` was produced from ``password``."""
    try:
        expected = generate_nt_response(
            auth_challenge, peer_challenge, username, password
        )
    except MsChapV2Error:
        return False
    return hmac.compare_digest(expected, nt_response)


def new_challenge() -> bytes:
    """A fresh 16-octet authenticator or peer challenge."""
    return secrets.token_bytes(CHALLENGE_LENGTH)


__all__ = [
    "MAGIC1",
    "MAGIC2",
    "challenge_hash",
    "nt_password_hash",
    "hash_nt_password_hash",
    "expand_des_key",
    "challenge_response",
    "generate_nt_response",
    "generate_authenticator_response",
    "check_authenticator_response",
    "verify_nt_response",
    "new_challenge",
]
