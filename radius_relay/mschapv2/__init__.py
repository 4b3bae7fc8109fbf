"""MS-CHAPv2 (RFC 2759) primitives and the RADIUS attributes that carry them."""

from .crypto import (
    challenge_hash,
    check_authenticator_response,
    generate_authenticator_response,
    generate_nt_response,
    hash_nt_password_hash,
    new_challenge,
    nt_password_hash,
    verify_nt_response,
)
from .inspector import MsChapV2Exchange, MsChapV2Inspector

__all__ = [
    "challenge_hash",
    "nt_password_hash",
    "hash_nt_password_hash",
    "generate_nt_response",
    "generate_authenticator_response",
    "check_authenticator_response",
    "verify_nt_response",
    "new_challenge",
    "MsChapV2Exchange",
    "MsChapV2Inspector",
]
