"""Unit tests for the relay's RADIUS codec."""

import os

import pytest

from radius_relay.exceptions import PacketDecodeError
from radius_relay.radius.authenticator import (
    verify_message_authenticator,
    verify_response_authenticator,
)
from radius_relay.radius.codec import PacketCodec, RADIUSPacketCodec
from radius_relay.radius.constants import (
    ATTR_MESSAGE_AUTHENTICATOR,
    ATTR_REPLY_MESSAGE,
    ATTR_USER_NAME,
    ATTR_USER_PASSWORD,
    RADIUS_ACCESS_ACCEPT,
    RADIUS_ACCESS_REQUEST,
    RADIUS_ACCOUNTING_REQUEST,
)
from radius_relay.radius.packet import RADIUSAttribute, RADIUSPacket

SECRET = b"testing123"


def _request(identifier: int = 5) -> RADIUSPacket:
    pkt = RADIUSPacket(RADIUS_ACCESS_REQUEST, identifier, os.urandom(16))
    pkt.add_string(ATTR_USER_NAME, "alice")
    pkt.add_attribute(ATTR_USER_PASSWORD, b"s3cret")
    pkt.add_attribute(ATTR_MESSAGE_AUTHENTICATOR, b"\x00" * 16)
    return pkt


def _accept(request_auth: bytes, identifier: int = 5) -> bytes:
    pkt = RADIUSPacket(RADIUS_ACCESS_ACCEPT, identifier, b"\x00" * 16)
    pkt.add_string(ATTR_REPLY_MESSAGE, "hello")
    pkt.add_attribute(ATTR_MESSAGE_AUTHENTICATOR, b"\x00" * 16)
    return pkt.pack(SECRET, request_auth=request_auth)


def test_codec_satisfies_protocol():
    assert isinstance(RADIUSPacketCodec(), PacketCodec)


def test_round_trip_without_secret_is_byte_identical():
    codec = RADIUSPacketCodec()
    raw = _request().pack(SECRET)
    ok, encoded = codec.encode(codec.decode(raw))
    assert ok
    assert encoded == raw


def test_round_trip_with_secret_is_byte_identical():
    codec = RADIUSPacketCodec(SECRET)
    raw = _request().pack(SECRET)
    packet = codec.decode(raw)
    assert packet.get_attribute(ATTR_USER_PASSWORD).value == b"s3cret"
    ok, encoded = codec.encode(packet)
    assert ok
    assert encoded == raw


def test_secret_may_be_str():
    assert RADIUSPacketCodec("testing123").secret == SECRET
    assert RADIUSPacketCodec("").secret is None


def test_decode_failure_raises():
    codec = RADIUSPacketCodec()
    with pytest.raises(PacketDecodeError):
        codec.decode(b"\x01\x02")
    with pytest.raises(PacketDecodeError):
        codec.decode(b"")


def test_encode_failure_returns_false():
    codec = RADIUSPacketCodec()
    pkt = RADIUSPacket(RADIUS_ACCESS_REQUEST, 1, os.urandom(16))
    pkt.attributes.append(RADIUSAttribute(ATTR_REPLY_MESSAGE, b"x" * 300))
    assert codec.encode(pkt) == (False, b"")

    bad_auth = RADIUSPacket(RADIUS_ACCESS_REQUEST, 1, b"short")
    assert codec.encode(bad_auth) == (False, b"")

    bad_id = RADIUSPacket(RADIUS_ACCESS_REQUEST, 300, os.urandom(16))
    assert codec.encode(bad_id) == (False, b"")


def test_request_authenticator_is_remembered():
    codec = RADIUSPacketCodec(SECRET)
    request = _request(identifier=42)
    codec.decode(request.pack(SECRET))
    assert codec.request_authenticator(42) == request.authenticator
    assert codec.request_authenticator(43) is None


def test_mutated_response_is_resigned():
    codec = RADIUSPacketCodec(SECRET)
    request = _request()
    codec.decode(request.pack(SECRET))

    response = codec.decode(_accept(request.authenticator))
    response.remove_attributes(ATTR_REPLY_MESSAGE)
    response.add_string(ATTR_REPLY_MESSAGE, "rewritten")
    ok, raw = codec.encode(response)
    assert ok
    assert verify_response_authenticator(raw, SECRET, request.authenticator)
    assert verify_message_authenticator(raw, SECRET, request.authenticator)


def test_response_for_unknown_request_is_carried_through():
    codec = RADIUSPacketCodec(SECRET)
    raw = _accept(os.urandom(16), identifier=77)
    ok, encoded = codec.encode(codec.decode(raw))
    assert ok
    assert encoded == raw


def test_memo_is_bounded():
    codec = RADIUSPacketCodec(SECRET, memo_size=2)
    for ident in range(3):
        codec.decode(_request(identifier=ident).pack(SECRET))
    assert codec.request_authenticator(0) is None
    assert codec.request_authenticator(2) is not None


AUTH_FLOW = (("192.0.2.10", 40000), 1812)
ACCT_FLOW = (("192.0.2.10", 40000), 1813)


def _accounting_request(identifier: int) -> bytes:
    pkt = RADIUSPacket(RADIUS_ACCOUNTING_REQUEST, identifier, b"\x00" * 16)
    pkt.add_string(ATTR_USER_NAME, "alice")
    return pkt.pack(SECRET)


def test_requests_on_other_ports_do_not_clobber_each_other():
    codec = RADIUSPacketCodec(SECRET)
    access = _request(identifier=7)
    codec.decode(access.pack(SECRET), AUTH_FLOW)
    codec.decode(_accounting_request(7), ACCT_FLOW)
    assert codec.request_authenticator(7, AUTH_FLOW) == access.authenticator

    raw_accept = _accept(access.authenticator, identifier=7)
    response = codec.decode(raw_accept, AUTH_FLOW)
    assert response.request_authenticator == access.authenticator
    assert codec.encode(response) == (True, raw_accept)


def test_response_not_matching_remembered_request_is_left_alone():
    codec = RADIUSPacketCodec(SECRET)
    access = _request(identifier=7)
    codec.decode(access.pack(SECRET))
    # same flow and identifier: the accounting request replaces the memo entry
    codec.decode(_accounting_request(7))

    raw_accept = _accept(access.authenticator, identifier=7)
    response = codec.decode(raw_accept)
    assert response.request_authenticator is None
    ok, encoded = codec.encode(response)
    assert ok
    assert encoded == raw_accept
    assert verify_response_authenticator(encoded, SECRET, access.authenticator)


def test_response_on_another_flow_is_not_resigned():
    codec = RADIUSPacketCodec(SECRET)
    request = _request(identifier=9)
    codec.decode(request.pack(SECRET), AUTH_FLOW)

    other_peer = (("192.0.2.11", 40000), 1812)
    raw_accept = _accept(request.authenticator, identifier=9)
    response = codec.decode(raw_accept, other_peer)
    response.remove_attributes(ATTR_REPLY_MESSAGE)
    ok, encoded = codec.encode(response)
    assert ok
    assert encoded[4:20] == raw_accept[4:20]
    assert not verify_response_authenticator(encoded, SECRET, request.authenticator)
