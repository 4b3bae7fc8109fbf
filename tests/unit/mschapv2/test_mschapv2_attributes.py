"""Unit tests for Microsoft MS-CHAPv2 vendor-specific attributes."""

import os
import struct

import pytest

from radius_relay.exceptions import ProtocolError
from radius_relay.mschapv2.attributes import (
    MsChap2Response,
    MsChap2Success,
    add_ms_chapv2_request,
    get_ms_chap2_response,
    get_ms_chap2_success,
    get_ms_chap_challenge,
    get_ms_chap_error,
    set_ms_chap2_success,
)
from radius_relay.radius.constants import (
    ATTR_USER_NAME,
    MS_CHAP2_SUCCESS,
    MS_CHAP_CHALLENGE,
    MS_CHAP_ERROR,
    RADIUS_ACCESS_ACCEPT,
    RADIUS_ACCESS_REJECT,
    RADIUS_ACCESS_REQUEST,
    VENDOR_MICROSOFT,
)
from radius_relay.radius.packet import RADIUSPacket


def _response() -> MsChap2Response:
    return MsChap2Response(
        ident=7, flags=0, peer_challenge=os.urandom(16), nt_response=os.urandom(24)
    )


class TestMsChap2Response:
    def test_pack_layout(self):
        resp = _response()
        packed = resp.pack()
        assert len(packed) == 50
        assert packed[0] == 7 and packed[1] == 0
        assert packed[2:18] == resp.peer_challenge
        assert packed[18:26] == b"\x00" * 8
        assert packed[26:] == resp.nt_response

    def test_unpack_ignores_reserved_octets(self):
        resp = _response()
        raw = bytearray(resp.pack())
        raw[18:26] = b"\xaa" * 8
        assert MsChap2Response.unpack(bytes(raw)) == resp

    @pytest.mark.parametrize("length", [0, 49, 51])
    def test_unpack_wrong_length(self, length):
        with pytest.raises(ProtocolError):
            MsChap2Response.unpack(b"\x00" * length)

    def test_pack_rejects_bad_lengths(self):
        with pytest.raises(ProtocolError):
            MsChap2Response(1, 0, b"\x00" * 15, b"\x00" * 24).pack()
        with pytest.raises(ProtocolError):
            MsChap2Response(1, 0, b"\x00" * 16, b"\x00" * 23).pack()


class TestMsChap2Success:
    def test_round_trip(self):
        success = MsChap2Success(3, "S=" + "A" * 40)
        assert MsChap2Success.unpack(success.pack()) == success

    def test_trailing_message_is_ignored(self):
        raw = b"\x03S=" + b"B" * 40 + b" M=Welcome"
        assert MsChap2Success.unpack(raw).authenticator_response == "S=" + "B" * 40

    def test_missing_prefix(self):
        with pytest.raises(ProtocolError, match="S= prefix"):
            MsChap2Success.unpack(b"\x03X=" + b"B" * 40)

    def test_too_short(self):
        with pytest.raises(ProtocolError):
            MsChap2Success.unpack(b"\x03S=ABC")


def test_request_attributes_round_trip():
    pkt = RADIUSPacket(RADIUS_ACCESS_REQUEST, 1, os.urandom(16))
    pkt.add_string(ATTR_USER_NAME, "alice")
    challenge = os.urandom(16)
    resp = _response()
    add_ms_chapv2_request(pkt, challenge, resp)

    decoded = RADIUSPacket.unpack(pkt.pack())
    assert get_ms_chap_challenge(decoded) == challenge
    assert get_ms_chap2_response(decoded) == resp


def test_missing_attributes_return_none():
    pkt = RADIUSPacket(RADIUS_ACCESS_REQUEST, 1, os.urandom(16))
    assert get_ms_chap_challenge(pkt) is None
    assert get_ms_chap2_response(pkt) is None
    assert get_ms_chap2_success(pkt) is None
    assert get_ms_chap_error(pkt) is None


def test_challenge_of_wrong_length():
    pkt = RADIUSPacket(RADIUS_ACCESS_REQUEST, 1, os.urandom(16))
    pkt.add_vsa(VENDOR_MICROSOFT, MS_CHAP_CHALLENGE, b"\x00" * 8)
    with pytest.raises(ProtocolError):
        get_ms_chap_challenge(pkt)


def test_other_vendors_are_ignored():
    pkt = RADIUSPacket(RADIUS_ACCESS_REQUEST, 1, os.urandom(16))
    pkt.add_vsa(9, MS_CHAP_CHALLENGE, b"\x00" * 16)
    assert get_ms_chap_challenge(pkt) is None


def test_set_success_replaces_in_place():
    pkt = RADIUSPacket(RADIUS_ACCESS_ACCEPT, 1, os.urandom(16))
    pkt.add_vsa(VENDOR_MICROSOFT, MS_CHAP2_SUCCESS, b"\x01S=" + b"0" * 40)
    pkt.add_string(ATTR_USER_NAME, "alice")
    set_ms_chap2_success(pkt, MsChap2Success(1, "S=" + "F" * 40))

    assert len(pkt.attributes) == 2
    assert get_ms_chap2_success(pkt).authenticator_response == "S=" + "F" * 40
    # order preserved
    assert pkt.attributes[1].attr_type == ATTR_USER_NAME


def test_set_success_adds_when_missing():
    pkt = RADIUSPacket(RADIUS_ACCESS_ACCEPT, 1, os.urandom(16))
    set_ms_chap2_success(pkt, MsChap2Success(1, "S=" + "F" * 40))
    assert get_ms_chap2_success(pkt).ident == 1


def test_ms_chap_error_text():
    pkt = RADIUSPacket(RADIUS_ACCESS_REJECT, 1, os.urandom(16))
    pkt.add_vsa(VENDOR_MICROSOFT, MS_CHAP_ERROR, b"\x01E=691 R=0 V=3")
    assert get_ms_chap_error(pkt) == "E=691 R=0 V=3"


def test_vsa_wire_format():
    pkt = RADIUSPacket(RADIUS_ACCESS_REQUEST, 1, b"\x00" * 16)
    pkt.add_vsa(VENDOR_MICROSOFT, MS_CHAP_CHALLENGE, b"\x11" * 16)
    raw = pkt.pack()
    attr = raw[20:]
    assert attr[0] == 26 and attr[1] == 2 + 4 + 2 + 16
    assert struct.unpack("!L", attr[2:6])[0] == 311
    assert attr[6] == MS_CHAP_CHALLENGE and attr[7] == 18
