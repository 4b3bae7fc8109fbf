"""
RADIUS wire format

Packet model, authenticator helpers and the codec used by the relay
engine in active mode.
"""

from .codec import PacketCodec, RADIUSPacketCodec
from .packet import RADIUSAttribute, RADIUSPacket, VendorSpecificAttribute

__all__ = [
    "PacketCodec",
    "RADIUSPacketCodec",
    "RADIUSPacket",
    "RADIUSAttribute",
    "VendorSpecificAttribute",
]
