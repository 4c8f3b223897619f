"""Cync relay wire protocol: packet types, codec, framing."""

from .cync_protocol import CyncProtocol
from .exceptions import CyncProtocolError, PacketDecodeError
from .messages import (
    AuthResponse,
    ConnectionMessage,
    HubMessage,
    MeshStateRecord,
    PingMessage,
    StatusMessage,
    SyncMessage,
)
from .packet_framer import PacketFramer
from .packet_types import CyncPacket, PacketSubtype, PacketType

__all__ = [
    "AuthResponse",
    "ConnectionMessage",
    "CyncPacket",
    "CyncProtocol",
    "CyncProtocolError",
    "HubMessage",
    "MeshStateRecord",
    "PacketDecodeError",
    "PacketFramer",
    "PacketSubtype",
    "PacketType",
    "PingMessage",
    "StatusMessage",
    "SyncMessage",
]
