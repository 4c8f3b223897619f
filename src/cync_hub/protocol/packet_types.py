"""Packet type definitions for the Cync relay protocol.

Every frame starts with one byte packing a 4-bit packet type (high nibble)
with a 4-bit flag (low nibble), followed by a 4-byte big-endian payload length.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

# Low-nibble flags of the header byte
FLAG_REQUEST = 0x3
FLAG_RESPONSE = 0x8


class PacketType(IntEnum):
    """High nibble of the header byte."""

    AUTH = 0x1
    SYNC = 0x4
    STATUS = 0x7
    CONNECTION = 0xA
    PING = 0xD


class PacketSubtype(IntEnum):
    """Byte 13 of a device-command payload."""

    SET_ON = 0xD0
    SET_STATE = 0xF0
    GET = 0xDB
    PAGINATED = 0x52


# Packet types whose payload embeds a sequence number at bytes 4-5
SEQUENCED_TYPES = frozenset({PacketType.SYNC, PacketType.STATUS, PacketType.CONNECTION})


@dataclass
class CyncPacket:
    """One framed packet, inbound or outbound.

    Attributes:
        packet_type: Decoded high nibble of the header byte (PacketType when known)
        is_response: True when the response flag (0x8) is set
        length: Payload length declared in the header
        payload: Payload bytes (without the 5-byte header)
        raw: Complete wire bytes (header + payload)
        sequence: Correlation counter from payload bytes 4-5, sequenced types only
        subtype: Payload byte 13 for device-command frames

    """

    packet_type: int
    is_response: bool
    length: int
    payload: bytes
    raw: bytes = field(repr=False)
    sequence: int | None = None
    subtype: int | None = None

    @property
    def type_name(self) -> str:
        """Human/metrics friendly name of the packet type."""
        try:
            return PacketType(self.packet_type).name.lower()
        except ValueError:
            return f"unknown_0x{self.packet_type:x}"
