"""Cync relay protocol encoder/decoder.

Frame layout (all integers big-endian):

- Byte 0: ``(packet_type << 4) | flag``, flag 0x3 = request, 0x8 = response
- Bytes 1-4: payload length (uint32)
- Bytes 5..: payload

Device-command payloads add an 18-byte sub-header before the command body:

====== ====== ===========================================
Offset Size   Field
====== ====== ===========================================
0      4      switchID
4      2      sequence
7      1      0x7e
12     1      0xf8
13     1      subtype (PacketSubtype)
14     1      body length
18     n      body
====== ====== ===========================================
"""

from __future__ import annotations

from cync_hub.logging_abstraction import get_logger
from cync_hub.protocol.checksum import POWER_CHECKSUM_BASE, STATE_CHECKSUM_BASE, command_checksum
from cync_hub.protocol.exceptions import PacketDecodeError
from cync_hub.protocol.messages import (
    AuthResponse,
    ConnectionMessage,
    HubMessage,
    MeshStateRecord,
    PingMessage,
    StatusMessage,
    SyncMessage,
)
from cync_hub.protocol.packet_types import (
    FLAG_REQUEST,
    FLAG_RESPONSE,
    SEQUENCED_TYPES,
    CyncPacket,
    PacketSubtype,
    PacketType,
)

PACKET_HEADER_LENGTH = 5
DEVICE_HEADER_LENGTH = 18
SUBTYPE_OFFSET = 13
STATUS_ACK_LENGTH = 7
MIN_STATUS_LENGTH = 6

AUTH_PREFIX = 0x03
AUTH_SUFFIX = 0xB4
FRAME_MARKER = 0x7E
DEVICE_MARKER = 0xF8

SYNC_RECORDS_OFFSET = 7
SYNC_RECORD_LENGTH = 19
PAGINATED_RECORDS_OFFSET = 22
PAGINATED_RECORD_LENGTH = 24
MIN_STATUS_RECORDS_LENGTH = 25
GET_RECORD_LENGTH = 29

STATUS_QUERY_BODY = bytes([0xFF, 0xFF, 0x00, 0x00, 0x56, FRAME_MARKER])

logger = get_logger(__name__)


def _power_body(mesh_id: int, on: bool) -> bytes:
    body = bytearray(13)
    body[3:5] = mesh_id.to_bytes(2, "big")
    body[5] = PacketSubtype.SET_ON
    body[8] = int(on)
    body[11] = command_checksum(POWER_CHECKSUM_BASE, mesh_id, [int(on)])
    body[12] = FRAME_MARKER
    return bytes(body)


def _state_body(
    mesh_id: int,
    on: bool,
    brightness: int,
    color_temp: int,
    rgb: tuple[int, int, int],
) -> bytes:
    red, green, blue = rgb
    fields = [int(on), brightness, color_temp, red, green, blue]
    body = bytearray(16)
    body[3:5] = mesh_id.to_bytes(2, "big")
    body[5] = PacketSubtype.SET_STATE
    body[8:14] = bytes(fields)
    body[14] = command_checksum(STATE_CHECKSUM_BASE, mesh_id, fields)
    body[15] = FRAME_MARKER
    return bytes(body)


class CyncProtocol:
    """Cync relay protocol encoder/decoder.

    All methods are static; the only protocol state (the sequence counter)
    lives in the connection manager.
    """

    @staticmethod
    def encode_header(packet_type: int, length: int, is_response: bool = False) -> bytes:
        """Encode the 5-byte frame header.

        Example:
            >>> CyncProtocol.encode_header(PacketType.AUTH, 16).hex()
            '1300000010'
            >>> CyncProtocol.encode_header(PacketType.STATUS, 7, is_response=True).hex()
            '7800000007'

        """
        flag = FLAG_RESPONSE if is_response else FLAG_REQUEST
        return bytes([((packet_type & 0x0F) << 4) | flag]) + length.to_bytes(4, "big")

    @staticmethod
    def parse_header(data: bytes) -> tuple[int, bool, int]:
        """Parse a 5-byte header into (packet_type, is_response, length).

        Raises:
            PacketDecodeError: If fewer than 5 bytes are given

        Example:
            >>> CyncProtocol.parse_header(bytes.fromhex("7800000019"))
            (7, True, 25)

        """
        if len(data) < PACKET_HEADER_LENGTH:
            raise PacketDecodeError("header_too_short", data)
        packet_type = data[0] >> 4
        is_response = (data[0] & FLAG_RESPONSE) != 0
        length = int.from_bytes(data[1:PACKET_HEADER_LENGTH], "big")
        return packet_type, is_response, length

    @staticmethod
    def _sequence_of(packet_type: int, payload: bytes) -> int | None:
        if packet_type in SEQUENCED_TYPES and len(payload) >= 6:
            return int.from_bytes(payload[4:6], "big")
        return None

    @staticmethod
    def _subtype_of(packet_type: int, payload: bytes) -> int | None:
        if packet_type == PacketType.STATUS and len(payload) > SUBTYPE_OFFSET:
            return payload[SUBTYPE_OFFSET]
        return None

    @staticmethod
    def encode_packet(packet_type: int, payload: bytes = b"", is_response: bool = False) -> CyncPacket:
        """Frame ``payload`` as a packet of ``packet_type``.

        A zero-length payload still gets the full 5-byte header with a zero length field.
        """
        payload = bytes(payload)
        raw = CyncProtocol.encode_header(packet_type, len(payload), is_response) + payload
        return CyncPacket(
            packet_type=packet_type,
            is_response=is_response,
            length=len(payload),
            payload=payload,
            raw=raw,
            sequence=CyncProtocol._sequence_of(packet_type, payload),
            subtype=CyncProtocol._subtype_of(packet_type, payload),
        )

    @staticmethod
    def decode_packet(data: bytes) -> CyncPacket | None:
        """Decode one frame from the start of ``data``.

        Returns:
            The packet, or None when ``data`` does not yet hold the whole frame
            (the caller keeps the bytes and retries after the next read)

        """
        if len(data) < PACKET_HEADER_LENGTH:
            return None
        packet_type, is_response, length = CyncProtocol.parse_header(data)
        end = PACKET_HEADER_LENGTH + length
        if len(data) < end:
            logger.debug(
                "Incomplete frame: have %d of %d bytes",
                len(data),
                end,
                extra={"packet_type": packet_type, "declared_length": length},
            )
            return None
        payload = bytes(data[PACKET_HEADER_LENGTH:end])
        return CyncPacket(
            packet_type=packet_type,
            is_response=is_response,
            length=length,
            payload=payload,
            raw=bytes(data[:end]),
            sequence=CyncProtocol._sequence_of(packet_type, payload),
            subtype=CyncProtocol._subtype_of(packet_type, payload),
        )

    @staticmethod
    def encode_auth(user_id: int, authorize: str) -> CyncPacket:
        """Encode the login frame sent right after the socket opens.

        Payload: ``03 | user_id:4 | 00 | len:1 | authorize | 00 00 | b4``

        Raises:
            ValueError: If the authorize token does not fit the 1-byte length field

        """
        token = authorize.encode("ascii")
        if len(token) > 0xFF:
            msg = f"authorize token too long ({len(token)} bytes)"
            raise ValueError(msg)
        payload = bytearray(len(token) + 10)
        payload[0] = AUTH_PREFIX
        payload[1:5] = user_id.to_bytes(4, "big")
        payload[6] = len(token)
        payload[7 : 7 + len(token)] = token
        payload[len(token) + 9] = AUTH_SUFFIX
        return CyncProtocol.encode_packet(PacketType.AUTH, bytes(payload))

    @staticmethod
    def encode_device_packet(
        packet_type: int,
        subtype: int,
        switch_id: int,
        sequence: int,
        body: bytes,
        is_response: bool = False,
    ) -> CyncPacket:
        """Wrap a command body in the 18-byte device sub-header."""
        header = bytearray(DEVICE_HEADER_LENGTH)
        header[0:4] = switch_id.to_bytes(4, "big")
        header[4:6] = sequence.to_bytes(2, "big")
        header[7] = FRAME_MARKER
        header[12] = DEVICE_MARKER
        header[SUBTYPE_OFFSET] = subtype
        header[14] = len(body)
        return CyncProtocol.encode_packet(packet_type, bytes(header) + body, is_response)

    @staticmethod
    def encode_power_command(switch_id: int, sequence: int, mesh_id: int, on: bool) -> CyncPacket:
        """On/off-only command (subtype SET_ON, checksum base 429)."""
        return CyncProtocol.encode_device_packet(
            PacketType.STATUS,
            PacketSubtype.SET_ON,
            switch_id,
            sequence,
            _power_body(mesh_id, on),
        )

    @staticmethod
    def encode_state_command(
        switch_id: int,
        sequence: int,
        mesh_id: int,
        on: bool,
        brightness: int,
        color_temp: int,
        rgb: tuple[int, int, int],
    ) -> CyncPacket:
        """Full-state command (subtype SET_STATE, checksum base 496)."""
        return CyncProtocol.encode_device_packet(
            PacketType.STATUS,
            PacketSubtype.SET_STATE,
            switch_id,
            sequence,
            _state_body(mesh_id, on, brightness, color_temp, rgb),
        )

    @staticmethod
    def encode_status_query(switch_id: int, sequence: int) -> CyncPacket:
        """Ask the relay for a paginated status dump of everything behind ``switch_id``."""
        return CyncProtocol.encode_device_packet(
            PacketType.STATUS,
            PacketSubtype.PAGINATED,
            switch_id,
            sequence,
            STATUS_QUERY_BODY,
        )

    @staticmethod
    def encode_connection_query(switch_id: int, sequence: int) -> CyncPacket:
        payload = switch_id.to_bytes(4, "big") + sequence.to_bytes(2, "big") + b"\x00"
        return CyncProtocol.encode_packet(PacketType.CONNECTION, payload)

    @staticmethod
    def encode_status_ack(payload: bytes) -> CyncPacket:
        """Response-flagged Status frame echoing the first 7 bytes of ``payload``."""
        return CyncProtocol.encode_packet(PacketType.STATUS, payload[:STATUS_ACK_LENGTH], is_response=True)

    @staticmethod
    def encode_ping() -> CyncPacket:
        return CyncProtocol.encode_packet(PacketType.PING)

    @staticmethod
    def parse_message(packet: CyncPacket) -> HubMessage | None:
        """Decode a framed packet into its typed message.

        Returns:
            The typed message, or None for packet types this client does not handle

        Raises:
            PacketDecodeError: If a known packet type carries a payload too short
                for its fixed fields

        """
        payload = packet.payload
        match packet.packet_type:
            case PacketType.AUTH:
                if len(payload) < 2:
                    raise PacketDecodeError("auth_too_short", payload)
                return AuthResponse(code=int.from_bytes(payload[0:2], "big"))
            case PacketType.SYNC:
                return SyncMessage(records=CyncProtocol.parse_sync_records(payload))
            case PacketType.STATUS:
                return CyncProtocol._parse_status(packet)
            case PacketType.CONNECTION:
                if len(payload) < 4:
                    raise PacketDecodeError("connection_too_short", payload)
                return ConnectionMessage(switch_id=int.from_bytes(payload[0:4], "big"))
            case PacketType.PING:
                return PingMessage(is_response=packet.is_response)
            case _:
                return None

    @staticmethod
    def _parse_status(packet: CyncPacket) -> StatusMessage:
        payload = packet.payload
        if len(payload) < MIN_STATUS_LENGTH:
            raise PacketDecodeError("status_too_short", payload)

        records: list[MeshStateRecord] = []
        subtype: int | None = None
        if len(payload) >= MIN_STATUS_RECORDS_LENGTH:
            subtype = payload[SUBTYPE_OFFSET]
            if subtype == PacketSubtype.PAGINATED:
                records = CyncProtocol.parse_paginated_records(payload)
            elif subtype == PacketSubtype.GET and len(payload) >= GET_RECORD_LENGTH:
                records = [CyncProtocol.parse_get_record(payload)]

        return StatusMessage(
            switch_id=int.from_bytes(payload[0:4], "big"),
            response_id=int.from_bytes(payload[4:6], "big"),
            is_response=packet.is_response,
            ack_bytes=payload[:STATUS_ACK_LENGTH],
            subtype=subtype,
            records=records,
        )

    @staticmethod
    def parse_sync_records(payload: bytes) -> list[MeshStateRecord]:
        """19-byte records from offset 7: meshID@3, on@4, brightness@5, colorTemp@6."""
        records: list[MeshStateRecord] = []
        offset = SYNC_RECORDS_OFFSET
        while len(payload) - offset >= SYNC_RECORD_LENGTH:
            record = payload[offset : offset + SYNC_RECORD_LENGTH]
            on = record[4] > 0
            records.append(
                MeshStateRecord(
                    mesh_id=record[3],
                    on=on,
                    brightness=record[5] if on else 0,
                    color_temp=record[6],
                ),
            )
            offset += SYNC_RECORD_LENGTH
        return records

    @staticmethod
    def parse_paginated_records(payload: bytes) -> list[MeshStateRecord]:
        """24-byte records from offset 22: meshID@0, on@8, brightness@12, colorTemp@16, rgb@20-22."""
        records: list[MeshStateRecord] = []
        offset = PAGINATED_RECORDS_OFFSET
        while len(payload) - offset >= PAGINATED_RECORD_LENGTH:
            record = payload[offset : offset + PAGINATED_RECORD_LENGTH]
            on = record[8] > 0
            records.append(
                MeshStateRecord(
                    mesh_id=record[0],
                    on=on,
                    brightness=record[12] if on else 0,
                    color_temp=record[16],
                    rgb=(record[20], record[21], record[22]),
                ),
            )
            offset += PAGINATED_RECORD_LENGTH
        return records

    @staticmethod
    def parse_get_record(payload: bytes) -> MeshStateRecord:
        """Single-bulb reply to a Get query: meshID@21, on@27, brightness@28."""
        on = payload[27] > 0
        return MeshStateRecord(mesh_id=payload[21], on=on, brightness=payload[28] if on else 0)
