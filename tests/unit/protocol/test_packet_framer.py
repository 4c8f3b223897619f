"""Unit tests for PacketFramer TCP stream framing."""

from unittest.mock import patch

from cync_hub.protocol.cync_protocol import CyncProtocol
from cync_hub.protocol.packet_framer import PacketFramer
from cync_hub.protocol.packet_types import PacketType

PACKET_HEADER_LENGTH = 5
SWITCH_ID = 0x01020304

PING = CyncProtocol.encode_ping().raw
CONNECTION_QUERY = CyncProtocol.encode_connection_query(SWITCH_ID, 1).raw
STATUS_QUERY = CyncProtocol.encode_status_query(SWITCH_ID, 2).raw


class TestPacketFramerBasic:
    """Basic PacketFramer functionality tests."""

    def test_empty_buffer_returns_empty_list(self) -> None:
        """Test that empty buffer returns no packets."""
        framer = PacketFramer()
        assert framer.feed(b"") == []
        assert len(framer.buffer) == 0

    def test_complete_packet_single_read(self) -> None:
        """Test complete packet in single read."""
        framer = PacketFramer()

        assert framer.feed(CONNECTION_QUERY) == [CONNECTION_QUERY]
        assert len(framer.buffer) == 0

    def test_zero_length_packet(self) -> None:
        """Test a header-only frame is complete at 5 bytes."""
        framer = PacketFramer()

        assert framer.feed(PING) == [PING]

    def test_partial_header_then_rest(self) -> None:
        """Test partial header is buffered until the frame completes."""
        framer = PacketFramer()

        assert framer.feed(STATUS_QUERY[:3]) == []
        assert framer.feed(STATUS_QUERY[3:PACKET_HEADER_LENGTH]) == []
        assert len(framer.buffer) == PACKET_HEADER_LENGTH
        assert framer.feed(STATUS_QUERY[PACKET_HEADER_LENGTH:]) == [STATUS_QUERY]

    def test_multiple_packets_single_read(self) -> None:
        """Test several frames in one read come out in order."""
        framer = PacketFramer()

        packets = framer.feed(PING + CONNECTION_QUERY + STATUS_QUERY)

        assert packets == [PING, CONNECTION_QUERY, STATUS_QUERY]

    def test_packet_split_across_boundary(self) -> None:
        """Test a frame straddling two reads."""
        framer = PacketFramer()
        data = CONNECTION_QUERY + STATUS_QUERY
        split = len(CONNECTION_QUERY) + 7

        assert framer.feed(data[:split]) == [CONNECTION_QUERY]
        assert framer.feed(data[split:]) == [STATUS_QUERY]

    def test_byte_by_byte(self) -> None:
        """Test feeding one byte at a time."""
        framer = PacketFramer()
        packets: list[bytes] = []

        for byte in STATUS_QUERY:
            packets.extend(framer.feed(bytes([byte])))

        assert packets == [STATUS_QUERY]


class TestPacketFramerRecovery:
    """Tests for oversized length recovery and truncation at end of stream."""

    def test_oversized_length_skips_header(self) -> None:
        """Test a bogus header is skipped and the following frame recovered."""
        framer = PacketFramer()
        bogus = bytes([PacketType.STATUS << 4 | 0x3, 0xFF, 0xFF, 0xFF, 0xFF])

        with patch("cync_hub.protocol.packet_framer.registry") as mock_registry:
            packets = framer.feed(bogus + PING)

        assert packets == [PING]
        mock_registry.record_frame_error.assert_called_with("oversized_length")

    def test_garbage_headers_are_consumed(self) -> None:
        """Test a stream of garbage headers never yields frames and drains the buffer."""
        framer = PacketFramer()
        garbage = bytes([0x73, 0xFF, 0xFF, 0xFF, 0xFF]) * 200

        with patch("cync_hub.protocol.packet_framer.registry"):
            packets = framer.feed(garbage)

        assert packets == []
        assert len(framer.buffer) < PACKET_HEADER_LENGTH

    def test_discard_partial_reports_truncated_frame(self) -> None:
        """Test leftover bytes at end of stream are dropped and counted."""
        framer = PacketFramer()
        _ = framer.feed(STATUS_QUERY[:-4])

        with patch("cync_hub.protocol.packet_framer.registry") as mock_registry:
            dropped = framer.discard_partial()

        assert dropped == len(STATUS_QUERY) - 4
        assert len(framer.buffer) == 0
        mock_registry.record_frame_error.assert_called_once_with("truncated_frame")

    def test_discard_partial_on_clean_buffer(self) -> None:
        """Test nothing is reported when the stream ended on a frame boundary."""
        framer = PacketFramer()
        _ = framer.feed(PING)

        with patch("cync_hub.protocol.packet_framer.registry") as mock_registry:
            assert framer.discard_partial() == 0

        mock_registry.record_frame_error.assert_not_called()
