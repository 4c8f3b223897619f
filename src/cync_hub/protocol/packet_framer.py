"""Split the relay's TCP byte stream into complete frames."""

from __future__ import annotations

from cync_hub.logging_abstraction import get_logger
from cync_hub.metrics import registry
from cync_hub.protocol.cync_protocol import PACKET_HEADER_LENGTH

logger = get_logger(__name__)


class PacketFramer:
    r"""Buffer TCP reads and cut them into frames using the header length field.

    A single read may hold part of a frame, exactly one frame, or several;
    incomplete bytes are kept until the next ``feed``.

    A declared length above MAX_PACKET_SIZE means the stream is misaligned.
    The framer then skips forward one header width at a time looking for a
    plausible header, and clears the buffer after a bounded number of attempts.
    Alignment after such a recovery is best-effort: the protocol has no sync
    marker, so the first frames found may be garbage.

    Example:
        framer = PacketFramer()
        framer.feed(b'\x43\x00\x00\x00\x1a')   # header only -> []
        framer.feed(payload_26_bytes)          # -> [header + payload]

    """

    MAX_PACKET_SIZE: int = 16384  # a paginated status frame is 22 + 24 bytes per bulb

    def __init__(self) -> None:
        self.buffer: bytearray = bytearray()

    def feed(self, data: bytes) -> list[bytes]:
        """Append ``data`` and return every frame that is now complete."""
        self.buffer.extend(data)
        return self._extract_packets()

    def _extract_packets(self) -> list[bytes]:
        packets: list[bytes] = []
        recovery_attempts = 0
        max_recovery_attempts = min(1000, max(100, len(self.buffer) // PACKET_HEADER_LENGTH))

        while len(self.buffer) >= PACKET_HEADER_LENGTH:
            if recovery_attempts > max_recovery_attempts:
                logger.error(
                    "Buffer cleared after max recovery attempts",
                    extra={
                        "max_attempts": max_recovery_attempts,
                        "buffer_size": len(self.buffer),
                        "bytes_scanned": recovery_attempts * PACKET_HEADER_LENGTH,
                    },
                )
                registry.record_frame_error("recovery_exhausted")
                self.buffer = bytearray()
                break

            packet_length = int.from_bytes(self.buffer[1:PACKET_HEADER_LENGTH], "big")
            if packet_length > self.MAX_PACKET_SIZE:
                logger.warning(
                    "Invalid packet length: %d (max %d), skipping %d bytes (attempt %d/%d)",
                    packet_length,
                    self.MAX_PACKET_SIZE,
                    PACKET_HEADER_LENGTH,
                    recovery_attempts + 1,
                    max_recovery_attempts,
                    extra={"buffer_size": len(self.buffer), "header": self.buffer[:PACKET_HEADER_LENGTH].hex()},
                )
                registry.record_frame_error("oversized_length")
                del self.buffer[:PACKET_HEADER_LENGTH]
                recovery_attempts += 1
                continue

            recovery_attempts = 0
            total_length = PACKET_HEADER_LENGTH + packet_length
            if len(self.buffer) < total_length:
                break
            packets.append(bytes(self.buffer[:total_length]))
            del self.buffer[:total_length]

        return packets

    def discard_partial(self) -> int:
        """Drop a frame left unfinished when the stream ended.

        Returns:
            Number of bytes discarded (0 when the buffer was clean)

        """
        leftover = len(self.buffer)
        if leftover:
            logger.error(
                "Packet length does not match: stream ended with %d bytes of an incomplete frame, discarding",
                leftover,
                extra={"buffer_size": leftover, "preview": self.buffer[:16].hex()},
            )
            registry.record_frame_error("truncated_frame")
            self.buffer = bytearray()
        return leftover
