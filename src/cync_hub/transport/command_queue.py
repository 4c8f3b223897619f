"""Outbound command queue."""

from __future__ import annotations

from collections import deque
from collections.abc import Awaitable, Callable

from cync_hub.logging_abstraction import get_logger
from cync_hub.metrics import registry
from cync_hub.protocol.packet_types import CyncPacket

logger = get_logger(__name__)

SendFunc = Callable[[bytes], Awaitable[bool]]


class CommandQueue:
    """FIFO of framed packets waiting for the relay session.

    Entries are never dropped or reordered. A packet leaves the queue only
    once the transport has accepted its bytes, so a write that fails mid-flush
    is retried first after the next reconnect. The queue is unbounded: a long
    outage grows it by one ping every few minutes plus whatever commands the
    user issues.
    """

    def __init__(self) -> None:
        self._entries: deque[CyncPacket] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def enqueue(self, packet: CyncPacket) -> None:
        self._entries.append(packet)
        registry.record_queue_depth(len(self._entries))
        logger.debug(
            "Queued %s packet (seq=%s), depth=%d",
            packet.type_name,
            packet.sequence,
            len(self._entries),
            extra={"packet_type": packet.type_name, "queue_depth": len(self._entries)},
        )

    def peek(self) -> CyncPacket | None:
        return self._entries[0] if self._entries else None

    async def flush(self, send: SendFunc) -> int:
        """Send queued packets in arrival order until empty or a write fails.

        Packets enqueued while a flush is awaiting the transport are picked up
        by the same flush.

        Args:
            send: Coroutine writing raw bytes, returning False on transport failure

        Returns:
            Number of packets written

        """
        sent = 0
        while self._entries:
            packet = self._entries[0]
            if not await send(packet.raw):
                registry.record_packet_sent(packet.type_name, "failed")
                logger.warning(
                    "Flush stopped: write failed with %d packets still queued",
                    len(self._entries),
                    extra={"packet_type": packet.type_name, "queue_depth": len(self._entries)},
                )
                break
            self._entries.popleft()
            sent += 1
            registry.record_packet_sent(packet.type_name, "sent")
        registry.record_queue_depth(len(self._entries))
        return sent

    def clear(self) -> int:
        """Drop every queued packet and return how many there were."""
        dropped = len(self._entries)
        self._entries.clear()
        registry.record_queue_depth(0)
        return dropped
