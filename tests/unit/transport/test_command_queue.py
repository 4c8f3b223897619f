"""Unit tests for the outbound command queue."""

from __future__ import annotations

import pytest

from cync_hub.protocol.cync_protocol import CyncProtocol
from cync_hub.transport.command_queue import CommandQueue

P1 = CyncProtocol.encode_connection_query(0x11, 1)
P2 = CyncProtocol.encode_status_query(0x22, 2)
P3 = CyncProtocol.encode_ping()


class RecordingTransport:
    """Send function that records writes and can fail after N successes."""

    def __init__(self, fail_after: int | None = None) -> None:
        self.sent: list[bytes] = []
        self.fail_after = fail_after

    async def __call__(self, data: bytes) -> bool:
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            return False
        self.sent.append(data)
        return True


class TestCommandQueue:
    """Tests for CommandQueue ordering and retention."""

    def test_enqueue_appends(self) -> None:
        """Test enqueue grows the queue and keeps arrival order."""
        queue = CommandQueue()

        queue.enqueue(P1)
        queue.enqueue(P2)

        assert len(queue) == 2
        assert queue.peek() is P1

    def test_empty_queue_is_falsy(self) -> None:
        """Test truthiness follows length."""
        queue = CommandQueue()
        assert not queue
        queue.enqueue(P3)
        assert queue

    @pytest.mark.asyncio
    async def test_flush_in_arrival_order(self) -> None:
        """Test P1, P2, P3 queued while disconnected flush as P1, P2, P3."""
        queue = CommandQueue()
        transport = RecordingTransport()
        for packet in (P1, P2, P3):
            queue.enqueue(packet)

        sent = await queue.flush(transport)

        assert sent == 3
        assert transport.sent == [P1.raw, P2.raw, P3.raw]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_failed_write_keeps_packet_at_head(self) -> None:
        """Test a failed write stops the flush and nothing is dropped or reordered."""
        queue = CommandQueue()
        for packet in (P1, P2, P3):
            queue.enqueue(packet)

        sent = await queue.flush(RecordingTransport(fail_after=1))

        assert sent == 1
        assert len(queue) == 2
        assert queue.peek() is P2

        retry = RecordingTransport()
        assert await queue.flush(retry) == 2
        assert retry.sent == [P2.raw, P3.raw]

    @pytest.mark.asyncio
    async def test_flush_picks_up_packets_enqueued_mid_flush(self) -> None:
        """Test packets enqueued while a write is in flight go out in the same flush."""
        queue = CommandQueue()
        sent: list[bytes] = []

        async def send(data: bytes) -> bool:
            sent.append(data)
            if data == P1.raw:
                queue.enqueue(P3)
            return True

        queue.enqueue(P1)
        queue.enqueue(P2)

        assert await queue.flush(send) == 3
        assert sent == [P1.raw, P2.raw, P3.raw]

    @pytest.mark.asyncio
    async def test_flush_empty_queue(self) -> None:
        """Test flushing nothing is a no-op."""
        transport = RecordingTransport()

        assert await CommandQueue().flush(transport) == 0
        assert transport.sent == []

    def test_clear(self) -> None:
        """Test clear drops everything and reports the count."""
        queue = CommandQueue()
        queue.enqueue(P1)
        queue.enqueue(P2)

        assert queue.clear() == 2
        assert len(queue) == 0
        assert queue.peek() is None
