"""Relay session state machine: connect, authenticate, queue, keep alive, reconnect.

Everything here runs on one asyncio event loop. Suspension points are the
socket (connect, write, read) and timers, so no locks are needed: state is
only ever mutated between awaits.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable
from enum import Enum

from cync_hub.cloud_api import CredentialsProvider
from cync_hub.const import (
    CYNC_CONNECT_TIMEOUT,
    CYNC_CONNECTION_CHECK_INTERVAL,
    CYNC_IO_TIMEOUT,
    CYNC_PING_INTERVAL,
    CYNC_RECONNECT_SPACING,
    CYNC_RELAY_HOST,
    CYNC_RELAY_PORT,
    MAX_SEQUENCE,
)
from cync_hub.correlation import correlation_context
from cync_hub.logging_abstraction import get_logger
from cync_hub.metrics import registry
from cync_hub.protocol.cync_protocol import CyncProtocol
from cync_hub.protocol.exceptions import CyncProtocolError
from cync_hub.protocol.messages import AuthResponse
from cync_hub.protocol.packet_framer import PacketFramer
from cync_hub.protocol.packet_types import CyncPacket, PacketType
from cync_hub.transport.command_queue import CommandQueue
from cync_hub.transport.exceptions import AuthenticationError, CyncConnectionError
from cync_hub.transport.retry_policy import ReconnectPolicy
from cync_hub.transport.socket_abstraction import TCPConnection

logger = get_logger(__name__)

PacketHandler = Callable[[CyncPacket], None]
ConnectionFactory = Callable[[str, int], TCPConnection]


class ConnectionState(Enum):
    """Connection state enumeration."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"


class ConnectionManager:
    """Owns the single relay socket, the outbound queue and the session timers.

    State flow::

        DISCONNECTED --connect()--> CONNECTING --socket open, auth sent--> AUTHENTICATING
        AUTHENTICATING --auth code 0--> CONNECTED (queue flushed)
        AUTHENTICATING --auth code != 0--> DISCONNECTED (terminal, no reconnect)
        CONNECTING/AUTHENTICATING/CONNECTED --socket closed--> DISCONNECTED, reconnect scheduled

    Outbound packets always go through the queue. ``send_packet`` never waits
    for the wire: it enqueues and, when connected, makes sure a flush task is
    draining the queue. Inbound frames are handed to ``packet_handler`` (the
    dispatcher), which routes Auth replies back to ``handle_auth_response``.
    """

    lp: str = "ConnectionManager"

    def __init__(
        self,
        credentials: CredentialsProvider,
        host: str = CYNC_RELAY_HOST,
        port: int = CYNC_RELAY_PORT,
        *,
        packet_handler: PacketHandler | None = None,
        reconnect_policy: ReconnectPolicy | None = None,
        connection_factory: ConnectionFactory | None = None,
        ping_interval: float = CYNC_PING_INTERVAL,
        connection_check_interval: float = CYNC_CONNECTION_CHECK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize connection manager.

        Args:
            credentials: Supplies user ID and authorize token on every connect
            host: Relay host
            port: Relay port
            packet_handler: Callback for every inbound frame (defaults to handling Auth replies only)
            reconnect_policy: Reconnect timing (defaults to 10s minimum spacing)
            connection_factory: Builds the TCPConnection for each attempt
            ping_interval: Seconds between keep-alive pings
            connection_check_interval: Seconds between per-device connection queries
            clock: Monotonic time source

        """
        self.credentials: CredentialsProvider = credentials
        self.host: str = host
        self.port: int = port
        self.packet_handler: PacketHandler = packet_handler or self._handle_auth_only
        self.reconnect_policy: ReconnectPolicy = reconnect_policy or ReconnectPolicy(
            min_spacing_seconds=CYNC_RECONNECT_SPACING,
        )
        self._connection_factory: ConnectionFactory = connection_factory or (
            lambda h, p: TCPConnection(h, p, connect_timeout=CYNC_CONNECT_TIMEOUT, write_timeout=CYNC_IO_TIMEOUT)
        )
        self.ping_interval: float = ping_interval
        self.connection_check_interval: float = connection_check_interval
        self._clock: Callable[[], float] = clock

        self.state: ConnectionState = ConnectionState.DISCONNECTED
        self.conn: TCPConnection | None = None
        self.queue: CommandQueue = CommandQueue()
        self.framer: PacketFramer = PacketFramer()

        self.reader_task: asyncio.Task[None] | None = None
        self.flush_task: asyncio.Task[None] | None = None
        self.reconnect_task: asyncio.Task[None] | None = None
        self.ping_task: asyncio.Task[None] | None = None
        self.teardown_task: asyncio.Task[None] | None = None
        self.liveness_tasks: dict[int, asyncio.Task[None]] = {}
        self._watched_switches: dict[int, int] = {}

        self.connected_at: float | None = None
        self.failed_attempts: int = 0
        self.last_reconnect_delay: float | None = None
        self.auth_error: AuthenticationError | None = None
        self._session_authenticated: bool = False
        self._stopped: bool = False
        self._attempt: int = 0
        self._sequence: int = 0

    def _set_state(self, state: ConnectionState) -> None:
        if state != self.state:
            logger.debug("%s %s -> %s", self.lp, self.state.value, state.value)
        self.state = state
        registry.record_connection_state(state.value)

    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def next_sequence(self) -> int:
        """Return the next 16-bit sequence number, wrapping 0xFFFF -> 0."""
        seq = self._sequence
        self._sequence = (self._sequence + 1) & MAX_SEQUENCE
        return seq

    async def connect(self) -> bool:
        """Open the relay socket and send the login frame.

        No-op (returns False) unless the session is DISCONNECTED, so overlapping
        reconnect attempts cannot open a second socket.

        Each call is one attempt; a ``disconnect()`` while it is suspended
        supersedes it, and it then returns False without touching the newer
        session or socket.

        Returns:
            True if the socket opened and the auth frame was written. The session
            becomes CONNECTED later, when the relay's auth reply arrives.

        Raises:
            CyncConnectionError: If the credentials provider fails or returns unusable credentials

        """
        lp = f"{self.lp}:connect:"
        if self.state != ConnectionState.DISCONNECTED:
            logger.debug("%s Ignored, session is %s", lp, self.state.value)
            return False

        self._stopped = False
        self.auth_error = None
        self._attempt += 1
        attempt = self._attempt
        self._cancel_pending_reconnect()
        self._set_state(ConnectionState.CONNECTING)
        self._start_timers()

        try:
            creds = await self.credentials.get_credentials()
            auth_packet = CyncProtocol.encode_auth(creds.user_id, creds.authorize)
        except Exception as e:
            if attempt != self._attempt:
                logger.debug("%s Superseded attempt failed to get credentials: %s", lp, e)
                return False
            # Credentials come from an external collaborator; any failure ends this attempt
            self._set_state(ConnectionState.DISCONNECTED)
            logger.exception("%s Could not obtain relay credentials", lp)
            msg = f"credentials unavailable: {e}"
            raise CyncConnectionError(msg, state=self.state.value) from e
        if attempt != self._attempt:
            logger.debug("%s Superseded while waiting for credentials", lp)
            return False

        await self._release_connection()
        if attempt != self._attempt:
            return False
        conn = self._connection_factory(self.host, self.port)
        opened = await conn.connect()
        if attempt != self._attempt:
            # disconnect() (and maybe a newer connect()) ran while the socket was opening
            await conn.close()
            return False
        if not opened:
            await conn.close()
            self._set_state(ConnectionState.DISCONNECTED)
            self._schedule_reconnect("connect_failed", self._failure_delay())
            return False

        self.conn = conn
        self.framer = PacketFramer()
        self._session_authenticated = False
        self._set_state(ConnectionState.AUTHENTICATING)
        logger.info("%s → Sending login frame", lp, extra={"host": self.host, "port": self.port})
        written = await conn.send(auth_packet.raw)
        if attempt != self._attempt:
            # disconnect() released this socket while the login frame was in flight
            return False
        if not written:
            registry.record_packet_sent(auth_packet.type_name, "failed")
            await self._on_stream_end(conn, "auth_write_failed")
            return False
        registry.record_packet_sent(auth_packet.type_name, "sent")
        self.reader_task = asyncio.create_task(self._read_loop(conn), name="cync_hub:relay_reader")
        return True

    async def disconnect(self) -> None:
        """Close the session for good: stop timers, close the socket, never reconnect.

        Queued packets are kept and go out if ``connect()`` is called again.
        """
        logger.info("%s:disconnect: Disconnecting...", self.lp)
        self._stopped = True
        self._attempt += 1
        reconnect = self.reconnect_task
        self._cancel_pending_reconnect()
        if reconnect is not None and reconnect is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await reconnect
        await self._stop_timers()
        await self._release_connection()
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("%s:disconnect: Disconnect complete", self.lp)

    def send_packet(self, packet: CyncPacket) -> None:
        """Enqueue ``packet`` and flush if the session is connected."""
        self.queue.enqueue(packet)
        if self.state == ConnectionState.CONNECTED:
            self._schedule_flush()

    def handle_auth_response(self, response: AuthResponse) -> None:
        lp = f"{self.lp}:auth:"
        if self.state != ConnectionState.AUTHENTICATING:
            logger.warning("%s Unexpected auth reply while %s, ignoring", lp, self.state.value)
            return

        if response.accepted:
            self.connected_at = self._clock()
            self._session_authenticated = True
            self.failed_attempts = 0
            self._set_state(ConnectionState.CONNECTED)
            registry.record_auth("accepted")
            logger.info("%s ✓ Relay accepted login, flushing %d queued packets", lp, len(self.queue))
            self._schedule_flush()
            return

        self.auth_error = AuthenticationError("rejected_by_relay", response.code)
        registry.record_auth("rejected")
        logger.error(
            "%s ✗ Server authentication failed (code %d), not reconnecting until connect() is called again",
            lp,
            response.code,
            extra={"code": response.code},
        )
        self._set_state(ConnectionState.DISCONNECTED)

    def watch_device(self, device_id: int, switch_id: int) -> None:
        """Start the periodic connection query for a registered device.

        The first query goes out now, or on the next ``connect()`` after ``disconnect()``.
        """
        self._watched_switches[device_id] = switch_id
        if not self._stopped:
            self._start_liveness(device_id)

    def unwatch_device(self, device_id: int) -> None:
        self._watched_switches.pop(device_id, None)
        task = self.liveness_tasks.pop(device_id, None)
        if task and not task.done():
            _ = task.cancel()

    def _handle_auth_only(self, packet: CyncPacket) -> None:
        if packet.packet_type == PacketType.AUTH:
            message = CyncProtocol.parse_message(packet)
            if isinstance(message, AuthResponse):
                self.handle_auth_response(message)

    def _handle_frame(self, frame: bytes) -> None:
        packet = CyncProtocol.decode_packet(frame)
        if packet is None:
            # The framer only yields complete frames
            logger.error("%s Framer yielded an incomplete frame: %s", self.lp, frame.hex(" "))
            registry.record_frame_error("incomplete_frame")
            return
        registry.record_packet_recv(packet.type_name)
        with correlation_context(prefix="rx"):
            try:
                self.packet_handler(packet)
            except CyncProtocolError as e:
                logger.warning(
                    "%s Skipping malformed %s frame: %s",
                    self.lp,
                    packet.type_name,
                    e,
                    extra={"packet_type": packet.type_name, "length": packet.length},
                )
                registry.record_frame_error("malformed_payload")
            except Exception as e:
                # Listener errors end this frame only
                logger.exception(
                    "%s Unexpected error handling %s frame",
                    self.lp,
                    packet.type_name,
                    extra={"error": str(e), "error_type": type(e).__name__},
                )
                registry.record_frame_error("handler_failed")

    async def _read_loop(self, conn: TCPConnection) -> None:
        try:
            while True:
                data = await conn.recv()
                if data is None:
                    break
                for frame in self.framer.feed(data):
                    self._handle_frame(frame)
                    if self.state == ConnectionState.DISCONNECTED:
                        break
                if self.state == ConnectionState.DISCONNECTED:
                    # Auth was rejected; stop reading this socket
                    break
        except asyncio.CancelledError:
            logger.debug("%s Reader cancelled (clean shutdown)", self.lp)
            raise
        await self._on_stream_end(conn, "auth_rejected" if self.auth_error else "stream_closed")

    async def _on_stream_end(self, conn: TCPConnection, reason: str) -> None:
        if conn is not self.conn:
            return  # already handled, or a newer socket has replaced this one
        lp = f"{self.lp}:stream_end:"
        _ = self.framer.discard_partial()
        await self._release_connection()
        self._set_state(ConnectionState.DISCONNECTED)

        if self._stopped:
            logger.debug("%s Session closed after disconnect()", lp)
            return
        if self.auth_error is not None:
            logger.warning("%s Session closed after auth rejection, not reconnecting", lp)
            return

        if self._session_authenticated and self.connected_at is not None:
            delay = self.reconnect_policy.delay_after_session(self.connected_at, self._clock())
        else:
            delay = self._failure_delay()
        logger.warning("%s Relay connection lost (%s)", lp, reason, extra={"queued": len(self.queue)})
        self._schedule_reconnect(reason, delay)

    def _failure_delay(self) -> float:
        delay = self.reconnect_policy.delay_after_failure(self.failed_attempts)
        self.failed_attempts += 1
        return delay

    def _schedule_reconnect(self, reason: str, delay: float) -> None:
        if self._stopped:
            return
        if self.reconnect_task is not None and not self.reconnect_task.done():
            logger.debug("%s Reconnection already scheduled", self.lp, extra={"reason": reason})
            return
        self.last_reconnect_delay = delay
        registry.record_reconnection(reason)
        logger.info("%s → Reconnecting in %.1fs", self.lp, delay, extra={"reason": reason, "delay": delay})
        self.reconnect_task = asyncio.create_task(self._reconnect_after(delay), name="cync_hub:reconnect")

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self.reconnect_task = None
        try:
            _ = await self.connect()
        except CyncConnectionError:
            logger.exception("%s Reconnect aborted; call connect() once credentials are available", self.lp)

    def _cancel_pending_reconnect(self) -> None:
        task = self.reconnect_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            _ = task.cancel()
        self.reconnect_task = None

    def _schedule_flush(self) -> None:
        if self.flush_task is None or self.flush_task.done():
            self.flush_task = asyncio.create_task(self._flush(), name="cync_hub:flush")

    async def _flush(self) -> None:
        conn = self.conn
        if conn is None or self.state != ConnectionState.CONNECTED:
            return
        sent = await self.queue.flush(conn.send)
        logger.debug("%s Flushed %d packets", self.lp, sent)
        if self.queue and conn is self.conn:
            # Write failed: treat like a dropped socket
            self.teardown_task = asyncio.create_task(self._on_stream_end(conn, "write_failed"))

    async def _release_connection(self) -> None:
        """Stop every task touching the current socket, then close it."""
        current = asyncio.current_task()
        for task in (self.reader_task, self.flush_task):
            if task is not None and task is not current and not task.done():
                _ = task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self.reader_task = None
        self.flush_task = None
        if self.conn is not None:
            conn, self.conn = self.conn, None
            await conn.close()

    def _start_timers(self) -> None:
        if self.ping_task is None or self.ping_task.done():
            self.ping_task = asyncio.create_task(self._ping_loop(), name="cync_hub:ping")
        for device_id in self._watched_switches:
            self._start_liveness(device_id)

    def _start_liveness(self, device_id: int) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return  # started by the next connect()
        task = self.liveness_tasks.get(device_id)
        if task is None or task.done():
            self.liveness_tasks[device_id] = asyncio.create_task(
                self._liveness_loop(self._watched_switches[device_id]),
                name=f"cync_hub:liveness:{device_id}",
            )

    async def _stop_timers(self) -> None:
        tasks = [t for t in (self.ping_task, *self.liveness_tasks.values()) if t is not None]
        for task in tasks:
            _ = task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.ping_task = None
        self.liveness_tasks.clear()

    async def _ping_loop(self) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            logger.debug("%s Queueing keep-alive ping", self.lp)
            self.send_packet(CyncProtocol.encode_ping())

    async def _liveness_loop(self, switch_id: int) -> None:
        while True:
            self.send_packet(CyncProtocol.encode_connection_query(switch_id, self.next_sequence()))
            await asyncio.sleep(self.connection_check_interval)
