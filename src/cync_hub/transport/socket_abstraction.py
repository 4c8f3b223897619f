"""Asyncio TCP socket wrapper for the relay session."""

from __future__ import annotations

import asyncio
import time

from cync_hub.logging_abstraction import get_logger

logger = get_logger(__name__)


class TCPConnection:
    """One TCP connection to the relay.

    ``connect``/``send`` report failure by returning False and ``recv`` by
    returning None; the connection manager turns those into reconnects.
    Reads block until data arrives, since the relay can stay silent for
    minutes between pings.
    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 10.0,
        write_timeout: float = 5.0,
        max_read_size: int = 65536,
    ):
        """
        Initialize TCP connection parameters.

        Args:
            host: Relay host
            port: Relay port
            connect_timeout: Connection timeout in seconds
            write_timeout: Timeout for draining a write, in seconds
            max_read_size: Maximum bytes to read in one operation
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.write_timeout = write_timeout
        self.max_read_size = max_read_size
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self._connected = False

    def _ctx(self, **extra: object) -> dict[str, object]:
        return {"host": self.host, "port": self.port, **extra}

    async def connect(self) -> bool:
        """
        Open the socket.

        Returns:
            True if connected, False on timeout or OS error
        """
        start_time = time.perf_counter()
        logger.info("→ Connecting to %s:%d", self.host, self.port, extra=self._ctx(timeout=self.connect_timeout))
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except TimeoutError:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Connection to %s:%d timed out after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra=self._ctx(elapsed_ms=elapsed_ms, error="timeout"),
            )
            return False
        except OSError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Connection to %s:%d failed after %.1fms: %s",
                self.host,
                self.port,
                elapsed_ms,
                e,
                extra=self._ctx(elapsed_ms=elapsed_ms, error=str(e)),
            )
            return False

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._connected = True
        logger.info(
            "✓ Connected to %s:%d in %.1fms",
            self.host,
            self.port,
            elapsed_ms,
            extra=self._ctx(elapsed_ms=elapsed_ms),
        )
        return True

    async def send(self, data: bytes) -> bool:
        """
        Write ``data`` and wait for the transport buffer to drain.

        Returns:
            True if written, False if not connected, timed out or the socket failed
        """
        if not self._connected or not self.writer:
            logger.warning("Cannot send: not connected", extra=self._ctx(bytes=len(data)))
            return False

        try:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.write_timeout)
        except TimeoutError:
            logger.error("Send to %s:%d timed out", self.host, self.port, extra=self._ctx(bytes=len(data)))
            self._connected = False
            return False
        except OSError as e:
            logger.error(
                "Send to %s:%d failed: %s",
                self.host,
                self.port,
                e,
                extra=self._ctx(bytes=len(data), error=str(e)),
            )
            self._connected = False
            return False

        logger.debug("Sent %d bytes: %s", len(data), data.hex(" "), extra=self._ctx())
        return True

    async def recv(self) -> bytes | None:
        """
        Wait for the next chunk of bytes.

        Returns:
            Received bytes, or None at end-of-stream or on socket error
        """
        if not self._connected or not self.reader:
            logger.warning("Cannot receive: not connected", extra=self._ctx())
            return None

        try:
            data = await self.reader.read(self.max_read_size)
        except OSError as e:
            logger.error("Receive from %s:%d failed: %s", self.host, self.port, e, extra=self._ctx(error=str(e)))
            self._connected = False
            return None

        if not data:
            logger.warning("Connection closed by %s:%d", self.host, self.port, extra=self._ctx())
            self._connected = False
            return None

        logger.debug("Received %d bytes: %s", len(data), data.hex(" "), extra=self._ctx())
        return data

    async def close(self) -> None:
        """Close the socket; errors during close are logged, never raised."""
        if self.writer:
            logger.debug("Closing connection to %s:%d", self.host, self.port, extra=self._ctx())
            try:
                self.writer.close()
                await self.writer.wait_closed()
            except (OSError, RuntimeError) as e:
                logger.warning(
                    "Error closing connection: %s",
                    e,
                    extra=self._ctx(error=str(e), error_type=type(e).__name__),
                )
            finally:
                self._connected = False
                self.writer = None
                self.reader = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"TCPConnection({self.host}:{self.port}, {status})"
