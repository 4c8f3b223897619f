"""Exception hierarchy for Cync protocol and transport errors."""

from __future__ import annotations


class CyncProtocolError(Exception):
    """Base exception for all Cync hub protocol errors."""


class PacketDecodeError(CyncProtocolError):
    """A frame was complete but its payload could not be interpreted.

    Attributes:
        reason: Short machine-readable reason (e.g. "auth_too_short")
        data_preview: First 16 bytes of the offending payload
    """

    def __init__(self, reason: str, data: bytes = b""):
        self.reason = reason
        # Auth frames carry credentials; keep only a short preview
        self.data_preview = data[:16] if data else b""
        super().__init__(f"Packet decode failed: {reason}")

