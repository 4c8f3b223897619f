"""Typed inbound messages.

Frames are decoded into one of these variants as soon as they leave the
framer, so dispatch code never indexes raw payload bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MeshStateRecord:
    """State of one bulb as reported by a Sync or Status frame.

    ``color_temp`` and ``rgb`` are None when the record layout does not carry them.
    """

    mesh_id: int
    on: bool
    brightness: int
    color_temp: int | None = None
    rgb: tuple[int, int, int] | None = None


@dataclass(frozen=True)
class AuthResponse:
    code: int

    @property
    def accepted(self) -> bool:
        return self.code == 0


@dataclass(frozen=True)
class SyncMessage:
    records: list[MeshStateRecord] = field(default_factory=list)


@dataclass(frozen=True)
class StatusMessage:
    """Status frame. ``ack_bytes`` is what must be echoed back when ``is_response`` is False."""

    switch_id: int
    response_id: int
    is_response: bool
    ack_bytes: bytes
    subtype: int | None = None
    records: list[MeshStateRecord] = field(default_factory=list)


@dataclass(frozen=True)
class ConnectionMessage:
    switch_id: int


@dataclass(frozen=True)
class PingMessage:
    is_response: bool


HubMessage = AuthResponse | SyncMessage | StatusMessage | ConnectionMessage | PingMessage
