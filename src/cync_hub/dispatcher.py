"""Routes decoded inbound frames to the session and to registered lights."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

from cync_hub.devices.light import CyncLight, PacketSink
from cync_hub.logging_abstraction import get_logger
from cync_hub.metrics import registry
from cync_hub.protocol.cync_protocol import CyncProtocol
from cync_hub.protocol.exceptions import PacketDecodeError
from cync_hub.protocol.messages import (
    AuthResponse,
    ConnectionMessage,
    MeshStateRecord,
    PingMessage,
    StatusMessage,
    SyncMessage,
)
from cync_hub.protocol.packet_types import CyncPacket, PacketType

logger = get_logger(__name__)

AuthHandler = Callable[[AuthResponse], None]


class InboundDispatcher:
    """Decode each frame into a typed message and act on it.

    Lights are looked up by mesh ID (state records) and by switch ID
    (connection replies). A record for a mesh ID nobody registered is dropped
    without logging above debug: the relay broadcasts state for every bulb in
    the home, registered or not.
    """

    lp: str = "InboundDispatcher"

    def __init__(self, sink: PacketSink, auth_handler: AuthHandler) -> None:
        self.sink: PacketSink = sink
        self.auth_handler: AuthHandler = auth_handler
        self.lights_by_mesh: dict[int, CyncLight] = {}
        self.lights_by_switch: dict[int, CyncLight] = {}

    def register(self, light: CyncLight) -> None:
        existing = self.lights_by_mesh.get(light.mesh_id)
        if existing is not None and existing is not light:
            logger.warning(
                "%s Mesh ID %d already belongs to %s, %s will not receive state updates",
                self.lp,
                light.mesh_id,
                existing.name,
                light.name,
            )
        else:
            self.lights_by_mesh[light.mesh_id] = light
        _ = self.lights_by_switch.setdefault(light.switch_id, light)

    def unregister(self, light: CyncLight) -> None:
        if self.lights_by_mesh.get(light.mesh_id) is light:
            del self.lights_by_mesh[light.mesh_id]
        if self.lights_by_switch.get(light.switch_id) is light:
            del self.lights_by_switch[light.switch_id]

    def dispatch(self, packet: CyncPacket) -> None:
        lp = f"{self.lp}:dispatch:"
        try:
            message = CyncProtocol.parse_message(packet)
        except PacketDecodeError as e:
            if packet.packet_type == PacketType.STATUS and not packet.is_response:
                # Every Status request is acked, even one too short to decode
                self.sink.send_packet(CyncProtocol.encode_status_ack(packet.payload))
            logger.warning(
                "%s Dropping malformed %s frame: %s",
                lp,
                packet.type_name,
                e.reason,
                extra={"packet_type": packet.type_name, "preview": e.data_preview.hex(" ")},
            )
            registry.record_frame_error(e.reason)
            return

        match message:
            case AuthResponse():
                self.auth_handler(message)
            case SyncMessage(records=records):
                self._apply_records(records, "sync")
            case StatusMessage():
                self._handle_status(message)
            case ConnectionMessage(switch_id=switch_id):
                self._handle_connection(switch_id)
            case PingMessage(is_response=is_response):
                logger.debug("%s Ping %s", lp, "reply" if is_response else "request")
            case None:
                logger.debug("%s Ignoring %s frame", lp, packet.type_name, extra={"length": packet.length})

    def _handle_status(self, message: StatusMessage) -> None:
        if not message.is_response:
            # The relay expects the ack before it considers the status delivered
            self.sink.send_packet(CyncProtocol.encode_status_ack(message.ack_bytes))
        self._apply_records(message.records, "status")

    def _handle_connection(self, switch_id: int) -> None:
        light = self.lights_by_switch.get(switch_id)
        if light is None:
            logger.debug("%s:connection: No light behind switch %d", self.lp, switch_id)
            return
        _ = asyncio.get_running_loop().call_soon(light.request_status)

    def _apply_records(self, records: Iterable[MeshStateRecord], source: str) -> None:
        for record in records:
            light = self.lights_by_mesh.get(record.mesh_id)
            if light is None:
                logger.debug("%s No light for mesh ID %d", self.lp, record.mesh_id)
                continue
            light.update_state(record.on, record.brightness, record.color_temp, record.rgb, source=source)
