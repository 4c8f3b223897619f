"""CyncHub: one relay session plus the lights reachable through it."""

from __future__ import annotations

from collections.abc import Iterable

from cync_hub.cloud_api import CredentialsProvider
from cync_hub.const import CYNC_RELAY_HOST, CYNC_RELAY_PORT
from cync_hub.devices.light import CyncLight, StateListener
from cync_hub.devices.models import CyncDevice, CyncHome
from cync_hub.dispatcher import InboundDispatcher
from cync_hub.logging_abstraction import get_logger
from cync_hub.protocol.packet_types import CyncPacket
from cync_hub.transport.connection_manager import ConnectionManager
from cync_hub.transport.retry_policy import ReconnectPolicy

logger = get_logger(__name__)


class CyncHub:
    """Facade over the connection manager and the inbound dispatcher.

    Usage::

        hub = CyncHub(EnvCredentialsProvider())
        light = hub.register_device(device, home, listener=on_change)
        await hub.start()
        light.set_brightness(40)
        ...
        await hub.stop()
    """

    lp: str = "CyncHub"

    def __init__(
        self,
        credentials: CredentialsProvider,
        host: str = CYNC_RELAY_HOST,
        port: int = CYNC_RELAY_PORT,
        *,
        reconnect_policy: ReconnectPolicy | None = None,
        connection: ConnectionManager | None = None,
    ) -> None:
        self.connection: ConnectionManager = connection or ConnectionManager(
            credentials,
            host,
            port,
            reconnect_policy=reconnect_policy,
        )
        self.connection.packet_handler = self._handle_packet
        self.dispatcher: InboundDispatcher = InboundDispatcher(
            self.connection,
            auth_handler=self.connection.handle_auth_response,
        )
        self._lights: dict[int, CyncLight] = {}

    @property
    def lights(self) -> list[CyncLight]:
        return list(self._lights.values())

    def get_light(self, device_id: int) -> CyncLight | None:
        return self._lights.get(device_id)

    def _handle_packet(self, packet: CyncPacket) -> None:
        self.dispatcher.dispatch(packet)

    def send_packet(self, packet: CyncPacket) -> None:
        self.connection.send_packet(packet)

    def register_device(
        self,
        device: CyncDevice,
        home: CyncHome,
        listener: StateListener | None = None,
    ) -> CyncLight:
        """Create (or return the existing) light for ``device`` and start its liveness checks."""
        existing = self._lights.get(device.device_id)
        if existing is not None:
            if listener is not None:
                existing.listener = listener
            return existing

        light = CyncLight(device, home, self.connection, listener)
        self._lights[device.device_id] = light
        self.dispatcher.register(light)
        self.connection.watch_device(device.device_id, device.switch_id)
        logger.info(
            "%s:register_device: Registered %s",
            self.lp,
            light.name,
            extra={"device_id": device.device_id, "switch_id": device.switch_id, "mesh_id": light.mesh_id},
        )
        return light

    def deregister_device(self, device_id: int) -> CyncLight | None:
        light = self._lights.pop(device_id, None)
        if light is None:
            return None
        self.connection.unwatch_device(device_id)
        self.dispatcher.unregister(light)
        logger.info("%s:deregister_device: Removed %s", self.lp, light.name, extra={"device_id": device_id})
        return light

    def sync_devices(
        self,
        devices: Iterable[tuple[CyncDevice, CyncHome]],
        listener: StateListener | None = None,
    ) -> tuple[list[CyncLight], list[CyncLight]]:
        """Reconcile registered lights with a fresh discovery result.

        Returns:
            (added, removed) lights

        """
        seen: set[int] = set()
        added: list[CyncLight] = []
        for device, home in devices:
            seen.add(device.device_id)
            if device.device_id not in self._lights:
                added.append(self.register_device(device, home, listener))

        removed: list[CyncLight] = []
        for device_id in [d for d in self._lights if d not in seen]:
            light = self.deregister_device(device_id)
            if light is not None:
                removed.append(light)

        if added or removed:
            logger.info("%s:sync_devices: %d added, %d removed", self.lp, len(added), len(removed))
        return added, removed

    async def connect(self) -> bool:
        return await self.connection.connect()

    async def start(self) -> bool:
        """Open the relay session. Timers (ping, liveness) run from here until ``stop()``."""
        logger.info("%s:start: Starting hub with %d lights", self.lp, len(self._lights))
        return await self.connection.connect()

    async def stop(self) -> None:
        logger.info("%s:stop: Stopping hub", self.lp)
        await self.connection.disconnect()
