"""Unit tests for the CyncHub facade."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from cync_hub.devices.models import CyncDevice
from cync_hub.hub import CyncHub
from cync_hub.protocol.cync_protocol import CyncProtocol
from cync_hub.protocol.packet_types import PacketSubtype, PacketType
from cync_hub.transport.connection_manager import ConnectionManager, ConnectionState
from tests.helpers.fakes import settle

AUTH_OK = CyncProtocol.encode_packet(PacketType.AUTH, b"\x00\x00", is_response=True).raw


def status_frame_for_mesh(mesh_id: int, switch_id: int, brightness: int) -> bytes:
    payload = bytearray(22)
    payload[0:4] = switch_id.to_bytes(4, "big")
    payload[13] = PacketSubtype.PAGINATED
    record = bytearray(24)
    record[0] = mesh_id
    record[8] = 1
    record[12] = brightness
    record[16] = 20
    record[20:23] = bytes((10, 20, 30))
    return CyncProtocol.encode_packet(PacketType.STATUS, bytes(payload + record)).raw


@pytest.fixture
def hub(credentials) -> CyncHub:
    return CyncHub(credentials)


class TestRegistration:
    """Tests for device registration."""

    def test_register_device(self, hub, rgb_device, home):
        """Test registering creates a light routed by mesh and switch ID."""
        light = hub.register_device(rgb_device, home)

        assert hub.get_light(rgb_device.device_id) is light
        assert hub.lights == [light]
        assert hub.dispatcher.lights_by_mesh[7] is light
        assert hub.dispatcher.lights_by_switch[rgb_device.switch_id] is light

    def test_register_is_idempotent(self, hub, rgb_device, home):
        """Test registering the same device twice returns the same light."""
        first = hub.register_device(rgb_device, home)
        listener = MagicMock()

        second = hub.register_device(rgb_device, home, listener)

        assert second is first
        assert first.listener is listener
        assert len(hub.lights) == 1

    def test_lights_send_through_connection(self, hub, rgb_device, home):
        """Test light commands are queued on the hub's connection."""
        light = hub.register_device(rgb_device, home)

        light.set_on(True)

        assert len(hub.connection.queue) == 1

    def test_deregister_device(self, hub, rgb_device, home):
        """Test deregistering removes routing."""
        light = hub.register_device(rgb_device, home)

        removed = hub.deregister_device(rgb_device.device_id)

        assert removed is light
        assert hub.get_light(rgb_device.device_id) is None
        assert 7 not in hub.dispatcher.lights_by_mesh

    def test_deregister_unknown(self, hub):
        """Test deregistering an unknown device is a no-op."""
        assert hub.deregister_device(12345) is None

    def test_sync_devices(self, hub, rgb_device, plug_device, home):
        """Test reconciling against a discovery result adds and removes lights."""
        stale = CyncDevice(deviceID=2009, switchID=99, displayName="Old")
        _ = hub.register_device(rgb_device, home)
        _ = hub.register_device(stale, home)

        added, removed = hub.sync_devices([(rgb_device, home), (plug_device, home)])

        assert [light.device_id for light in added] == [plug_device.device_id]
        assert [light.device_id for light in removed] == [2009]
        assert sorted(light.device_id for light in hub.lights) == [2007, 2008]

    def test_sync_devices_unchanged(self, hub, rgb_device, home):
        """Test a repeated discovery result changes nothing."""
        _ = hub.register_device(rgb_device, home)

        assert hub.sync_devices([(rgb_device, home)]) == ([], [])

    def test_send_packet(self, hub):
        """Test raw packets are queued."""
        hub.send_packet(CyncProtocol.encode_ping())

        assert len(hub.connection.queue) == 1


class TestHubSession:
    """End-to-end tests against a scripted relay socket."""

    @pytest.mark.asyncio
    async def test_command_and_status_round_trip(
        self,
        credentials,
        connection_factory,
        clock,
        no_jitter_policy,
        rgb_device,
        home,
    ):
        """Test login, an outbound command, and an inbound status applied to the light."""
        mgr = ConnectionManager(
            credentials,
            "relay.test",
            23778,
            reconnect_policy=no_jitter_policy,
            connection_factory=connection_factory,  # type: ignore[arg-type]
            clock=clock,
        )
        hub = CyncHub(credentials, connection=mgr)
        listener = MagicMock()
        light = hub.register_device(rgb_device, home, listener)

        try:
            assert await hub.start() is True
            conn = connection_factory.last
            conn.feed(AUTH_OK)
            await settle()
            assert mgr.state == ConnectionState.CONNECTED

            light.set_on(True)
            await settle()

            sent = [CyncProtocol.decode_packet(raw) for raw in conn.sent]
            assert sent[0] is not None
            assert sent[0].packet_type == PacketType.AUTH
            assert any(p is not None and p.subtype == PacketSubtype.SET_ON for p in sent)
            assert any(p is not None and p.packet_type == PacketType.CONNECTION for p in sent)

            conn.sent.clear()
            conn.feed(status_frame_for_mesh(7, rgb_device.switch_id, 42))
            await settle()

            assert light.brightness == 42
            assert light.state.rgb == (10, 20, 30)
            acks = [CyncProtocol.decode_packet(raw) for raw in conn.sent]
            assert [(p.packet_type, p.is_response) for p in acks if p is not None] == [(PacketType.STATUS, True)]
            listener.assert_called()
        finally:
            await hub.stop()

        assert mgr.state == ConnectionState.DISCONNECTED
        assert connection_factory.last.closed is True

    @pytest.mark.asyncio
    async def test_commands_queued_until_authenticated(
        self,
        credentials,
        connection_factory,
        clock,
        no_jitter_policy,
        plug_device,
        home,
    ):
        """Test a command issued before login completes goes out after the auth reply."""
        mgr = ConnectionManager(
            credentials,
            "relay.test",
            23778,
            reconnect_policy=no_jitter_policy,
            connection_factory=connection_factory,  # type: ignore[arg-type]
            clock=clock,
        )
        hub = CyncHub(credentials, connection=mgr)

        try:
            _ = await hub.start()
            conn = connection_factory.last
            plug = hub.register_device(plug_device, home)
            plug.set_on(True)
            await settle()
            assert len(conn.sent) == 1  # login frame only

            conn.feed(AUTH_OK)
            await settle()

            subtypes = [p.subtype for p in map(CyncProtocol.decode_packet, conn.sent[1:]) if p is not None]
            assert PacketSubtype.SET_ON in subtypes
        finally:
            await hub.stop()
