"""Per-bulb state mapper: inbound state updates and optimistic outbound commands."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Protocol

from cync_hub.const import CYNC_MANUFACTURER, CYNC_MODEL
from cync_hub.devices.models import CyncDevice, CyncHome, DeviceState
from cync_hub.logging_abstraction import get_logger
from cync_hub.metrics import registry
from cync_hub.protocol.cync_protocol import CyncProtocol
from cync_hub.protocol.packet_types import CyncPacket
from cync_hub.utils import clamp, color_temp_to_external, color_temp_to_internal, hsv_to_rgb, rgb_to_hsv

logger = get_logger(__name__)


class Characteristic(Enum):
    """Light characteristics reported to listeners."""

    ON = "on"
    BRIGHTNESS = "brightness"
    COLOR_TEMPERATURE = "color_temperature"
    HUE = "hue"
    SATURATION = "saturation"


class PacketSink(Protocol):
    """Where a light sends its commands (the connection manager)."""

    def send_packet(self, packet: CyncPacket) -> None: ...

    def next_sequence(self) -> int: ...


StateListener = Callable[["CyncLight", Characteristic, object], None]


class CyncLight:
    """One bulb behind a relay switch.

    Setters apply the new value to local state first, notify the listener and
    enqueue exactly one packet. They never wait for the relay: if the packet is
    lost, local state stays as set until the next Sync or Status frame for this
    mesh ID overwrites it.

    Listener values are external units: ``on`` bool, ``brightness`` 0-100,
    ``color_temperature`` mireds, ``hue`` 0-360 and ``saturation`` 0-100.
    """

    def __init__(
        self,
        device: CyncDevice,
        home: CyncHome,
        sink: PacketSink,
        listener: StateListener | None = None,
    ) -> None:
        self.device: CyncDevice = device
        self.home: CyncHome = home
        self.sink: PacketSink = sink
        self.listener: StateListener | None = listener
        self.mesh_id: int = device.assign_mesh_id(home)
        self.state: DeviceState = DeviceState()
        # Hue/saturation are kept separately so that setting one never disturbs
        # the other, even where the RGB triple cannot represent it (white, black).
        self._hue, self._saturation, self._value = rgb_to_hsv(self.state.rgb)
        self.lp = f"CyncLight:{self.name}:"

    def __repr__(self) -> str:
        return f"<CyncLight: {self.name} device_id={self.device_id} mesh_id={self.mesh_id}>"

    @property
    def name(self) -> str:
        return self.device.display_name or str(self.device.device_id)

    @property
    def device_id(self) -> int:
        return self.device.device_id

    @property
    def switch_id(self) -> int:
        return self.device.switch_id

    @property
    def manufacturer(self) -> str:
        return CYNC_MANUFACTURER

    @property
    def model(self) -> str:
        return CYNC_MODEL

    @property
    def serial_number(self) -> str:
        return str(self.device.device_id)

    @property
    def on(self) -> bool:
        return self.state.on

    @property
    def brightness(self) -> int:
        return self.state.brightness

    @property
    def color_temperature(self) -> int:
        """Current white temperature in mireds."""
        return color_temp_to_external(self.state.color_temp)

    @property
    def hue(self) -> float:
        return self._hue

    @property
    def saturation(self) -> float:
        return self._saturation

    def supports(self, characteristic: Characteristic) -> bool:
        match characteristic:
            case Characteristic.ON:
                return True
            case Characteristic.BRIGHTNESS:
                return self.device.supports_brightness
            case Characteristic.COLOR_TEMPERATURE:
                return self.device.supports_color_temp
            case Characteristic.HUE | Characteristic.SATURATION:
                return self.device.supports_rgb

    def _snapshot(self) -> dict[Characteristic, object]:
        return {
            Characteristic.ON: self.on,
            Characteristic.BRIGHTNESS: self.brightness,
            Characteristic.COLOR_TEMPERATURE: self.color_temperature,
            Characteristic.HUE: self.hue,
            Characteristic.SATURATION: self.saturation,
        }

    def _notify(self, before: dict[Characteristic, object]) -> None:
        if self.listener is None:
            return
        for characteristic, value in self._snapshot().items():
            if value != before[characteristic] and self.supports(characteristic):
                self.listener(self, characteristic, value)

    def update_state(
        self,
        on: bool,
        brightness: int,
        color_temp: int | None = None,
        rgb: tuple[int, int, int] | None = None,
        source: str = "inbound",
    ) -> None:
        """Apply state reported by the relay. ``None`` fields keep their previous value."""
        before = self._snapshot()
        self.state.on = on
        self.state.brightness = int(clamp(brightness, 0, 100))
        if color_temp is not None:
            self.state.color_temp = color_temp
        if rgb is not None and rgb != self.state.rgb:
            self.state.rgb = rgb
            self._hue, self._saturation, self._value = rgb_to_hsv(rgb)

        registry.record_device_update(source)
        logger.debug(
            "%s Updated state: %s",
            self.lp,
            self.state.model_dump(),
            extra={"device_id": self.device_id, "mesh_id": self.mesh_id, "source": source},
        )
        self._notify(before)

    def _send_state(self) -> None:
        self.sink.send_packet(
            CyncProtocol.encode_state_command(
                self.switch_id,
                self.sink.next_sequence(),
                self.mesh_id,
                self.state.on,
                self.state.brightness,
                self.state.color_temp,
                self.state.rgb,
            ),
        )

    def set_on(self, on: bool) -> None:
        before = self._snapshot()
        self.state.on = on
        logger.info("%s → Turning %s", self.lp, "on" if on else "off")
        self.sink.send_packet(
            CyncProtocol.encode_power_command(self.switch_id, self.sink.next_sequence(), self.mesh_id, on),
        )
        self._notify(before)

    def set_brightness(self, brightness: int) -> None:
        before = self._snapshot()
        self.state.brightness = int(clamp(brightness, 0, 100))
        logger.info("%s → Setting brightness to %d", self.lp, self.state.brightness)
        self._send_state()
        self._notify(before)

    def set_color_temperature(self, mireds: int) -> None:
        """Set white temperature from mireds (converted to the 0-100 vendor scale)."""
        before = self._snapshot()
        self.state.color_temp = color_temp_to_internal(mireds)
        logger.info(
            "%s → Setting color temperature to %d mireds (vendor %d)",
            self.lp,
            mireds,
            self.state.color_temp,
        )
        self._send_state()
        self._notify(before)

    def set_hue(self, hue: float) -> None:
        before = self._snapshot()
        self._hue = clamp(hue, 0, 360)
        self.state.rgb = hsv_to_rgb(self._hue, self._saturation, self._value)
        logger.info("%s → Setting hue to %.1f, rgb %s", self.lp, self._hue, self.state.rgb)
        self._send_state()
        self._notify(before)

    def set_saturation(self, saturation: float) -> None:
        before = self._snapshot()
        self._saturation = clamp(saturation, 0, 100)
        self.state.rgb = hsv_to_rgb(self._hue, self._saturation, self._value)
        logger.info("%s → Setting saturation to %.1f, rgb %s", self.lp, self._saturation, self.state.rgb)
        self._send_state()
        self._notify(before)

    def request_status(self) -> None:
        """Queue a paginated status query addressed to this bulb's switch."""
        self.sink.send_packet(CyncProtocol.encode_status_query(self.switch_id, self.sink.next_sequence()))
