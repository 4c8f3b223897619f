"""Device models and the per-bulb state mapper."""

from .light import Characteristic, CyncLight, PacketSink, StateListener
from .models import CyncDevice, CyncHome, DeviceState, compute_mesh_id

__all__ = [
    "Characteristic",
    "CyncDevice",
    "CyncHome",
    "CyncLight",
    "DeviceState",
    "PacketSink",
    "StateListener",
    "compute_mesh_id",
]
