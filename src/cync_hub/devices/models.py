"""Pydantic models for homes, devices and device state."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, computed_field

from cync_hub.const import DEFAULT_COLOR_TEMP
from cync_hub.devices import capabilities
from cync_hub.utils import device_uuid


def compute_mesh_id(device_id: int, home_id: int) -> int:
    """Derive a bulb's 2-byte mesh address from its device ID and home ID.

    Values 0-999 map directly; each overflow bucket of 1000 shifts into the
    high byte. A remainder of exactly 500 stays in the low byte (round half
    to even).

    Example:
        >>> compute_mesh_id(2500, 1000)
        500

    """
    remainder = device_id % home_id
    return (remainder % 1000) + round(remainder / 1000) * 256


class CyncHome(BaseModel):
    """A home as returned by ``user/{id}/subscribe/devices``."""

    model_config = ConfigDict(extra="ignore")

    id: int
    product_id: str = ""


class CyncDevice(BaseModel):
    """A bulb entry from a home's ``bulbsArray``.

    Field aliases match the cloud API's camelCase names so API responses and
    YAML device files validate directly.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    device_id: int = Field(alias="deviceID")
    switch_id: int = Field(alias="switchID")
    display_name: str = Field(default="", alias="displayName")
    device_type: int = Field(default=0, alias="deviceType")
    mac: str = ""
    firmware_version: str = Field(default="", alias="firmwareVersion")
    mesh_id: int | None = Field(default=None, alias="meshID")

    def assign_mesh_id(self, home: CyncHome) -> int:
        self.mesh_id = compute_mesh_id(self.device_id, home.id)
        return self.mesh_id

    @computed_field
    @property
    def unique_id(self) -> str:
        return device_uuid(self.mac or str(self.device_id))

    @property
    def supports_brightness(self) -> bool:
        return capabilities.supports_brightness(self.device_type)

    @property
    def supports_color_temp(self) -> bool:
        return capabilities.supports_color_temp(self.device_type)

    @property
    def supports_rgb(self) -> bool:
        return capabilities.supports_rgb(self.device_type)


class DeviceState(BaseModel):
    """Last known state of one bulb, in vendor units."""

    model_config = ConfigDict(validate_assignment=True)

    on: bool = False
    brightness: int = Field(default=0, ge=0, le=100)
    color_temp: int = Field(default=DEFAULT_COLOR_TEMP, ge=0, le=255)
    rgb: tuple[int, int, int] = (255, 255, 255)
