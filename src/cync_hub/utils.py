from __future__ import annotations

import colorsys
import math
import uuid

# Namespace for stable per-device identifiers derived from the MAC address
DEVICE_UUID_NAMESPACE = uuid.UUID("6f1c7d3e-3a1b-5c6e-9a4d-2b7f0e8c1d55")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() would pick the even neighbour)."""
    return math.floor(value + 0.5)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def color_temp_to_external(value: int) -> int:
    """Convert Cync white temperature (0-100) to mireds.

    Example:
        >>> color_temp_to_external(50)
        220

    """
    return round_half_up(1_000_000 / (2000 + 51 * value))


def color_temp_to_internal(mireds: float) -> int:
    """Convert mireds back to Cync white temperature, clamped to 0-100.

    Example:
        >>> color_temp_to_internal(220)
        50

    """
    if mireds <= 0:
        return 100
    return int(clamp(round_half_up((1_000_000 / mireds - 2000) / 51), 0, 100))


def rgb_to_hsv(rgb: tuple[int, int, int]) -> tuple[float, float, float]:
    """RGB (0-255 each) to (hue 0-360, saturation 0-100, value 0-100)."""
    red, green, blue = rgb
    hue, saturation, value = colorsys.rgb_to_hsv(red / 255, green / 255, blue / 255)
    return hue * 360, saturation * 100, value * 100


def hsv_to_rgb(hue: float, saturation: float, value: float) -> tuple[int, int, int]:
    """(hue 0-360, saturation 0-100, value 0-100) to RGB (0-255 each)."""
    red, green, blue = colorsys.hsv_to_rgb(
        (hue % 360) / 360,
        clamp(saturation, 0, 100) / 100,
        clamp(value, 0, 100) / 100,
    )
    return round_half_up(red * 255), round_half_up(green * 255), round_half_up(blue * 255)


def device_uuid(mac: str) -> str:
    """Stable identifier for a device, derived from its MAC address."""
    return str(uuid.uuid5(DEVICE_UUID_NAMESPACE, mac.casefold()))
