"""Cync device type codes grouped by what the bulb can do.

On/off is supported by every device type.
"""

from typing import Final

DEVICES_WITH_BRIGHTNESS: Final[frozenset[int]] = frozenset(
    {
        1, 5, 6, 7, 8, 9, 10, 11, 13, 14, 15, 17, 18, 19, 20, 21, 22, 23, 24, 25, 26, 27, 28, 29, 30,
        31, 32, 33, 34, 35, 36, 37, 48, 49, 55, 56, 80, 81, 82, 83, 85,
        *range(128, 155), 156, *range(158, 166),
    },
)

DEVICES_WITH_COLOR_TEMP: Final[frozenset[int]] = frozenset(
    {
        5, 6, 7, 8, 10, 11, 14, 15, 19, 20, 21, 22, 23, 25, 26, 28, 29, 30, 31, 32, 33, 34, 35,
        80, 82, 83, 85, 129, 130, 131, 132, 133,
        *range(135, 148), 153, 154, 156, *range(158, 166),
    },
)

DEVICES_WITH_RGB: Final[frozenset[int]] = frozenset(
    {
        6, 7, 8, 21, 22, 23, 30, 31, 32, 33, 34, 35, 131, 132, 133,
        *range(137, 144), 146, 147, 153, 154, 156, *range(158, 166),
    },
)


def supports_brightness(device_type: int) -> bool:
    return device_type in DEVICES_WITH_BRIGHTNESS


def supports_color_temp(device_type: int) -> bool:
    return device_type in DEVICES_WITH_COLOR_TEMP


def supports_rgb(device_type: int) -> bool:
    return device_type in DEVICES_WITH_RGB
