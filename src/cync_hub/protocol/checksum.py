"""Additive checksum embedded in Cync mesh command bodies."""

from __future__ import annotations

from collections.abc import Iterable

# Checksum seeds, one per command body layout
POWER_CHECKSUM_BASE = 429
STATE_CHECKSUM_BASE = 496


def command_checksum(base: int, mesh_id: int, fields: Iterable[int]) -> int:
    """Compute the command checksum byte.

    ``(base + mesh_id + sum(fields)) mod 256``. The mesh gateway silently
    ignores commands whose checksum does not match.

    Args:
        base: POWER_CHECKSUM_BASE or STATE_CHECKSUM_BASE
        mesh_id: Target bulb mesh ID
        fields: Remaining numeric body fields (on flag, brightness, ...)

    Returns:
        Checksum byte (0-255)

    Example:
        >>> command_checksum(POWER_CHECKSUM_BASE, 500, [1])
        162

    """
    return (base + mesh_id + sum(fields)) % 256
