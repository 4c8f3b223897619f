"""Unit tests for the additive command checksum."""

import pytest

from cync_hub.protocol.checksum import POWER_CHECKSUM_BASE, STATE_CHECKSUM_BASE, command_checksum


@pytest.mark.unit
def test_power_checksum_example() -> None:
    """Test meshID=500, on=true: (429 + 500 + 1) mod 256 = 162."""
    assert command_checksum(POWER_CHECKSUM_BASE, 500, [1]) == 162


@pytest.mark.unit
@pytest.mark.parametrize(
    "mesh_id,fields,expected",
    [
        (7, [1, 80, 13, 10, 20, 30], (496 + 7 + 154) % 256),
        (0, [0, 0, 0, 0, 0, 0], 496 % 256),
        (1255, [1, 100, 100, 255, 255, 255], (496 + 1255 + 966) % 256),
    ],
)
def test_state_checksum(mesh_id: int, fields: list[int], expected: int) -> None:
    """Test full-state checksum uses base 496 and wraps at 256."""
    assert command_checksum(STATE_CHECKSUM_BASE, mesh_id, fields) == expected


@pytest.mark.unit
def test_checksum_fits_in_a_byte() -> None:
    """Test every result is a single byte."""
    for mesh_id in range(0, 1256, 37):
        for on in (0, 1):
            assert 0 <= command_checksum(POWER_CHECKSUM_BASE, mesh_id, [on]) <= 0xFF
