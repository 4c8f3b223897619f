"""
Shared fixtures for unit tests.

This module provides reusable device, credential and transport fixtures for
testing cync_hub components.
"""

from __future__ import annotations

import pytest

from cync_hub.cloud_api import HubCredentials, StaticCredentialsProvider
from cync_hub.devices.models import CyncDevice, CyncHome
from cync_hub.transport.retry_policy import ReconnectPolicy
from tests.helpers.fakes import ConnectionFactory, FakeClock, RecordingSink

HOME_ID = 1000
RGB_DEVICE_ID = 2007  # mesh ID 7 in HOME_ID
SWITCH_ID = 0x12345678
RGB_DEVICE_TYPE = 6  # brightness, color temp, rgb
PLUG_DEVICE_TYPE = 64  # on/off only


@pytest.fixture
def home() -> CyncHome:
    return CyncHome(id=HOME_ID, product_id="prod-1")


@pytest.fixture
def rgb_device() -> CyncDevice:
    """Full-color bulb; mesh ID 7 in ``home``."""
    return CyncDevice(
        deviceID=RGB_DEVICE_ID,
        switchID=SWITCH_ID,
        displayName="Kitchen",
        deviceType=RGB_DEVICE_TYPE,
        mac="AA:BB:CC:DD:EE:07",
    )


@pytest.fixture
def plug_device() -> CyncDevice:
    """On/off-only device; mesh ID 8 in ``home``."""
    return CyncDevice(
        deviceID=2008,
        switchID=SWITCH_ID + 1,
        displayName="Porch Plug",
        deviceType=PLUG_DEVICE_TYPE,
        mac="AA:BB:CC:DD:EE:08",
    )


@pytest.fixture
def credentials() -> StaticCredentialsProvider:
    return StaticCredentialsProvider(HubCredentials(user_id=0x3987C857, authorize="authtoken", access_token="tok"))


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def connection_factory() -> ConnectionFactory:
    return ConnectionFactory()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def no_jitter_policy() -> ReconnectPolicy:
    """10s spacing, deterministic 1s/2s/4s failure backoff."""
    return ReconnectPolicy(min_spacing_seconds=10.0, base_delay_seconds=1.0, max_delay_seconds=60.0, jitter_factor=0.0)
