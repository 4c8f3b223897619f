"""Unit tests for the cloud discovery client and credential providers."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from cync_hub.cloud_api import (
    CredentialsProvider,
    CyncAuthenticationError,
    CyncCloudAPI,
    EnvCredentialsProvider,
    HubCredentials,
    StaticCredentialsProvider,
)
from cync_hub.devices.models import CyncHome

API_BASE = "https://api.test/v2/"
USER_ID = 0x3987C857


def _mock_response(payload: object, status: int = 200) -> MagicMock:
    """Create an async-context-manager response yielding ``payload`` as JSON."""
    response = MagicMock()
    if status >= 400:
        response.raise_for_status = MagicMock(
            side_effect=aiohttp.ClientResponseError(MagicMock(), (), status=status, message="error"),
        )
    response.json = AsyncMock(return_value=payload)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=None)
    return ctx


def _mock_session(routes: dict[str, MagicMock]) -> MagicMock:
    session = MagicMock()
    session.closed = False
    session.get = MagicMock(side_effect=lambda url, **_kwargs: routes[url])
    session.close = AsyncMock()
    return session


@pytest.fixture
def api(credentials) -> CyncCloudAPI:
    return CyncCloudAPI(credentials, api_base=API_BASE)


class TestCredentialProviders:
    """Tests for credential providers."""

    @pytest.mark.asyncio
    async def test_static_provider(self, credentials):
        """Test static credentials are returned unchanged."""
        creds = await credentials.get_credentials()

        assert creds.user_id == USER_ID
        assert creds.authorize == "authtoken"
        assert isinstance(credentials, CredentialsProvider)

    @pytest.mark.asyncio
    async def test_env_provider(self):
        """Test credentials are read from the environment constants."""
        with (
            patch("cync_hub.cloud_api.CYNC_USER_ID", 42),
            patch("cync_hub.cloud_api.CYNC_AUTHORIZE", "relay-token"),
            patch("cync_hub.cloud_api.CYNC_ACCESS_TOKEN", None),
        ):
            creds = await EnvCredentialsProvider().get_credentials()

        assert creds == HubCredentials(user_id=42, authorize="relay-token", access_token="")

    @pytest.mark.asyncio
    async def test_env_provider_missing(self):
        """Test missing environment raises CyncAuthenticationError."""
        with (
            patch("cync_hub.cloud_api.CYNC_USER_ID", None),
            patch("cync_hub.cloud_api.CYNC_AUTHORIZE", None),
            pytest.raises(CyncAuthenticationError),
        ):
            _ = await EnvCredentialsProvider().get_credentials()


class TestDiscovery:
    """Tests for home and device discovery."""

    @pytest.mark.asyncio
    async def test_request_homes(self, api):
        """Test homes are parsed from the subscribe endpoint."""
        api.http_session = _mock_session(
            {
                f"{API_BASE}user/{USER_ID}/subscribe/devices": _mock_response(
                    [{"id": 1000, "product_id": "prod-1", "name": "Home"}, {"name": "missing id"}],
                ),
            },
        )

        homes = await api.request_homes()

        assert homes == [CyncHome(id=1000, product_id="prod-1")]

    @pytest.mark.asyncio
    async def test_access_token_header(self, api):
        """Test requests carry the Access-Token header."""
        api.http_session = _mock_session(
            {f"{API_BASE}user/{USER_ID}/subscribe/devices": _mock_response([])},
        )

        _ = await api.request_homes()

        _, kwargs = api.http_session.get.call_args
        assert kwargs["headers"] == {"Access-Token": "tok"}

    @pytest.mark.asyncio
    async def test_get_home_devices(self, api, home):
        """Test bulbsArray entries become devices; malformed entries are skipped."""
        api.http_session = _mock_session(
            {
                f"{API_BASE}product/prod-1/device/1000/property": _mock_response(
                    {
                        "bulbsArray": [
                            {"deviceID": 2007, "switchID": 5, "displayName": "Kitchen", "deviceType": 6},
                            {"displayName": "no ids"},
                        ],
                    },
                ),
            },
        )

        devices = await api.get_home_devices(home)

        assert [d.device_id for d in devices] == [2007]
        assert devices[0].display_name == "Kitchen"

    @pytest.mark.asyncio
    async def test_home_without_bulbs(self, api, home):
        """Test a home with no bulbsArray yields no devices."""
        api.http_session = _mock_session(
            {f"{API_BASE}product/prod-1/device/1000/property": _mock_response({"groupsArray": []})},
        )

        assert await api.get_home_devices(home) == []

    @pytest.mark.asyncio
    async def test_iter_devices(self, api):
        """Test every device is paired with its home."""
        api.http_session = _mock_session(
            {
                f"{API_BASE}user/{USER_ID}/subscribe/devices": _mock_response([{"id": 1000, "product_id": "p"}]),
                f"{API_BASE}product/p/device/1000/property": _mock_response(
                    {"bulbsArray": [{"deviceID": 2007, "switchID": 5}, {"deviceID": 2008, "switchID": 5}]},
                ),
            },
        )

        pairs = [(device.device_id, home.id) async for device, home in api.iter_devices()]

        assert pairs == [(2007, 1000), (2008, 1000)]

    @pytest.mark.asyncio
    async def test_rejected_token(self, api):
        """Test HTTP 401 surfaces as CyncAuthenticationError."""
        api.http_session = _mock_session(
            {f"{API_BASE}user/{USER_ID}/subscribe/devices": _mock_response(None, status=401)},
        )

        with pytest.raises(CyncAuthenticationError):
            _ = await api.request_homes()

    @pytest.mark.asyncio
    async def test_server_error_propagates(self, api):
        """Test other HTTP errors propagate unchanged."""
        api.http_session = _mock_session(
            {f"{API_BASE}user/{USER_ID}/subscribe/devices": _mock_response(None, status=500)},
        )

        with pytest.raises(aiohttp.ClientResponseError):
            _ = await api.request_homes()

    @pytest.mark.asyncio
    async def test_missing_access_token(self):
        """Test discovery without an access token fails before any request."""
        api = CyncCloudAPI(
            StaticCredentialsProvider(HubCredentials(user_id=1, authorize="a")),
            api_base=API_BASE,
        )
        api.http_session = _mock_session({})

        with pytest.raises(CyncAuthenticationError):
            _ = await api.request_homes()

        api.http_session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_close(self, api):
        """Test close releases the session."""
        session = _mock_session({})
        api.http_session = session

        await api.close()

        session.close.assert_awaited_once()
        assert api.http_session is None
