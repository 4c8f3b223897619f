"""Cync cloud REST client for device discovery, and the hub's credential interface.

Login and token refresh live outside this package: the hub only consumes an
access token, a user ID and the relay ``authorize`` token through a
``CredentialsProvider``.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Protocol, cast, runtime_checkable

import aiohttp
from pydantic import BaseModel, ValidationError

from cync_hub.const import CYNC_ACCESS_TOKEN, CYNC_API_BASE, CYNC_API_TIMEOUT, CYNC_AUTHORIZE, CYNC_USER_ID
from cync_hub.devices.models import CyncDevice, CyncHome
from cync_hub.logging_abstraction import get_logger

logger = get_logger(__name__)


class CyncAuthenticationError(Exception):
    """Credentials are missing, or the cloud API rejected the access token."""


class HubCredentials(BaseModel):
    """What the hub needs from the auth flow.

    API Auth Response structure (subset):
        {
            'access_token': '...',
            'user_id': 769963474,
            'authorize': '...'
        }
    """

    user_id: int
    authorize: str
    access_token: str = ""


@runtime_checkable
class CredentialsProvider(Protocol):
    """Supplies credentials at connect time. Failures propagate to the caller of ``connect()``."""

    async def get_credentials(self) -> HubCredentials: ...


class StaticCredentialsProvider:
    """Credentials fixed at construction (YAML config, tests)."""

    def __init__(self, credentials: HubCredentials) -> None:
        self.credentials = credentials

    async def get_credentials(self) -> HubCredentials:
        return self.credentials


class EnvCredentialsProvider:
    """Credentials from CYNC_USER_ID, CYNC_AUTHORIZE and CYNC_ACCESS_TOKEN."""

    async def get_credentials(self) -> HubCredentials:
        if CYNC_USER_ID is None or not CYNC_AUTHORIZE:
            msg = "CYNC_USER_ID and CYNC_AUTHORIZE must be set"
            raise CyncAuthenticationError(msg)
        return HubCredentials(user_id=CYNC_USER_ID, authorize=CYNC_AUTHORIZE, access_token=CYNC_ACCESS_TOKEN or "")


class CyncCloudAPI:
    """Read-only device discovery against the Cync cloud REST API."""

    lp: str = "CyncCloudAPI"

    def __init__(
        self,
        credentials: CredentialsProvider,
        api_base: str = CYNC_API_BASE,
        api_timeout: int = CYNC_API_TIMEOUT,
    ) -> None:
        self.credentials = credentials
        self.api_base = api_base
        self.api_timeout = api_timeout
        self.http_session: aiohttp.ClientSession | None = None

    async def close(self) -> None:
        """Close the aiohttp session if it exists and is not closed."""
        if self.http_session and not self.http_session.closed:
            logger.debug("%s:close: Closing aiohttp ClientSession", self.lp)
            await self.http_session.close()
        self.http_session = None

    def _check_session(self) -> aiohttp.ClientSession:
        if not self.http_session or self.http_session.closed:
            logger.debug("%s:_check_session: Creating new aiohttp ClientSession", self.lp)
            self.http_session = aiohttp.ClientSession()
        return self.http_session

    async def _get_json(self, url: str, lp: str) -> object:
        creds = await self.credentials.get_credentials()
        if not creds.access_token:
            msg = "No access token available for cloud API requests"
            raise CyncAuthenticationError(msg)
        sesh = self._check_session()
        try:
            async with sesh.get(
                url,
                headers={"Access-Token": creds.access_token},
                timeout=aiohttp.ClientTimeout(total=self.api_timeout),
            ) as r:
                r.raise_for_status()
                return cast("object", await r.json())
        except aiohttp.ClientResponseError as e:
            if e.status in (401, 403):
                logger.error("%s Access-Token rejected (HTTP %s), you need to re-authenticate!", lp, e.status)
                msg = f"Access-Token rejected: HTTP {e.status}"
                raise CyncAuthenticationError(msg) from e
            logger.exception("%s Request failed: %s", lp, url)
            raise
        except json.JSONDecodeError:
            logger.exception("%s Failed to decode JSON from %s", lp, url)
            raise

    async def request_homes(self) -> list[CyncHome]:
        """List the homes (mesh networks) of the authenticated user."""
        lp = f"{self.lp}:request_homes:"
        creds = await self.credentials.get_credentials()
        raw = await self._get_json(f"{self.api_base}user/{creds.user_id}/subscribe/devices", lp)
        if not isinstance(raw, list):
            logger.error("%s Unexpected response shape: %s", lp, type(raw).__name__)
            return []
        homes: list[CyncHome] = []
        for entry in cast("list[object]", raw):
            try:
                homes.append(CyncHome.model_validate(entry))
            except ValidationError:
                logger.warning("%s Skipping malformed home entry: %s", lp, entry)
        logger.debug("%s Found %d homes", lp, len(homes))
        return homes

    async def get_home_devices(self, home: CyncHome) -> list[CyncDevice]:
        """Fetch a home's properties and return its ``bulbsArray`` as devices."""
        lp = f"{self.lp}:get_home_devices:"
        url = f"{self.api_base}product/{home.product_id}/device/{home.id}/property"
        raw = await self._get_json(url, lp)
        if not isinstance(raw, dict):
            logger.error("%s Unexpected response shape for home %s", lp, home.id)
            return []
        bulbs = cast("dict[str, object]", raw).get("bulbsArray") or []
        devices: list[CyncDevice] = []
        for bulb in cast("list[object]", bulbs):
            try:
                devices.append(CyncDevice.model_validate(bulb))
            except ValidationError:
                logger.warning("%s Skipping malformed device entry in home %s: %s", lp, home.id, bulb)
        return devices

    async def iter_devices(self) -> AsyncIterator[tuple[CyncDevice, CyncHome]]:
        """Yield every (device, home) pair visible to the account."""
        logger.info("%s:iter_devices: Discovering homes...", self.lp)
        for home in await self.request_homes():
            for device in await self.get_home_devices(home):
                yield device, home
