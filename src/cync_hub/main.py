from __future__ import annotations

import argparse
import asyncio
import signal
from pathlib import Path
from typing import Any

import aiohttp
import uvloop
import yaml
from pydantic import ValidationError

from cync_hub.cloud_api import CredentialsProvider, CyncAuthenticationError, CyncCloudAPI, EnvCredentialsProvider
from cync_hub.const import (
    CYNC_DEBUG,
    CYNC_DEVICES_FILE,
    CYNC_DISCOVERY_INTERVAL,
    CYNC_METRICS_PORT,
    CYNC_VERSION,
)
from cync_hub.correlation import correlation_context, ensure_correlation_id
from cync_hub.devices.light import Characteristic, CyncLight
from cync_hub.devices.models import CyncDevice, CyncHome
from cync_hub.hub import CyncHub
from cync_hub.logging_abstraction import get_logger, set_debug
from cync_hub.metrics import start_metrics_server
from cync_hub.transport.exceptions import CyncConnectionError

logger = get_logger(__name__)


def parse_devices_file(devices_file: Path) -> list[tuple[CyncDevice, CyncHome]]:
    """Parse a YAML devices file.

    Expected layout (device keys use the cloud API names)::

        homes:
          - id: 1234567
            product_id: abc123
            devices:
              - deviceID: 1234500
                switchID: 987654
                displayName: Kitchen
                deviceType: 6
                mac: "AA:BB:CC:DD:EE:FF"

    Malformed entries are logged and skipped.

    Raises:
        OSError: If the file cannot be read
        yaml.YAMLError: If the file is not valid YAML

    """
    logger.debug("Parsing devices file: %s", devices_file)
    with devices_file.open() as f:
        data: Any = yaml.safe_load(f)

    pairs: list[tuple[CyncDevice, CyncHome]] = []
    if not isinstance(data, dict) or not isinstance(data.get("homes"), list):
        logger.warning("No 'homes' list found in devices file", extra={"path": str(devices_file)})
        return pairs

    for home_data in data["homes"]:
        if not isinstance(home_data, dict):
            continue
        try:
            home = CyncHome.model_validate(home_data)
        except ValidationError:
            logger.warning("Skipping home without a valid 'id': %s", home_data)
            continue
        for device_data in home_data.get("devices") or []:
            try:
                pairs.append((CyncDevice.model_validate(device_data), home))
            except ValidationError as e:
                logger.warning("Skipping invalid device in home %s: %s", home.id, e)

    logger.info("Parsed devices file: %d devices", len(pairs))
    return pairs


def log_characteristic_change(light: CyncLight, characteristic: Characteristic, value: object) -> None:
    logger.info(
        "%s %s -> %s",
        light.name,
        characteristic.value,
        value,
        extra={"device_id": light.device_id, "mesh_id": light.mesh_id},
    )


async def discover_devices(cloud_api: CyncCloudAPI) -> list[tuple[CyncDevice, CyncHome]]:
    return [pair async for pair in cloud_api.iter_devices()]


class HubService:
    """Runs one hub until SIGINT/SIGTERM."""

    lp: str = "HubService:"

    def __init__(
        self,
        credentials: CredentialsProvider,
        devices_file: Path | None = None,
        discovery_interval: float = CYNC_DISCOVERY_INTERVAL,
    ) -> None:
        self.credentials = credentials
        self.devices_file = devices_file
        self.discovery_interval = discovery_interval
        self.hub = CyncHub(credentials)
        self.cloud_api: CyncCloudAPI | None = None
        self.discovery_task: asyncio.Task[None] | None = None
        self.stop_event = asyncio.Event()

    def request_stop(self, signum: int) -> None:
        logger.info("%s Intercepted signal: %s (%s)", self.lp, signal.Signals(signum).name, signum)
        self.stop_event.set()

    async def discovery_loop(self) -> None:
        """Reconcile registered lights with the cloud device list every ``discovery_interval`` seconds."""
        lp = f"{self.lp}discovery:"
        if self.cloud_api is None:
            self.cloud_api = CyncCloudAPI(self.credentials)
        while True:
            with correlation_context(prefix="discovery"):
                try:
                    pairs = await discover_devices(self.cloud_api)
                except (aiohttp.ClientError, TimeoutError, CyncAuthenticationError):
                    # Keep current lights; a failed discovery is not an empty home
                    logger.exception("%s Device discovery failed, retrying in %.0fs", lp, self.discovery_interval)
                else:
                    _ = self.hub.sync_devices(pairs, listener=log_characteristic_change)
            await asyncio.sleep(self.discovery_interval)

    async def run(self) -> int:
        _ = ensure_correlation_id()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self.request_stop, signum)
        logger.debug("%s Signal handlers configured for SIGINT & SIGTERM", self.lp)

        if self.devices_file is not None:
            _ = self.hub.sync_devices(parse_devices_file(self.devices_file), listener=log_characteristic_change)
        else:
            self.discovery_task = asyncio.create_task(self.discovery_loop(), name="cync_hub:discovery")

        try:
            _ = await self.hub.start()
        except CyncConnectionError:
            logger.exception("%s Could not start the relay session", self.lp)
            await self.stop()
            return 1

        _ = await self.stop_event.wait()
        await self.stop()
        return 0

    async def stop(self) -> None:
        logger.info("%s Shutting down...", self.lp)
        if self.discovery_task is not None and not self.discovery_task.done():
            _ = self.discovery_task.cancel()
            try:
                await self.discovery_task
            except asyncio.CancelledError:
                logger.debug("%s Discovery task cancelled", self.lp)
        await self.hub.stop()
        if self.cloud_api is not None:
            await self.cloud_api.close()


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cync relay hub")
    _ = parser.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    _ = parser.add_argument(
        "--devices",
        type=Path,
        default=Path(CYNC_DEVICES_FILE) if CYNC_DEVICES_FILE else None,
        help="YAML devices file (default: discover devices from the cloud API)",
    )
    _ = parser.add_argument(
        "--metrics-port",
        type=int,
        default=CYNC_METRICS_PORT,
        help="Serve Prometheus metrics on this port",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the cync-hub CLI."""
    with correlation_context():
        args = parse_cli(argv)
        if args.debug or CYNC_DEBUG:
            set_debug(True)
            logger.info("Debug logging enabled")

        logger.info("Starting cync-hub", extra={"version": CYNC_VERSION})

        devices_file: Path | None = args.devices.expanduser().resolve() if args.devices else None
        if devices_file is not None and not devices_file.exists():
            logger.error("Devices file not found", extra={"path": str(devices_file)})
            return 1

        if args.metrics_port:
            start_metrics_server(args.metrics_port)
            logger.info("Metrics server listening", extra={"port": args.metrics_port})

        try:
            return uvloop.run(HubService(EnvCredentialsProvider(), devices_file).run())
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
            return 0
        except (OSError, yaml.YAMLError) as e:
            logger.exception("Fatal error in main loop", extra={"error": str(e)})
            return 1
        finally:
            logger.info("cync-hub shutdown complete")


if __name__ == "__main__":
    raise SystemExit(main())
