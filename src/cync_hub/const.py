import os

from cync_hub import __version__

__all__ = [
    "CYNC_ACCESS_TOKEN",
    "CYNC_API_BASE",
    "CYNC_API_TIMEOUT",
    "CYNC_AUTHORIZE",
    "CYNC_CONNECTION_CHECK_INTERVAL",
    "CYNC_CONNECT_TIMEOUT",
    "CYNC_DEBUG",
    "CYNC_DEVICES_FILE",
    "CYNC_DISCOVERY_INTERVAL",
    "CYNC_IO_TIMEOUT",
    "CYNC_LOG_FORMAT",
    "CYNC_LOG_HUMAN_OUTPUT",
    "CYNC_LOG_JSON_FILE",
    "CYNC_MANUFACTURER",
    "CYNC_METRICS_PORT",
    "CYNC_MODEL",
    "CYNC_PING_INTERVAL",
    "CYNC_RECONNECT_SPACING",
    "CYNC_RELAY_HOST",
    "CYNC_RELAY_PORT",
    "CYNC_USER_ID",
    "CYNC_VERSION",
    "DEFAULT_COLOR_TEMP",
    "MAX_SEQUENCE",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


CYNC_VERSION: str = __version__
CYNC_MANUFACTURER: str = "GE"
CYNC_MODEL: str = "Cync Light"

# Cloud REST API (device discovery)
CYNC_API_BASE: str = os.environ.get("CYNC_API_BASE", "https://api.gelighting.com/v2/")
CYNC_API_TIMEOUT: int = _env_int("CYNC_API_TIMEOUT", 8)

# Cloud relay (binary TCP protocol)
CYNC_RELAY_HOST: str = os.environ.get("CYNC_RELAY_HOST", "cm.gelighting.com")
CYNC_RELAY_PORT: int = _env_int("CYNC_RELAY_PORT", 23778)
CYNC_CONNECT_TIMEOUT: float = _env_float("CYNC_CONNECT_TIMEOUT", 10.0)
CYNC_IO_TIMEOUT: float = _env_float("CYNC_IO_TIMEOUT", 5.0)

# Timers (seconds)
CYNC_PING_INTERVAL: float = _env_float("CYNC_PING_INTERVAL", 180.0)
CYNC_CONNECTION_CHECK_INTERVAL: float = _env_float("CYNC_CONNECTION_CHECK_INTERVAL", 300.0)
CYNC_RECONNECT_SPACING: float = _env_float("CYNC_RECONNECT_SPACING", 10.0)
CYNC_DISCOVERY_INTERVAL: float = _env_float("CYNC_DISCOVERY_INTERVAL", 60.0)

# Credentials handed to the hub by the (external) auth flow
_user_id = os.environ.get("CYNC_USER_ID")
CYNC_USER_ID: int | None = int(_user_id) if _user_id and _user_id.isdigit() else None
CYNC_AUTHORIZE: str | None = os.environ.get("CYNC_AUTHORIZE") or None
CYNC_ACCESS_TOKEN: str | None = os.environ.get("CYNC_ACCESS_TOKEN") or None

CYNC_DEVICES_FILE: str | None = os.environ.get("CYNC_DEVICES_FILE") or None
_metrics_port = os.environ.get("CYNC_METRICS_PORT")
CYNC_METRICS_PORT: int | None = int(_metrics_port) if _metrics_port and _metrics_port.isdigit() else None

CYNC_DEBUG: bool = os.environ.get("CYNC_DEBUG", "no").casefold() in YES_ANSWER

# Logging
CYNC_LOG_FORMAT: str = os.environ.get("CYNC_LOG_FORMAT", "human").casefold()
CYNC_LOG_JSON_FILE: str | None = os.environ.get("CYNC_LOG_JSON_FILE") or None
CYNC_LOG_HUMAN_OUTPUT: str = os.environ.get("CYNC_LOG_HUMAN_OUTPUT", "stdout")

# Wire protocol
MAX_SEQUENCE: int = 0xFFFF
DEFAULT_COLOR_TEMP: int = 13
