"""Prometheus metrics for the hub's relay session."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    start_http_server,
)

CONNECTION_STATES: Final = ("disconnected", "connecting", "authenticating", "connected")

cync_hub_packet_sent_total: Final = Counter(  # type: ignore[assignment]
    "cync_hub_packet_sent_total",
    "Total packets written to the relay",
    ["packet_type", "outcome"],
)

cync_hub_packet_recv_total: Final = Counter(  # type: ignore[assignment]
    "cync_hub_packet_recv_total",
    "Total frames received from the relay",
    ["packet_type"],
)

cync_hub_frame_errors_total: Final = Counter(  # type: ignore[assignment]
    "cync_hub_frame_errors_total",
    "Total framing/decode errors",
    ["reason"],
)

cync_hub_queue_depth: Final = Gauge(  # type: ignore[assignment]
    "cync_hub_queue_depth",
    "Packets waiting in the outbound command queue",
)

cync_hub_connection_state: Final = Gauge(  # type: ignore[assignment]
    "cync_hub_connection_state",
    "Current relay session state (1 for the active state)",
    ["state"],
)

cync_hub_auth_total: Final = Counter(  # type: ignore[assignment]
    "cync_hub_auth_total",
    "Relay authentication outcomes",
    ["outcome"],
)

cync_hub_reconnection_total: Final = Counter(  # type: ignore[assignment]
    "cync_hub_reconnection_total",
    "Scheduled reconnection attempts",
    ["reason"],
)

cync_hub_device_updates_total: Final = Counter(  # type: ignore[assignment]
    "cync_hub_device_updates_total",
    "Device state updates applied",
    ["source"],
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_packet_sent(packet_type: str, outcome: str) -> None:
    cync_hub_packet_sent_total.labels(packet_type=packet_type, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_packet_recv(packet_type: str) -> None:
    cync_hub_packet_recv_total.labels(packet_type=packet_type).inc()  # type: ignore[no-untyped-call]


def record_frame_error(reason: str) -> None:
    cync_hub_frame_errors_total.labels(reason=reason).inc()  # type: ignore[no-untyped-call]


def record_queue_depth(depth: int) -> None:
    cync_hub_queue_depth.set(depth)  # type: ignore[no-untyped-call]


def record_connection_state(state: str) -> None:
    """Set the gauge to 1 for ``state`` and 0 for all others."""
    for s in CONNECTION_STATES:
        cync_hub_connection_state.labels(state=s).set(1 if s == state else 0)  # type: ignore[no-untyped-call]


def record_auth(outcome: str) -> None:
    cync_hub_auth_total.labels(outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_reconnection(reason: str) -> None:
    cync_hub_reconnection_total.labels(reason=reason).inc()  # type: ignore[no-untyped-call]


def record_device_update(source: str) -> None:
    cync_hub_device_updates_total.labels(source=source).inc()  # type: ignore[no-untyped-call]
