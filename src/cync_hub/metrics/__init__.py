"""Metrics module."""

from . import registry
from .registry import (
    record_auth,
    record_connection_state,
    record_device_update,
    record_frame_error,
    record_packet_recv,
    record_packet_sent,
    record_queue_depth,
    record_reconnection,
    start_metrics_server,
)

__all__ = [
    "record_auth",
    "record_connection_state",
    "record_device_update",
    "record_frame_error",
    "record_packet_recv",
    "record_packet_sent",
    "record_queue_depth",
    "record_reconnection",
    "registry",
    "start_metrics_server",
]
