"""Relay transport: socket wrapper, outbound queue, reconnect timing and the session state machine."""

from .command_queue import CommandQueue
from .connection_manager import ConnectionManager, ConnectionState
from .exceptions import AuthenticationError, CyncConnectionError
from .retry_policy import ReconnectPolicy
from .socket_abstraction import TCPConnection

__all__ = [
    "AuthenticationError",
    "CommandQueue",
    "ConnectionManager",
    "ConnectionState",
    "CyncConnectionError",
    "ReconnectPolicy",
    "TCPConnection",
]
