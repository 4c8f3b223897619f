"""Exception types for relay session errors."""

from __future__ import annotations

from cync_hub.protocol.exceptions import CyncProtocolError


class CyncConnectionError(CyncProtocolError):
    """Relay session could not be established or used.

    Note: Named CyncConnectionError to avoid shadowing Python's built-in ConnectionError.

    Attributes:
        reason: Specific failure reason
        state: Connection state when the error occurred
    """

    def __init__(self, reason: str, state: str = "unknown"):
        self.reason = reason
        self.state = state
        super().__init__(f"Connection error: {reason} (state: {state})")


class AuthenticationError(CyncProtocolError):
    """The relay rejected the login frame.

    Terminal for the session: the hub does not reconnect until ``connect()``
    is called again, normally with fresh credentials.

    Attributes:
        reason: Specific failure reason
        code: Non-zero status code from the relay's auth reply
    """

    def __init__(self, reason: str, code: int = 0):
        self.reason = reason
        self.code = code
        super().__init__(f"Authentication failed: {reason} (code: {code})")
