"""Reconnect timing for the relay session."""

from __future__ import annotations

import random


class ReconnectPolicy:
    """Decide how long to wait before reopening the relay socket.

    Two cases:

    - The previous session reached Connected: keep at least
      ``min_spacing_seconds`` between that connection instant and the next
      attempt, so a relay that keeps dropping fresh sessions is not hammered.
    - The socket never reached Connected (refused, timed out, closed before
      the auth reply): exponential backoff with jitter.
    """

    def __init__(
        self,
        min_spacing_seconds: float = 10.0,
        base_delay_seconds: float = 1.0,
        max_delay_seconds: float = 300.0,
        jitter_factor: float = 0.1,
    ):
        """Initialize reconnect policy.

        Args:
            min_spacing_seconds: Minimum time between a successful connection and the next attempt
            base_delay_seconds: First backoff delay after a failed attempt
            max_delay_seconds: Backoff cap
            jitter_factor: Jitter as fraction of the backoff delay
        """
        self.min_spacing_seconds = min_spacing_seconds
        self.base_delay_seconds = base_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.jitter_factor = jitter_factor

    def delay_after_session(self, connected_at: float, now: float) -> float:
        """``max(min_spacing - (now - connected_at), 0)``.

        Example:
            >>> ReconnectPolicy().delay_after_session(connected_at=100.0, now=102.0)
            8.0
            >>> ReconnectPolicy().delay_after_session(connected_at=100.0, now=115.0)
            0.0

        """
        return max(self.min_spacing_seconds - (now - connected_at), 0.0)

    def delay_after_failure(self, attempt: int) -> float:
        """Backoff for the ``attempt``-th consecutive failure (0-indexed)."""
        delay = min(self.base_delay_seconds * (2**attempt), self.max_delay_seconds)
        return delay + random.uniform(0, delay * self.jitter_factor)

    def __repr__(self) -> str:
        return (
            f"ReconnectPolicy(min_spacing={self.min_spacing_seconds}s, "
            f"base_delay={self.base_delay_seconds}s, max_delay={self.max_delay_seconds}s)"
        )
