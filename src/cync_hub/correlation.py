"""
Correlation IDs for tying log lines to one inbound frame or one outbound command.

The ID lives in a contextvar so every coroutine and callback spawned while a
frame is being dispatched logs with the same ID.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cync_hub_correlation_id",
    default=None,
)


def generate_correlation_id(prefix: str = "") -> str:
    """
    Generate a new correlation ID.

    Args:
        prefix: Optional short tag (e.g. "rx", "tx") prepended to the hex ID

    Returns:
        UUID4 hex, optionally prefixed
    """
    new_id = uuid.uuid4().hex
    return f"{prefix}-{new_id}" if prefix else new_id


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    prefix: str = "",
) -> Generator[str]:
    """
    Scope a correlation ID, restoring the previous one on exit.

    Example:
        with correlation_context(prefix="rx") as corr_id:
            dispatcher.dispatch(packet)  # all log lines carry corr_id
    """
    token = _correlation_id.set(correlation_id or generate_correlation_id(prefix))
    try:
        yield _correlation_id.get() or ""
    finally:
        _correlation_id.reset(token)


def ensure_correlation_id(prefix: str = "") -> str:
    """Return the current correlation ID, creating one for background task entry points."""
    current_id = get_correlation_id()
    if current_id is None:
        current_id = generate_correlation_id(prefix)
        set_correlation_id(current_id)
    return current_id
