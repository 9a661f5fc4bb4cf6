"""Per-reconcile context: correlation IDs and deadlines."""

from __future__ import annotations

import contextvars
import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from ..errors import DeadlineExceeded

# Context variable for storing correlation ID
correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Monotonic clock value after which the current reconcile must stop
deadline: contextvars.ContextVar[float | None] = contextvars.ContextVar(
    "deadline", default=None
)


def get_correlation_id() -> str | None:
    """Get the correlation ID from the current context."""
    return correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str | None = None) -> Iterator[str]:
    """Context manager to set a correlation ID for the duration of a block.

    Args:
        corr_id: Correlation ID to use, a random one is generated if omitted

    Yields:
        The correlation ID
    """
    corr_id = corr_id or uuid.uuid4().hex[:16]
    token = correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id.reset(token)


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get a dictionary of context values.

    Args:
        additional: Additional key-value pairs to include

    Returns:
        Dictionary with context values including correlation_id
    """
    ctx: dict[str, Any] = {}

    corr_id = get_correlation_id()
    if corr_id:
        ctx["correlation_id"] = corr_id

    if additional:
        ctx.update(additional)

    return ctx


@contextmanager
def reconcile_deadline(timeout: float) -> Iterator[float]:
    """Bound the enclosed block to ``timeout`` seconds.

    Blocking calls made inside the block consult :func:`remaining_time` and
    :func:`check_deadline` so that they give up once the deadline passes.

    Yields:
        The absolute deadline on the monotonic clock
    """
    expires = time.monotonic() + timeout
    token = deadline.set(expires)
    try:
        yield expires
    finally:
        deadline.reset(token)


def remaining_time() -> float | None:
    """Seconds left before the current deadline, or None without one."""
    expires = deadline.get()
    if expires is None:
        return None
    return max(expires - time.monotonic(), 0.0)


def check_deadline() -> None:
    """Raise DeadlineExceeded if the current deadline has passed."""
    left = remaining_time()
    if left is not None and left <= 0:
        raise DeadlineExceeded("reconcile deadline exceeded")
