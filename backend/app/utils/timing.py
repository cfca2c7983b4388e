"""Lightweight timing utilities for performance debugging."""
import time
from datetime import datetime, timezone
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_ms() -> float:
    """Return current time in milliseconds using high-resolution timer."""
    return time.perf_counter() * 1000


def log_elapsed(start_ms: float, label: str, log_fn: Optional[Callable[[str], None]] = None) -> float:
    """
    Log elapsed time since start_ms and return current time.

    Args:
        start_ms: Start time in milliseconds (from now_ms())
        label: Description of the operation
        log_fn: Optional logging function (defaults to logger.debug)

    Returns:
        Current time in milliseconds (for chaining)

    Example:
        t = now_ms()
        t = log_elapsed(t, "step1")
        t = log_elapsed(t, "step2")
    """
    elapsed = now_ms() - start_ms
    if log_fn:
        log_fn(f"{label}: {elapsed:.2f}ms")
    else:
        logger.debug(f"{label}: {elapsed:.2f}ms")
    return now_ms()


class Deadline:
    """
    Remaining-time budget shared by every fetch of one recommendation call.

    A Deadline built with ``seconds=None`` never expires.
    """

    def __init__(self, seconds: Optional[float] = None):
        self.seconds = seconds
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    def remaining(self) -> Optional[float]:
        """Seconds left, ``None`` when unbounded, never negative."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0
