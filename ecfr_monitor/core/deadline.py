"""
Process-wide deadline and cancellation signal for a pipeline run.
"""

import threading
import time
from typing import Optional

from .errors import DeadlineExceeded


class Deadline:
    """One cancellation signal shared by every thread of a run.

    Fires either when ``seconds`` have elapsed or when ``cancel()`` is called.
    A deadline created with ``seconds=None`` only fires on ``cancel()``.
    """

    def __init__(self, seconds: Optional[float] = None):
        self._expires_at = time.monotonic() + seconds if seconds is not None else None
        self._cancelled = threading.Event()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None if unbounded."""
        if self._cancelled.is_set():
            return 0.0
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def cancel(self) -> None:
        self._cancelled.set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if the deadline fired first."""
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._cancelled.wait(remaining)
            return True
        return self._cancelled.wait(max(0.0, seconds))

    def timeout(self, limit: Optional[float] = None) -> Optional[float]:
        """Timeout for one blocking call, bounded by ``limit`` and the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return limit
        if remaining <= 0:
            raise DeadlineExceeded("run deadline exceeded")
        return remaining if limit is None else min(limit, remaining)

    def check(self) -> None:
        """Raise DeadlineExceeded if the deadline has fired."""
        if self.expired():
            raise DeadlineExceeded("run deadline exceeded")
