"""
Rate-limiting transport decorator.
"""

import threading
import time
from typing import Optional

import requests
import structlog

from ..core.deadline import Deadline
from ..core.errors import DeadlineExceeded
from ..core.transport import Transport

logger = structlog.get_logger(__name__)


class RateLimitedTransport:
    """Enforces a minimum interval between requests across all callers.

    Every thread sharing one instance shares one pacing state, so no more
    than one request is dispatched per ``interval`` globally. The first
    request goes out immediately. Waiting is bounded by the run deadline,
    not by the per-request timeout.
    """

    def __init__(self, inner: Transport, interval: float, deadline: Optional[Deadline] = None):
        self.inner = inner
        self.interval = max(0.0, interval)
        self.deadline = deadline or Deadline()
        self._lock = threading.Lock()
        self._last_dispatch: Optional[float] = None

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        self.wait()
        return self.inner.send(request, **kwargs)

    def wait(self) -> None:
        """Block until this caller may dispatch.

        Raises:
            DeadlineExceeded: The run deadline fired before the slot arrived
        """
        remaining = self.deadline.remaining()
        if not self._lock.acquire(timeout=-1 if remaining is None else remaining):
            raise DeadlineExceeded("run deadline exceeded while rate limited")
        try:
            self.deadline.check()
            if self._last_dispatch is not None:
                delay = self._last_dispatch + self.interval - time.monotonic()
                if delay > 0:
                    logger.debug("Rate limited", delay_seconds=round(delay, 3))
                    if self.deadline.wait(delay):
                        raise DeadlineExceeded("run deadline exceeded while rate limited")
            self._last_dispatch = time.monotonic()
        finally:
            self._lock.release()
