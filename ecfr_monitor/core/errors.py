"""
Exceptions raised by the eCFR word counting pipeline.
"""


class EcfrMonitorError(Exception):
    """Base class for pipeline errors."""


class CatalogUnavailable(EcfrMonitorError):
    """The title list could not be fetched; nothing else can run."""


class HTTPStatusError(EcfrMonitorError):
    """The origin answered with a status other than 200."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} {url}")


class CacheError(EcfrMonitorError):
    """A cache file could not be written or read back."""


class DeadlineExceeded(EcfrMonitorError):
    """The run deadline fired before the unit of work finished."""
