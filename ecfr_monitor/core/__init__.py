"""
Core module for the eCFR word counting pipeline.
"""

from .config import Settings, get_settings
from .deadline import Deadline
from .errors import (
    CacheError,
    CatalogUnavailable,
    DeadlineExceeded,
    EcfrMonitorError,
    HTTPStatusError,
)

__all__ = [
    "Settings",
    "get_settings",
    "Deadline",
    "EcfrMonitorError",
    "CatalogUnavailable",
    "HTTPStatusError",
    "CacheError",
    "DeadlineExceeded",
]
