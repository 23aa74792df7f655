"""
Data ingestion module for the eCFR versioner API.
"""

from .ecfr_client import CatalogResolver, EcfrApi, build_transport
from .rate_limiter import RateLimitedTransport

__all__ = ["CatalogResolver", "EcfrApi", "RateLimitedTransport", "build_transport"]
