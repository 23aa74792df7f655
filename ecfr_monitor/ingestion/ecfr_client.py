"""
eCFR versioner API client for title and version discovery.

This module provides the catalog side of the pipeline: the list of titles and,
per title, the effective dates whose full text must be counted. The API is
public and does not require an API key.
"""

from typing import Any, List, Optional, Set, Tuple

import requests
import structlog

from ..core.cache import CachingTransport
from ..core.config import Settings
from ..core.deadline import Deadline
from ..core.errors import CatalogUnavailable, EcfrMonitorError, HTTPStatusError
from ..core.models import Title, TitlesResponse, VersionsResponse
from ..core.transport import Transport, prepare_get, release
from .rate_limiter import RateLimitedTransport

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://www.ecfr.gov/api/versioner/v1"
ACCEPT_JSON = "application/json"
ACCEPT_XML = "application/xml"

# Failures that end one unit of work without ending the run.
FETCH_ERRORS = (requests.RequestException, EcfrMonitorError, ValueError)


class EcfrApi:
    """Shared URL building and request plumbing for the versioner API."""

    TITLES_PATH = "/titles.json"
    VERSIONS_PATH = "/versions/title-{number}.json"
    FULL_TEXT_PATH = "/full/{date}/title-{number}.xml"

    def __init__(
        self,
        transport: Transport,
        base_url: str = DEFAULT_BASE_URL,
        deadline: Optional[Deadline] = None,
        request_timeout: Optional[float] = 10.0,
        user_agent: Optional[str] = None,
    ):
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.deadline = deadline or Deadline()
        self.request_timeout = request_timeout
        self.user_agent = user_agent

    def titles_url(self) -> str:
        return self.base_url + self.TITLES_PATH

    def versions_url(self, number: int) -> str:
        return self.base_url + self.VERSIONS_PATH.format(number=number)

    def full_text_url(self, date: str, number: int) -> str:
        return self.base_url + self.FULL_TEXT_PATH.format(date=date, number=number)

    def _send(self, url: str, accept: str) -> requests.Response:
        """Send one GET through the transport chain.

        The caller owns the returned response and must ``release()`` it.
        """
        self.deadline.check()
        request = prepare_get(url, accept, self.user_agent)
        return self.transport.send(
            request,
            timeout=self.deadline.timeout(self.request_timeout),
            stream=True,
        )

    def _get_json(self, url: str) -> Any:
        """GET a URL and decode its JSON body.

        Raises:
            HTTPStatusError: The origin answered with a status other than 200
        """
        response = self._send(url, ACCEPT_JSON)
        try:
            if response.status_code != 200:
                raise HTTPStatusError(response.status_code, url)
            return response.json()
        finally:
            release(response)


class CatalogResolver(EcfrApi):
    """Discovers titles and their contributing effective dates."""

    def list_titles(self) -> List[Title]:
        """Fetch every title in catalog order.

        Returns:
            List of Title objects in the order the API lists them

        Raises:
            CatalogUnavailable: The title list could not be fetched or parsed
        """
        url = self.titles_url()
        logger.info("Fetching eCFR titles", url=url)
        try:
            payload = self._get_json(url)
            titles = TitlesResponse.model_validate(payload).titles
        except FETCH_ERRORS as e:
            logger.error("Failed to fetch titles", url=url, error=str(e))
            raise CatalogUnavailable(f"fetch titles: {e}") from e

        logger.info("Fetched eCFR titles", count=len(titles))
        return titles

    def list_contributing_dates(self, title: Title) -> Tuple[Set[str], Optional[Exception]]:
        """Fetch the distinct dates of a title's substantive, non-removed versions.

        Args:
            title: Title whose version history is fetched

        Returns:
            The set of contributing dates and None, or an empty set and the
            error that prevented fetching the version list
        """
        url = self.versions_url(title.number)
        try:
            payload = self._get_json(url)
            versions = VersionsResponse.model_validate(payload).content_versions
        except FETCH_ERRORS as e:
            logger.error("Failed to fetch versions", title=title.number, url=url, error=str(e))
            return set(), e

        dates = contributing_dates(versions)
        logger.info(
            "Resolved title versions",
            title=title.number,
            versions=len(versions),
            dates=len(dates),
        )
        return dates, None


def contributing_dates(versions) -> Set[str]:
    """Deduplicated dates of the versions that count."""
    return {version.date for version in versions if version.contributes}


def build_transport(
    session: requests.Session,
    settings: Settings,
    deadline: Deadline,
    use_cache: bool = True,
) -> Transport:
    """Compose the production transport chain.

    Caching sits above rate limiting so cache hits are never throttled.
    """
    transport: Transport = RateLimitedTransport(session, settings.rate_limit_seconds, deadline)
    if use_cache:
        transport = CachingTransport(transport, settings.cache_path, deadline)
    return transport
