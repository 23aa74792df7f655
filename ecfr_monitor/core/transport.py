"""
The single capability every HTTP layer of the pipeline shares.

A transport sends one prepared request and returns one response. The
innermost transport is a plain ``requests.Session``; caching and rate
limiting wrap it without changing the signature.
"""

from typing import BinaryIO, Mapping, Optional, Protocol

import requests
import structlog
from requests.structures import CaseInsensitiveDict

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 64 * 1024


class Transport(Protocol):
    """Anything with ``requests.Session.send`` semantics."""

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        ...


def prepare_get(url: str, accept: str, user_agent: Optional[str] = None) -> requests.PreparedRequest:
    """Build a GET request with the given Accept header."""
    headers = {"Accept": accept}
    if user_agent:
        headers["User-Agent"] = user_agent
    return requests.Request("GET", url, headers=headers).prepare()


def file_response(
    request: requests.PreparedRequest,
    body: BinaryIO,
    headers: Optional[Mapping[str, str]] = None,
) -> requests.Response:
    """Build a 200 response whose body streams from an open file.

    The content length is left unknown; the caller owns ``body`` and must
    hand the response to ``release()`` when done.
    """
    response = requests.Response()
    response.status_code = 200
    response.reason = "OK"
    response.headers = CaseInsensitiveDict(headers or {})
    response.headers.pop("Content-Length", None)
    response.raw = body
    response.url = request.url
    response.request = request
    return response


def release(response: requests.Response, drain: bool = True) -> None:
    """Drain whatever is left of the body, then close it.

    Safe to call more than once and on every exit path. File-backed bodies
    are closed too, which ``Response.close()`` alone skips once the content
    has been consumed.
    """
    raw = response.raw
    try:
        if drain and raw is not None and not getattr(raw, "closed", False):
            while raw.read(CHUNK_SIZE):
                pass
    except Exception as e:
        logger.debug("Failed to drain response body", url=response.url, error=str(e))
    finally:
        if raw is not None:
            response.close()
            raw.close()
