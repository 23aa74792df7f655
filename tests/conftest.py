"""
Shared fixtures and stub transports for the eCFR word counter tests.
"""
import io
import json
import threading
import time
from collections import Counter
from typing import Dict, Optional, Tuple

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from ecfr_monitor.core.deadline import Deadline
from ecfr_monitor.ingestion.ecfr_client import CatalogResolver
from ecfr_monitor.processing.word_counter import DocumentFetcher

BASE_URL = "https://ecfr.test/api/versioner/v1"


def make_response(status: int, body: bytes = b"", headers: Optional[Dict[str, str]] = None,
                  url: str = "") -> requests.Response:
    """Build a requests.Response whose body streams from memory."""
    response = requests.Response()
    response.status_code = status
    response.reason = "OK" if status == 200 else "Error"
    response.headers = CaseInsensitiveDict(headers or {})
    response.raw = io.BytesIO(body)
    response.url = url
    return response


class StubTransport:
    """Transport answering from a URL -> (status, body, headers) table.

    Unknown URLs answer 404. Every call is counted per URL and the last
    request and keyword arguments are kept for inspection.
    """

    def __init__(self, routes: Optional[Dict[str, Tuple]] = None, delay: float = 0.0):
        self.routes = dict(routes or {})
        self.delay = delay
        self.calls = Counter()
        self.requests = []
        self.kwargs = []
        self.bodies = []
        self._lock = threading.Lock()

    def add(self, url: str, status: int = 200, body=b"", headers: Optional[Dict[str, str]] = None) -> None:
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode("utf-8")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[url] = (status, body, headers or {})

    def send(self, request, **kwargs):
        with self._lock:
            self.calls[request.url] += 1
            self.requests.append(request)
            self.kwargs.append(kwargs)

        if self.delay:
            timeout = kwargs.get("timeout")
            if timeout is not None and timeout < self.delay:
                time.sleep(timeout)
                raise requests.exceptions.ReadTimeout(f"read timed out after {timeout:.2f}s")
            time.sleep(self.delay)

        status, body, headers = self.routes.get(request.url, (404, b"not found", {}))
        response = make_response(status, body, headers, url=request.url)
        response.request = request
        with self._lock:
            self.bodies.append(response.raw)
        return response

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


class SlowBody(io.RawIOBase):
    """Body that hands out one chunk per read, pausing before each."""

    def __init__(self, chunks, pause: float):
        super().__init__()
        self.chunks = list(chunks)
        self.pause = pause
        self.reads = 0

    def readable(self):
        return True

    def read(self, size=-1):
        if self.closed or not self.chunks:
            return b""
        time.sleep(self.pause)
        self.reads += 1
        return self.chunks.pop(0)


class StreamingTransport:
    """Transport answering every URL with 200 and a slowly streamed document."""

    def __init__(self, chunks: int = 60, pause: float = 0.1):
        self.chunk_count = chunks
        self.pause = pause
        self.bodies = []

    def send(self, request, **kwargs):
        body = SlowBody([b"<doc>"] + [b"<p>word</p>"] * self.chunk_count + [b"</doc>"], self.pause)
        response = make_response(200, url=request.url)
        response.raw = body
        response.request = request
        self.bodies.append(body)
        return response


class FailingTransport:
    """Transport whose every call fails at the connection level."""

    def __init__(self):
        self.calls = 0

    def send(self, request, **kwargs):
        self.calls += 1
        raise requests.exceptions.ConnectionError(f"connection refused: {request.url}")


def titles_payload(*titles):
    return {"titles": [{"number": number, "name": name} for number, name in titles]}


def version(date: str, identifier: str = "1.1", substantive: bool = True, removed: bool = False):
    return {
        "date": date,
        "amendment_date": date,
        "issue_date": date,
        "identifier": identifier,
        "name": f"§ {identifier}   Definitions.",
        "part": identifier.split(".")[0],
        "substantive": substantive,
        "removed": removed,
        "subpart": None,
        "title": "1",
        "type": "section",
    }


@pytest.fixture
def stub():
    return StubTransport()


@pytest.fixture
def deadline():
    return Deadline()


@pytest.fixture
def resolver(stub, deadline):
    return CatalogResolver(stub, base_url=BASE_URL, deadline=deadline)


@pytest.fixture
def fetcher(stub, deadline):
    return DocumentFetcher(stub, base_url=BASE_URL, deadline=deadline)
