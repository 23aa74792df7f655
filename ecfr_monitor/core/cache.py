"""
On-disk response cache for eCFR API requests.

Entries are keyed by the SHA-256 of the request URL and hold the exact
response body bytes. A present entry is served forever: there is no TTL and
no revalidation against the origin, so clearing the cache directory is the
only way to pick up upstream changes.
"""

import hashlib
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests
import structlog

from .deadline import Deadline
from .errors import CacheError
from .transport import CHUNK_SIZE, Transport, file_response, release

logger = structlog.get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def cache_key(url: str) -> str:
    """Generate the cache file name for a URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


class CachingTransport:
    """Transport decorator that serves and stores 200 bodies on disk."""

    def __init__(self, inner: Transport, cache_dir: Union[str, Path], deadline: Optional[Deadline] = None):
        self.inner = inner
        self.cache_dir = Path(cache_dir)
        self.deadline = deadline or Deadline()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, url: str) -> Path:
        return self.cache_dir / cache_key(url)

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        """Send a request, answering from the cache when possible.

        Args:
            request: Prepared request; only its URL takes part in the key
            **kwargs: Passed through to the inner transport on a miss

        Returns:
            A 200 response streaming from the cache file, or the inner
            transport's response untouched when its status is not 200

        Raises:
            CacheError: The cache file could not be written or read
            DeadlineExceeded: The run deadline fired while the body was being stored
        """
        path = self.path_for(request.url)

        if path.exists():
            logger.debug("Cache hit", url=request.url, key=path.name)
            return file_response(request, self._open(path))

        response = self.inner.send(request, **kwargs)
        if response.status_code != 200:
            return response

        headers = response.headers.copy()
        try:
            self._store(path, response)
        finally:
            release(response, drain=not self.deadline.expired())

        logger.info("Cached response", url=request.url, path=str(path))
        return file_response(request, self._open(path), headers)

    def _store(self, path: Path, response: requests.Response) -> None:
        """Copy the body into a temporary file, then move it into place.

        Concurrent writers of one key write identical bytes, and the rename
        keeps readers from ever seeing a partial entry.
        """
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{path.name}.", suffix=".tmp")
        except OSError as e:
            raise CacheError(f"cannot create cache file for {response.url}: {e}") from e

        try:
            with os.fdopen(fd, "wb") as tmp:
                for chunk in response.iter_content(CHUNK_SIZE):
                    self.deadline.check()
                    tmp.write(chunk)
            os.replace(tmp_name, path)
        except OSError as e:
            _discard(tmp_name)
            raise CacheError(f"cannot write cache file {path}: {e}") from e
        except Exception:
            _discard(tmp_name)
            raise

    def _open(self, path: Path):
        try:
            return open(path, "rb")
        except OSError as e:
            raise CacheError(f"cannot read cache file {path}: {e}") from e


def cache_stats(cache_dir: Union[str, Path]) -> Dict[str, Any]:
    """Get cache statistics."""
    cache_dir = Path(cache_dir)
    entries = [p for p in cache_dir.iterdir() if _KEY_PATTERN.match(p.name)] if cache_dir.is_dir() else []
    return {
        "cache_dir": str(cache_dir),
        "entries": len(entries),
        "total_bytes": sum(p.stat().st_size for p in entries),
    }


def clear_cache(cache_dir: Union[str, Path]) -> int:
    """Delete every cache entry and return how many were removed."""
    cache_dir = Path(cache_dir)
    if not cache_dir.is_dir():
        return 0
    removed = 0
    for path in cache_dir.iterdir():
        if _KEY_PATTERN.match(path.name):
            path.unlink(missing_ok=True)
            removed += 1
        elif path.name.endswith(".tmp"):
            path.unlink(missing_ok=True)
    logger.info("Cleared response cache", cache_dir=str(cache_dir), removed=removed)
    return removed


def _discard(name: str) -> None:
    try:
        os.unlink(name)
    except FileNotFoundError:
        pass
