"""
Full-text retrieval and word counting for eCFR title documents.

A title's full text is a single large XML document. It is streamed through an
incremental parser so only the character data, never the whole tree, is kept
in memory.
"""

from typing import Iterable, List, Optional, Tuple
from xml.etree import ElementTree as ET

import structlog

from ..core.cache import cache_key
from ..core.errors import HTTPStatusError
from ..core.models import DocumentCount, Title
from ..core.transport import CHUNK_SIZE, release
from ..ingestion.ecfr_client import ACCEPT_XML, FETCH_ERRORS, EcfrApi

logger = structlog.get_logger(__name__)

DOCUMENT_ERRORS = FETCH_ERRORS + (ET.ParseError,)


class _CharDataTarget:
    """Parser target that turns every run of text between markup into a token.

    Tags, comments and processing instructions all end a run. Each run is
    trimmed of surrounding whitespace and empty runs are dropped.
    """

    def __init__(self):
        self.tokens: List[str] = []
        self._run: List[str] = []

    def start(self, tag, attrib):
        self._boundary()

    def end(self, tag):
        self._boundary()

    def comment(self, text):
        self._boundary()

    def pi(self, target, text=None):
        self._boundary()

    def data(self, text):
        self._run.append(text)

    def close(self) -> str:
        self._boundary()
        return " ".join(self.tokens)

    def _boundary(self) -> None:
        if not self._run:
            return
        token = "".join(self._run).strip()
        self._run = []
        if token:
            self.tokens.append(token)


class CharDataExtractor:
    """Collects character data from a streamed XML document in document order.

    No tree is built; the parser reports text and markup straight to
    ``_CharDataTarget``.
    """

    def __init__(self):
        self.parser = ET.XMLParser(target=_CharDataTarget())

    def feed(self, data: bytes) -> None:
        self.parser.feed(data)

    def close(self) -> str:
        """Finish parsing and return the flattened text."""
        return self.parser.close()


def plain_text(chunks: Iterable[bytes]) -> str:
    """Flatten an XML byte stream to its character data.

    Raises:
        xml.etree.ElementTree.ParseError: The stream is not well-formed XML
    """
    extractor = CharDataExtractor()
    for chunk in chunks:
        extractor.feed(chunk)
    return extractor.close()


def count_words(text: str) -> int:
    """Count whitespace-delimited words."""
    return len(text.split())


class DocumentFetcher(EcfrApi):
    """Fetches one full-text document per (title, date) and counts its words."""

    def count_document(self, title: Title, date: str) -> DocumentCount:
        """
        Retrieve and count the full text of a title as of a date.

        Args:
            title: Title to fetch
            date: Effective date (YYYY-MM-DD)

        Returns:
            DocumentCount for the document

        Raises:
            HTTPStatusError: The origin answered with a status other than 200
            xml.etree.ElementTree.ParseError: The body is not well-formed XML
        """
        url = self.full_text_url(date, title.number)
        response = self._send(url, ACCEPT_XML)
        size = 0
        try:
            if response.status_code != 200:
                if response.status_code == 429:
                    logger.warning(
                        "HTTP 429 Too Many Requests",
                        url=url,
                        retry_after=response.headers.get("Retry-After"),
                    )
                raise HTTPStatusError(response.status_code, url)

            extractor = CharDataExtractor()
            for chunk in response.iter_content(CHUNK_SIZE):
                self.deadline.check()
                size += len(chunk)
                extractor.feed(chunk)
            text = extractor.close()
        finally:
            release(response, drain=not self.deadline.expired())

        word_count = count_words(text)
        logger.info(
            "Fetched document",
            title=title.number,
            date=date,
            size_bytes=size,
            word_count=word_count,
            cache_key=cache_key(url),
        )
        return DocumentCount(
            title_number=title.number,
            date=date,
            url=url,
            word_count=word_count,
            size_bytes=size,
        )

    def fetch_and_count(self, title: Title, date: str) -> Tuple[int, Optional[Exception]]:
        """Count one document, returning the error instead of raising it.

        Returns:
            The word count and None, or zero and the error
        """
        try:
            document = self.count_document(title, date)
        except DOCUMENT_ERRORS as e:
            logger.error(
                "Failed to fetch document",
                title=title.number,
                date=date,
                error=str(e),
            )
            return 0, e
        return document.word_count, None
