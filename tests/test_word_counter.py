"""
Tests for full-text extraction and word counting.
"""
import time
from xml.etree.ElementTree import ParseError

import pytest
from structlog.testing import capture_logs

from ecfr_monitor.core.deadline import Deadline
from ecfr_monitor.core.errors import DeadlineExceeded, HTTPStatusError
from ecfr_monitor.core.models import Title
from ecfr_monitor.processing.word_counter import DocumentFetcher, count_words, plain_text

from conftest import BASE_URL, StreamingTransport

TITLE_ONE = Title(number=1, name="Title One")
DOC_URL = f"{BASE_URL}/full/2020-01-01/title-1.xml"

SAMPLE_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<DLPSTEXTCLASS>
  <HEADER><FILEDESC><TITLESTMT><TITLE>Title 1: General Provisions</TITLE></TITLESTMT></FILEDESC></HEADER>
  <TEXT>
    <DIV5 N="1" TYPE="PART">
      <HEAD>PART 1 - DEFINITIONS</HEAD>
      <P>In this chapter the <I>Act</I> means the Federal Register Act.</P>
    </DIV5>
  </TEXT>
</DLPSTEXTCLASS>
"""


class TestPlainText:
    """Test suite for plain_text"""

    def test_simple_document(self):
        """Character data is flattened with single spaces"""
        assert plain_text([b"<doc>Hello world foo</doc>"]) == "Hello world foo"

    def test_text_follows_document_order(self):
        """Text before, inside and after nested elements keeps its order"""
        xml = b"<r>zero<p>one</p>two<p>three <i>four</i> five</p>six</r>"
        assert plain_text([xml]) == "zero one two three four five six"

    def test_tokens_are_trimmed(self):
        """Indentation and line breaks around tokens are dropped"""
        xml = b"<r>\n    <a>\n   alpha   \n</a>\n  <b>beta</b>\n</r>"
        assert plain_text([xml]) == "alpha beta"

    def test_tags_separate_words(self):
        """Adjacent elements never glue their words together"""
        assert plain_text([b"<r><a>foo</a><b>bar</b></r>"]) == "foo bar"

    def test_entities_are_decoded(self):
        """Entity references are part of the surrounding text"""
        assert plain_text([b"<r>AT&amp;T &lt;rules&gt;</r>"]) == "AT&T <rules>"

    def test_attributes_are_not_text(self):
        """Attribute values are markup, not character data"""
        assert plain_text([b'<r><DIV5 N="1" TYPE="PART">body</DIV5></r>']) == "body"

    def test_chunking_does_not_change_result(self):
        """Feeding byte by byte gives the same text as feeding at once"""
        whole = plain_text([SAMPLE_XML])
        pieces = plain_text(SAMPLE_XML[i:i + 1] for i in range(len(SAMPLE_XML)))
        assert pieces == whole
        assert whole.startswith("Title 1: General Provisions PART 1 - DEFINITIONS")

    def test_comment_separates_words(self):
        """A comment between two text runs ends the first run"""
        text = plain_text([b"<doc><p>foo<!-- note -->bar</p></doc>"])
        assert text == "foo bar"
        assert count_words(text) == 2

    def test_processing_instruction_separates_words(self):
        """A processing instruction between two text runs ends the first run"""
        text = plain_text([b"<doc><p>foo<?page 12?>bar</p></doc>"])
        assert text == "foo bar"
        assert count_words(text) == 2

    def test_comment_text_is_not_counted(self):
        """Comments and instructions contribute no words of their own"""
        xml = b"<?xml version=\"1.0\"?><?xml-stylesheet href=\"s.xsl\"?><doc><!-- editorial note -->one</doc>"
        assert plain_text([xml]) == "one"

    def test_cdata_is_text(self):
        assert plain_text([b"<doc>a <![CDATA[b < c]]> d</doc>"]) == "a b < c d"

    def test_malformed_xml_raises(self):
        """A stream that is not well-formed XML is a parse error"""
        with pytest.raises(ParseError):
            plain_text([b"<r><a>unclosed</r>"])


class TestCountWords:
    """Test suite for count_words"""

    @pytest.mark.parametrize("text,expected", [
        ("", 0),
        ("   \n\t ", 0),
        ("Hello world foo", 3),
        ("  leading and trailing  ", 3),
        ("tabs\tand\nnewlines  mixed", 4),
        ("§ 3474.20 punctuation, counts!", 4),
    ])
    def test_whitespace_tokenization(self, text, expected):
        """Words are maximal runs of non-whitespace"""
        assert count_words(text) == expected


class TestDocumentFetcher:
    """Test suite for DocumentFetcher"""

    def test_counts_words(self, fetcher, stub):
        """A 200 document contributes its word count"""
        stub.add(DOC_URL, body=b"<doc><p>Hello</p> world <b>foo</b></doc>")

        count, error = fetcher.fetch_and_count(TITLE_ONE, "2020-01-01")

        assert (count, error) == (3, None)
        assert stub.requests[0].headers["Accept"] == "application/xml"

    def test_count_document_details(self, fetcher, stub):
        """The detailed result carries URL and size"""
        body = b"<doc>Hello world foo</doc>"
        stub.add(DOC_URL, body=body)

        document = fetcher.count_document(TITLE_ONE, "2020-01-01")

        assert document.url == DOC_URL
        assert document.size_bytes == len(body)
        assert document.word_count == 3

    def test_http_error(self, fetcher, stub):
        """A non-200 document contributes zero and an error"""
        stub.add(DOC_URL, 404, b"missing")

        count, error = fetcher.fetch_and_count(TITLE_ONE, "2020-01-01")

        assert count == 0
        assert isinstance(error, HTTPStatusError)
        assert str(error) == f"HTTP 404 {DOC_URL}"

    def test_too_many_requests_is_logged_not_retried(self, fetcher, stub):
        """A 429 logs its Retry-After hint and is a single failed attempt"""
        stub.add(DOC_URL, 429, b"slow down", {"Retry-After": "30"})

        with capture_logs() as logs:
            count, error = fetcher.fetch_and_count(TITLE_ONE, "2020-01-01")

        assert count == 0
        assert error.status_code == 429
        assert stub.calls[DOC_URL] == 1
        warnings = [log for log in logs if log["event"] == "HTTP 429 Too Many Requests"]
        assert warnings and warnings[0]["retry_after"] == "30"

    def test_parse_error_releases_body(self, fetcher, stub):
        """A document that fails to parse mid-stream is still closed"""
        stub.add(DOC_URL, body=b"<doc><p>good words</p><broken></doc>" + b" trailing" * 100)

        count, error = fetcher.fetch_and_count(TITLE_ONE, "2020-01-01")

        assert count == 0
        assert isinstance(error, ParseError)
        assert all(body.closed for body in stub.bodies)

    def test_success_releases_body(self, fetcher, stub):
        """A counted document leaves no open body behind"""
        stub.add(DOC_URL, body=SAMPLE_XML)
        fetcher.fetch_and_count(TITLE_ONE, "2020-01-01")
        assert all(body.closed for body in stub.bodies)

    def test_deadline_stops_streaming_document(self):
        """A document still downloading when the deadline fires is cut off"""
        transport = StreamingTransport(chunks=60, pause=0.1)
        fetcher = DocumentFetcher(transport, base_url=BASE_URL, deadline=Deadline(0.3))

        started = time.monotonic()
        count, error = fetcher.fetch_and_count(TITLE_ONE, "2020-01-01")

        assert time.monotonic() - started < 2.0
        assert count == 0
        assert isinstance(error, DeadlineExceeded)
        body = transport.bodies[0]
        assert body.closed
        assert body.reads < 10, "The rest of the body should not be drained"
