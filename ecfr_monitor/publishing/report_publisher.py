"""Tab-separated report publisher for eCFR word counts."""

import sys
from pathlib import Path
from typing import Optional, TextIO

import structlog

from ..core.models import TitleResult, WordCountReport

logger = structlog.get_logger(__name__)

HEADER = "Title\tVersionCount"
ERROR_SEPARATOR = "; "


def format_row(row: TitleResult) -> str:
    """Render one title as ``name<TAB>count`` or ``name<TAB>ERROR: ...``.

    A title with any error is shown as an error row even when some of its
    documents were counted.
    """
    if row.has_errors:
        return f"{row.title.name}\tERROR: {ERROR_SEPARATOR.join(row.errors)}"
    return f"{row.title.name}\t{row.word_count}"


def format_report(report: WordCountReport) -> str:
    """Render the whole report, header first, rows in catalog order."""
    lines = [HEADER]
    lines.extend(format_row(row) for row in report.rows)
    return "\n".join(lines) + "\n"


class ReportPublisher:
    """Publisher that writes the report to a file or to stdout."""

    def __init__(self, output_path: Optional[str] = None, stream: Optional[TextIO] = None):
        """Initialize the report publisher.

        Args:
            output_path: File to write; stdout when omitted
            stream: Explicit text stream, used instead of stdout
        """
        self.output_path = Path(output_path) if output_path else None
        self.stream = stream

    def publish(self, report: WordCountReport) -> bool:
        """Publish the report.

        Returns:
            True if successful, False otherwise
        """
        content = format_report(report)
        for row in report.rows:
            if row.has_errors and row.word_count:
                logger.warning(
                    "Partial count withheld for title with errors",
                    title=row.title.number,
                    word_count=row.word_count,
                    errors=len(row.errors),
                )

        if self.output_path is None:
            stream = self.stream or sys.stdout
            stream.write(content)
            stream.flush()
            return True

        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.output_path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.error("Failed to publish report", path=str(self.output_path), error=str(e))
            return False

        logger.info("Report published", path=str(self.output_path), rows=len(report.rows))
        return True
