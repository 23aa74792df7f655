"""
Main pipeline orchestrator for the eCFR word counting system.

The title list is fetched once; every other unit of work (resolving a title's
dates, counting one dated document) runs on a fixed-size worker pool fed by a
single job queue. The calling thread is the only one that touches results:
it consumes completed futures, fans out document jobs for each resolved
title and finalises a title once every one of its document jobs is back.
"""

import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

import structlog

from ..core.deadline import Deadline
from ..core.errors import DeadlineExceeded
from ..core.models import Title, TitleResult, WordCountReport
from ..ingestion.ecfr_client import CatalogResolver
from ..processing.word_counter import DocumentFetcher

logger = structlog.get_logger(__name__)

# Upper bound on one coordinator wait, so an external cancel() is noticed.
POLL_SECONDS = 0.25


@dataclass(frozen=True)
class _Job:
    """One unit of work: resolve a title's dates, or count one dated document."""
    index: int
    date: Optional[str] = None

    @property
    def kind(self) -> str:
        return "versions" if self.date is None else "document"


class TitleWordCountPipeline:
    """Counts the words of every contributing revision of every title."""

    def __init__(
        self,
        resolver: CatalogResolver,
        fetcher: DocumentFetcher,
        max_workers: int = 6,
        deadline: Optional[Deadline] = None,
    ):
        self.resolver = resolver
        self.fetcher = fetcher
        self.max_workers = max(1, max_workers)
        self.deadline = deadline or Deadline()

    def run(self) -> WordCountReport:
        """
        Execute one complete run.

        Returns:
            WordCountReport with one row per title, in catalog order

        Raises:
            CatalogUnavailable: The title list could not be fetched
        """
        run_id = str(uuid.uuid4())
        log = logger.bind(run_id=run_id)
        report = WordCountReport(run_id=run_id)
        start = time.monotonic()

        titles = self.resolver.list_titles()
        log.info("Starting word count", titles=len(titles), max_workers=self.max_workers)

        rows = [TitleResult(title=title) for title in titles]
        outstanding: Dict[int, int] = {}
        pending: Dict[Future, _Job] = {}

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="ecfr-worker")
        try:
            for index, title in enumerate(titles):
                self._submit(executor, pending, _Job(index), title)

            while pending:
                if self.deadline.expired():
                    break
                done, _ = wait(pending, timeout=self._poll_timeout(), return_when=FIRST_COMPLETED)
                for future in done:
                    job = pending.pop(future)
                    self._complete(executor, pending, outstanding, rows, job, future)
        finally:
            if pending:
                self._abandon(pending, rows, log)
            executor.shutdown(wait=True, cancel_futures=True)

        # Jobs that failed fast on an expired deadline may have drained the
        # queue before the coordinator saw it fire.
        report.cancelled = self.deadline.expired()

        report.rows = rows
        report.finished_at = datetime.utcnow()
        log.info(
            "Word count completed" if not report.cancelled else "Word count cancelled",
            duration_seconds=round(time.monotonic() - start, 3),
            titles=len(rows),
            titles_with_errors=sum(1 for row in rows if row.has_errors),
            total_words=report.total_words,
        )
        return report

    def _submit(self, executor: ThreadPoolExecutor, pending: Dict[Future, _Job], job: _Job, title: Title) -> None:
        if job.date is None:
            future = executor.submit(self.resolver.list_contributing_dates, title)
        else:
            future = executor.submit(self.fetcher.fetch_and_count, title, job.date)
        pending[future] = job

    def _complete(
        self,
        executor: ThreadPoolExecutor,
        pending: Dict[Future, _Job],
        outstanding: Dict[int, int],
        rows: List[TitleResult],
        job: _Job,
        future: Future,
    ) -> None:
        """Fold one finished job into its title's result."""
        row = rows[job.index]
        try:
            value, error = future.result()
        except Exception as e:
            logger.error("Unexpected worker failure", title=row.title.number, job=job.kind, error=str(e))
            value, error = (set() if job.date is None else 0), e

        if job.date is None:
            if error is not None:
                row.add_error(error)
                self._finalise(row)
                return
            row.dates = len(value)
            outstanding[job.index] = len(value)
            if not value:
                self._finalise(row)
                return
            for date in sorted(value):
                self._submit(executor, pending, _Job(job.index, date), row.title)
            return

        if error is not None:
            row.add_error(error)
        else:
            row.add_count(value)
        outstanding[job.index] -= 1
        if outstanding[job.index] == 0:
            self._finalise(row)

    def _finalise(self, row: TitleResult) -> None:
        logger.info(
            "Title aggregated",
            title=row.title.number,
            dates=row.dates,
            word_count=row.word_count,
            errors=len(row.errors),
        )

    def _abandon(self, pending: Dict[Future, _Job], rows: List[TitleResult], log) -> None:
        """Record every unfinished job as a deadline error and stop the workers."""
        self.deadline.cancel()
        for future, job in pending.items():
            future.cancel()
            row = rows[job.index]
            unit = row.title.name if job.date is None else f"{row.title.name} {job.date}"
            row.add_error(DeadlineExceeded(f"run deadline exceeded before {job.kind} of {unit} finished"))
        log.warning("Run deadline exceeded", abandoned_jobs=len(pending))
        pending.clear()

    def _poll_timeout(self) -> float:
        remaining = self.deadline.remaining()
        if remaining is None:
            return POLL_SECONDS
        return min(remaining, POLL_SECONDS)
