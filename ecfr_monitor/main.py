"""
Main entry point for the eCFR word counting system.
"""

import sys
import argparse
import logging
from typing import List, Optional

import requests
import structlog

from .core.cache import cache_stats, clear_cache
from .core.config import Settings, get_settings
from .core.deadline import Deadline
from .core.errors import CatalogUnavailable
from .ingestion import CatalogResolver, build_transport
from .orchestration import TitleWordCountPipeline
from .processing import DocumentFetcher
from .publishing import ReportPublisher


def setup_logging(settings: Settings):
    """Configure structured logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="eCFR title word counter"
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Run pipeline command
    run_parser = subparsers.add_parser('run', help='Count words for every title')
    run_parser.add_argument(
        '--output',
        type=str,
        help='Write the report to this file instead of stdout'
    )
    run_parser.add_argument(
        '--workers',
        type=int,
        help='Number of concurrent workers'
    )
    run_parser.add_argument(
        '--rate-limit',
        type=float,
        help='Minimum seconds between requests to the API'
    )
    run_parser.add_argument(
        '--timeout',
        type=float,
        help='Deadline for the whole run in minutes (0 for none)'
    )
    run_parser.add_argument(
        '--cache-dir',
        type=str,
        help='Response cache directory'
    )
    run_parser.add_argument(
        '--no-cache',
        action='store_true',
        help='Bypass the response cache'
    )

    # Cache command
    cache_parser = subparsers.add_parser('cache', help='Inspect or clear the response cache')
    cache_parser.add_argument(
        'action',
        choices=['stats', 'clear'],
        help='Cache operation'
    )
    cache_parser.add_argument(
        '--cache-dir',
        type=str,
        help='Response cache directory'
    )

    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with any command line overrides applied."""
    overrides = {
        'max_workers': getattr(args, 'workers', None),
        'rate_limit_seconds': getattr(args, 'rate_limit', None),
        'run_timeout_minutes': getattr(args, 'timeout', None),
        'cache_dir': getattr(args, 'cache_dir', None),
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=overrides) if overrides else settings


def run_pipeline(settings: Settings, output: Optional[str] = None, use_cache: bool = True) -> int:
    """Run the word count and publish the report; return the exit code."""
    logger = structlog.get_logger(__name__)
    deadline = Deadline(settings.run_timeout_seconds)

    with requests.Session() as session:
        transport = build_transport(session, settings, deadline, use_cache=use_cache)
        api_kwargs = dict(
            base_url=settings.base_url,
            deadline=deadline,
            request_timeout=settings.request_timeout_seconds,
            user_agent=settings.user_agent,
        )
        pipeline = TitleWordCountPipeline(
            CatalogResolver(transport, **api_kwargs),
            DocumentFetcher(transport, **api_kwargs),
            max_workers=settings.max_workers,
            deadline=deadline,
        )

        logger.info("Starting pipeline execution",
                    cache_dir=settings.cache_dir if use_cache else None,
                    rate_limit_seconds=settings.rate_limit_seconds,
                    max_workers=settings.max_workers)
        try:
            report = pipeline.run()
        except CatalogUnavailable as e:
            logger.error("Pipeline aborted", error=str(e))
            return 1

    if not ReportPublisher(output).publish(report):
        return 1
    if report.cancelled:
        logger.error("Pipeline did not finish before the deadline", run_id=report.run_id)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    settings = apply_overrides(get_settings(), args)
    setup_logging(settings)
    logger = structlog.get_logger(__name__)

    if args.command == 'run':
        return run_pipeline(settings, output=args.output, use_cache=not args.no_cache)

    if args.command == 'cache':
        if args.action == 'stats':
            stats = cache_stats(settings.cache_dir)
            print(f"Cache directory: {stats['cache_dir']}")
            print(f"Entries: {stats['entries']}")
            print(f"Total bytes: {stats['total_bytes']}")
        else:
            removed = clear_cache(settings.cache_dir)
            logger.info("Cache cleared", removed=removed)
            print(f"Removed {removed} cache entries")
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
