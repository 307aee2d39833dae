"""
Command-line entrypoint to run one crawl in the foreground.

This module wires up:
- Argument parsing (locations, content types, paging, politeness, storage).
- Logging setup: every record carries the emitting scraper's name.
- One orchestrator run over the {location x content type} matrix, followed
  by a printed summary and an optional CSV export of the stored drafts.

Exit codes: 0 when the run completed, 1 when it was stopped or failed,
2 on a configuration error.
"""

from __future__ import annotations

import argparse
import logging
import signal
import pandas as pd

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from scrapers.models import RunProgress
from scrapers.orchestrator import CrawlOrchestrator
from utils.config import DATE_POSTED_FILTERS, ConfigError, RunConfig, db_url_from_env
from utils.http import HttpFetcher
from utils.persistence import PersistenceError, SqlGateway
from utils.schema import ContentType, Draft, draft_to_record


class ScraperField(logging.Filter):
    """Default `scraper` to an empty string so requests/werkzeug records still format."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "scraper"):
            record.scraper = ""
        return True


def configure_logging(logfile: Optional[str], suppress_console: bool) -> None:
    """
    Route root logging to `logfile` and/or stderr.

    With neither, records go to a NullHandler so library warnings do not
    leak onto the terminal.
    """
    handlers: list[logging.Handler] = []
    if logfile:
        Path(logfile).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(logfile))
    if not suppress_console:
        handlers.append(logging.StreamHandler())
    if not handlers:
        handlers.append(logging.NullHandler())

    fmt = "%(asctime)s [%(levelname)s] %(scraper)s %(message)s"
    formatter = logging.Formatter(fmt)

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(logging.INFO)

    filt = ScraperField()
    for h in handlers:
        h.setFormatter(formatter)
        h.addFilter(filt)
        root.addHandler(h)

    # per-request connection chatter
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse CLI arguments.

    Options left unset fall back to the SCRAPER_* environment variables
    and then to built-in defaults (see `utils.config`).
    """
    parser = argparse.ArgumentParser(
        description="Crawl public listings across locations and content types."
    )
    parser.add_argument(
        "--locations",
        nargs="+",
        default=None,
        help='Locations to crawl, in order (e.g. "London, England" Berlin).',
    )
    parser.add_argument(
        "--types",
        nargs="+",
        default=None,
        metavar="TYPE",
        help=f"Content types to crawl ({', '.join(ct.value for ct in ContentType)}).",
    )
    parser.add_argument(
        "--keywords",
        type=str,
        default=None,
        help="Search keywords applied to every selected content type.",
    )
    parser.add_argument(
        "--max-pages", type=int, default=None, help="Search pages per location/type."
    )
    parser.add_argument(
        "--delay",
        type=int,
        default=None,
        help="Base delay between requests in ms (actual sleep is jittered up to 1.5x).",
    )
    parser.add_argument(
        "--max-retries", type=int, default=None, help="Retries per failed page fetch."
    )
    parser.add_argument(
        "--date-posted",
        choices=tuple(DATE_POSTED_FILTERS),
        default=None,
        help="Only list jobs posted within this window.",
    )
    parser.add_argument(
        "--db-url",
        type=str,
        default=None,
        help="Database URL for persistence (default: $JOBS_DB_URL or a local SQLite file).",
    )
    parser.add_argument(
        "--export",
        type=str,
        default=None,
        metavar="OUT_CSV",
        help="Write the drafts stored by this run to a CSV file.",
    )
    parser.add_argument(
        "--logfile",
        type=str,
        default=None,
        help="Path to log file (default: console only).",
    )
    parser.add_argument(
        "--suppress",
        action="store_true",
        help="Suppress console logging.",
    )
    return parser.parse_args(argv)


def build_payload(args: argparse.Namespace) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "locations": args.locations,
        "scrapeTypes": args.types,
        "keywords": args.keywords,
        "maxPages": args.max_pages,
        "delayBetweenRequests": args.delay,
        "maxRetries": args.max_retries,
        "datePostedFilter": args.date_posted,
    }
    return {k: v for k, v in payload.items() if v is not None}


def export_drafts(drafts: List[Draft], filename: str) -> int:
    """
    Export drafts to CSV (one row per draft; list fields joined with '; ').

    Raises:
        OSError: If the destination path is invalid or not writable.
    """
    rows = []
    for d in drafts:
        rec = draft_to_record(d)
        rec = {k: "; ".join(v) if isinstance(v, list) else v for k, v in rec.items()}
        rows.append({"content_type": type(d).__name__.replace("Draft", "").lower(), **rec})
    Path(filename).parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows).to_csv(filename, index=False)
    return len(rows)


def print_summary(snap: RunProgress) -> None:
    status = "completed" if snap.completed else "stopped" if snap.stopped else "failed"
    print(f"Run {status}.")
    print(f"  locations: {snap.completed_locations}/{snap.total_locations}")
    for ct in ContentType:
        n = snap.counts.get(ct, 0)
        if n:
            print(f"  {ct.value}: {n}")
    print(f"  errors: {snap.errors}  retries: {snap.retries}  rate limits: {snap.rate_limit_hits}")
    if snap.unsupported_types:
        print(f"  unsupported: {', '.join(snap.unsupported_types)}")
    if snap.last_error:
        print(f"  last error: {snap.last_error}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Program entrypoint: configure logging, parse args, and run one crawl.

    Returns:
        Process exit code.
    """
    args = parse_args(argv)
    configure_logging(args.logfile, args.suppress)
    logger = logging.getLogger(__name__)

    try:
        config = RunConfig.from_payload(build_payload(args))
    except ConfigError as e:
        print(f"Invalid configuration: {e}")
        return 2

    db_url = args.db_url or db_url_from_env()
    try:
        gateway = SqlGateway(db_url)
    except PersistenceError as e:
        print(f"Cannot open database {db_url}: {e}")
        return 2

    fetcher = HttpFetcher(timeout=config.timeout_s)
    orch = CrawlOrchestrator(fetcher=fetcher, gateway=gateway)

    # Ctrl-C requests a cooperative stop instead of killing mid-write.
    previous = signal.signal(signal.SIGINT, lambda *_: orch.stop())
    try:
        snap = orch.run(config)
    finally:
        signal.signal(signal.SIGINT, previous)
        fetcher.close()
        gateway.close()

    print_summary(snap)
    if args.export:
        n = export_drafts(orch.drafts, args.export)
        logger.info("export:csv path=%s n=%d", args.export, n, extra={"scraper": "cli"})
        print(f"Exported {n} records to {args.export}")
    return 0 if snap.completed else 1


if __name__ == "__main__":
    raise SystemExit(main())
