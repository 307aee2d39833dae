"""
Base scraper class and common utilities.

`ContentScraper` defines what one content type's crawler looks like to the
orchestrator: it is built once per run and then asked to `scrape(location)`
for each location in turn, returning a `ScrapeResult`. Shared helpers cover
structured logging, cooperative cancellation and the per-page retry budget.

Typical usage (via the orchestrator):
    scraper = LinkedInJobScraper(fetcher, config, throttle, stop_event)
    result = scraper.scrape("London, England, United Kingdom")
"""

from __future__ import annotations

import logging
import threading

from time import monotonic
from typing import Any, ClassVar, Mapping, Optional

from scrapers.models import ScrapeResult
from utils.config import RunConfig
from utils.http import HttpFetcher, NetworkError, RateLimitError, Throttle
from utils.schema import ContentType


def fmt_pairs(**kv: Any) -> str:
    """
    Render key/value pairs as a single space-prefixed string.

    Args:
        **kv: Arbitrary key/value pairs to serialize.

    Returns:
        Concatenated `key=value` pairs with a leading space, or an empty
        string if no pairs are provided.
    """
    if not kv:
        return ""
    parts = [f"{k}={v}" for k, v in kv.items()]
    return " " + " ".join(parts)


class ContentScraper:
    """
    Abstract base class for all content-type scrapers.

    Subclasses set `content_type` and implement `scrape`.

    Attributes:
        fetcher: Fetch layer (anything with `fetch(url, headers, timeout, params)`).
        config: The run's immutable configuration.
        throttle: Jittered delay shared by every network call of the run.
        stop_event: Set by `stop()`; checked before each page and detail fetch.
        logger: LoggerAdapter that injects a `scraper` field for uniform logs.
    """

    content_type: ClassVar[Optional[ContentType]] = None

    def __init__(
        self,
        fetcher: HttpFetcher,
        config: RunConfig,
        throttle: Optional[Throttle] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.fetcher = fetcher
        self.config = config
        self.stop_event = stop_event or threading.Event()
        self.throttle = throttle or Throttle(config.delay_ms, self.stop_event)

        name = self.content_type.value if self.content_type else "content"
        # Standardized logger with a 'scraper' token for consistent formatting.
        self.logger = logging.LoggerAdapter(
            logging.getLogger(self.__class__.__name__), {"scraper": name}
        )
        self.log_every = 10

    def fmt_pairs(self, **kv: Any) -> str:
        return fmt_pairs(**kv)

    def log(self, event: str, level: str = "info", **kv: Any) -> None:
        """
        Emit a standardized log line as: `event key=value ...`.

        Args:
            event: Short event token (e.g., 'list:page', 'detail:error').
            level: Logging level name (e.g., 'info', 'warning', 'error').
            **kv: Structured context fields to include alongside the event.
        """
        msg = f"{event}{self.fmt_pairs(**kv)}"
        getattr(self.logger, level)(msg)

    def should_stop(self) -> bool:
        return self.stop_event.is_set()

    # -----------------------------
    # Methods to override in subclasses
    # -----------------------------
    def scrape(self, location: str) -> ScrapeResult:
        """
        Crawl one location for this content type.

        Returns:
            A `ScrapeResult`; recoverable failures are listed in `errors`
            rather than raised.

        Raises:
            NotImplementedError: Subclasses must implement this method.
        """
        raise NotImplementedError

    # -----------------------------
    # Shared utilities
    # -----------------------------
    def new_result(self, location: str) -> ScrapeResult:
        assert self.content_type is not None
        return ScrapeResult(content_type=self.content_type, location=location)

    def fetch_with_retries(
        self,
        url: str,
        result: ScrapeResult,
        params: Optional[Mapping[str, Any]] = None,
        what: str = "page",
    ) -> Optional[str]:
        """
        Fetch `url`, retrying up to `config.max_retries` times.

        Every attempt waits on the shared throttle first. Rate-limit answers
        are counted on `result.rate_limit_hits` and logged as warnings; no
        extra backoff is applied beyond the normal jittered delay.

        Args:
            url: Absolute URL to fetch.
            result: Result being built; its retry counters are updated.
            params: Query parameters.
            what: Label used in log lines ('page' or 'detail').

        Returns:
            The body text, or None if a stop was requested before a fetch
            could be issued.

        Raises:
            NetworkError: The last failure once the budget is exhausted.
        """
        attempts = 1 + max(0, self.config.max_retries)
        last: Optional[NetworkError] = None
        for attempt in range(1, attempts + 1):
            if self.should_stop():
                return None
            self.throttle.wait()
            if self.should_stop():
                return None
            try:
                return self.fetcher.fetch(
                    url, params=params, timeout=self.config.timeout_s
                )
            except RateLimitError as e:
                result.rate_limit_hits += 1
                last = e
                self.log(
                    f"{what}:rate_limited",
                    level="warning",
                    status=e.status,
                    attempt=attempt,
                    url=e.url,
                )
            except NetworkError as e:
                last = e
                self.log(
                    f"{what}:fetch_error",
                    level="warning",
                    attempt=attempt,
                    reason=e.reason,
                    url=e.url,
                )
            if attempt < attempts:
                result.retries += 1
        assert last is not None
        raise last

    def finish(self, result: ScrapeResult, started: float) -> ScrapeResult:
        result.duration_s = round(monotonic() - started, 3)
        result.stopped = self.should_stop()
        self.log(
            "scrape:done",
            location=result.location,
            pages=result.pages_processed,
            found=result.items_found,
            drafts=len(result.drafts),
            invalid=result.invalid,
            errors=len(result.errors),
            seconds=result.duration_s,
        )
        return result
