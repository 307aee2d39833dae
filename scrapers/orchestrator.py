"""
Crawl orchestrator: drives one run over the {location x content type} matrix.

A run processes locations in order and, for each, every selected content
type in order. Each unit of work is delegated to the content type's scraper;
its drafts are persisted and only then counted on the run's `RunProgress`.
Failures inside a unit are absorbed into the error counters so the rest of
the matrix still runs.

Runs execute on a background thread by default; `stop()` sets an event that
every scraper checks before issuing a fetch, and that the politeness sleeps
wait on, so cancellation takes effect after the in-flight request.
"""

from __future__ import annotations

import logging
import random
import threading

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from scrapers.base import ContentScraper, fmt_pairs
from scrapers.models import RunProgress, ScrapeResult
from utils.config import RunConfig
from utils.http import HttpFetcher, Throttle
from utils.persistence import PersistenceGateway
from utils.schema import ContentType, Draft, JobDraft, draft_to_record

FinishCallback = Callable[[RunProgress], None]


class AlreadyRunningError(RuntimeError):
    """`start()` was called while a run is still active."""


class CrawlOrchestrator:
    """
    Owns one run at a time and its progress.

    Attributes:
        fetcher: Fetch layer handed to every scraper.
        gateway: Persistence gateway; when None drafts are counted but not
            stored (dry run).
        scrapers: ContentType -> scraper class; defaults to `SCRAPER_REGISTRY`.
        drafts: Drafts persisted (or counted, in a dry run) by the latest run.
    """

    def __init__(
        self,
        fetcher: Optional[HttpFetcher] = None,
        gateway: Optional[PersistenceGateway] = None,
        scrapers: Optional[Mapping[ContentType, Type[ContentScraper]]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if scrapers is None:
            from scrapers import SCRAPER_REGISTRY

            scrapers = SCRAPER_REGISTRY
        self.fetcher = fetcher or HttpFetcher()
        self.gateway = gateway
        self.scrapers: Dict[ContentType, Type[ContentScraper]] = dict(scrapers)
        self.rng = rng or random.Random()

        self.logger = logging.LoggerAdapter(
            logging.getLogger(self.__class__.__name__), {"scraper": "orchestrator"}
        )
        self.drafts: List[Draft] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._running = False
        self._progress: Optional[RunProgress] = None
        self._thread: Optional[threading.Thread] = None

    def log(self, event: str, level: str = "info", **kv: Any) -> None:
        getattr(self.logger, level)(f"{event}{fmt_pairs(**kv)}")

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def start(
        self,
        config: RunConfig,
        background: bool = True,
        on_finish: Optional[FinishCallback] = None,
    ) -> None:
        """
        Begin a run.

        Args:
            config: Validated run configuration.
            background: Run on a daemon thread (True) or block until done.
            on_finish: Called with the final progress snapshot.

        Raises:
            ConfigError: The configuration violates the run invariant.
            AlreadyRunningError: A run is already active on this orchestrator.
        """
        config.validate()
        with self._lock:
            if self._running:
                raise AlreadyRunningError("a scraping run is already in progress")
            self._running = True
            self._stop = threading.Event()
            self.drafts = []
            self._progress = RunProgress(
                is_running=True,
                total_locations=len(config.locations),
                start_time=datetime.now(),
                current_activity="Starting",
            )
        self.log(
            "run:start",
            locations=len(config.locations),
            types=",".join(ct.value for ct in config.content_types),
            max_pages=config.max_pages,
            delay_ms=config.delay_ms,
        )
        if background:
            self._thread = threading.Thread(
                target=self._execute,
                args=(config, on_finish),
                name="crawl-run",
                daemon=True,
            )
            self._thread.start()
        else:
            self._execute(config, on_finish)

    def run(self, config: RunConfig) -> RunProgress:
        """Run in the foreground and return the final snapshot."""
        self.start(config, background=False)
        snap = self.get_progress()
        assert snap is not None
        return snap

    def stop(self) -> None:
        """Request cancellation; a no-op when nothing is running."""
        with self._lock:
            if not self._running:
                return
            self._stop.set()
            if self._progress is not None:
                self._progress.current_activity = "Stopping"
        self.log("run:stop_requested")

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def get_progress(self) -> Optional[RunProgress]:
        """Copy of the current (or last) run's progress, or None before any run."""
        with self._lock:
            return self._progress.snapshot() if self._progress else None

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for a background run; returns True once it has finished."""
        t = self._thread
        if t is not None:
            t.join(timeout)
        return not self.is_running()

    # -----------------------------
    # Run body
    # -----------------------------
    def _update(self, **changes: Any) -> None:
        with self._lock:
            assert self._progress is not None
            for k, v in changes.items():
                setattr(self._progress, k, v)

    def _execute(self, config: RunConfig, on_finish: Optional[FinishCallback]) -> None:
        failed = False
        try:
            self._crawl(config)
        except Exception as e:
            failed = True
            self.logger.exception("run:crash")
            with self._lock:
                assert self._progress is not None
                self._progress.record_error(f"run crashed: {e}")
        finally:
            with self._lock:
                p = self._progress
                assert p is not None
                stopped = self._stop.is_set()
                p.is_running = False
                p.stopped = stopped
                p.completed = (
                    not stopped
                    and not failed
                    and p.completed_locations == p.total_locations
                )
                p.end_time = datetime.now()
                p.current_activity = (
                    "Completed" if p.completed else "Stopped" if stopped else "Failed"
                )
                self._running = False
                snap = p.snapshot()
            self.log(
                "run:done",
                completed=snap.completed,
                stopped=snap.stopped,
                items=snap.total_items,
                errors=snap.errors,
                retries=snap.retries,
                rate_limit_hits=snap.rate_limit_hits,
            )
            if on_finish is not None:
                try:
                    on_finish(snap)
                except Exception:
                    self.logger.exception("run:on_finish:error")

    def _crawl(self, config: RunConfig) -> None:
        throttle = Throttle(config.delay_ms, self._stop, self.rng)
        workers: Dict[ContentType, Optional[ContentScraper]] = {}
        for ct in config.content_types:
            cls = self.scrapers.get(ct)
            workers[ct] = cls(self.fetcher, config, throttle, self._stop) if cls else None

        units_left = len(config.locations) * len(config.content_types)
        for location in config.locations:
            if self._stop.is_set():
                break
            finished_types = 0
            for ct in config.content_types:
                if self._stop.is_set():
                    break
                self._update(
                    current_location=location,
                    current_type=ct.value,
                    current_activity=f"Scraping {ct.label.lower()} in {location}",
                )
                result = self._scrape_unit(workers[ct], ct, location)
                self._absorb(result)
                units_left -= 1
                if result.stopped:
                    break
                finished_types += 1
                if units_left:
                    # politeness gap between units; returns early on stop
                    throttle.pause()

            if finished_types == len(config.content_types):
                with self._lock:
                    assert self._progress is not None
                    self._progress.completed_locations += 1
                self.log("location:done", location=location)

    def _scrape_unit(
        self, worker: Optional[ContentScraper], ct: ContentType, location: str
    ) -> ScrapeResult:
        if worker is None:
            return ScrapeResult.unsupported(ct, location, "no scraper registered")
        try:
            return worker.scrape(location)
        except Exception as e:
            self.logger.exception("unit:error type=%s location=%s", ct.value, location)
            return ScrapeResult(content_type=ct, location=location, errors=[str(e)])

    def _absorb(self, result: ScrapeResult) -> None:
        ct = result.content_type
        if not result.supported:
            self.log(
                "type:unsupported",
                level="warning",
                type=ct.value,
                location=result.location,
                reason=result.reason,
            )
            with self._lock:
                assert self._progress is not None
                if ct.value not in self._progress.unsupported_types:
                    self._progress.unsupported_types.append(ct.value)
            return

        stored = self._persist(result)
        with self._lock:
            p = self._progress
            assert p is not None
            p.add(ct, stored)
            p.retries += result.retries
            p.rate_limit_hits += result.rate_limit_hits
            if result.errors:
                p.record_error(result.errors[-1], len(result.errors))
        if result.rate_limit_hits:
            self.log(
                "ratelimit:warning",
                level="warning",
                type=ct.value,
                location=result.location,
                hits=result.rate_limit_hits,
            )
        self.log(
            "unit:done",
            level="info" if result.success else "warning",
            type=ct.value,
            location=result.location,
            found=result.items_found,
            stored=stored,
            errors=len(result.errors),
        )

    def _persist(self, result: ScrapeResult) -> int:
        """Store each draft not already known; returns how many were stored."""
        ct = result.content_type
        stored = 0
        for draft in result.drafts:
            if self.gateway is None:
                self.drafts.append(draft)
                stored += 1
                continue
            try:
                if self.gateway.find(ct, draft.source_url) is not None:
                    self.log("persist:duplicate", type=ct.value, url=draft.source_url)
                    continue
                record = draft_to_record(draft)
                if isinstance(draft, JobDraft):
                    if draft.category:
                        record["category_id"] = self.gateway.find_or_create(
                            "category", draft.category
                        )
                    if draft.company:
                        record["employer_id"] = self.gateway.find_or_create(
                            "employer", draft.company
                        )
                self.gateway.create(ct, record)
            except Exception as e:
                self.logger.exception("persist:error url=%s", draft.source_url)
                with self._lock:
                    assert self._progress is not None
                    self._progress.record_error(f"persist {draft.source_url}: {e}")
                continue
            self.drafts.append(draft)
            stored += 1
        return stored
