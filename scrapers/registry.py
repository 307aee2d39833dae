from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from scrapers.base import fmt_pairs
from scrapers.models import RunProgress
from scrapers.orchestrator import AlreadyRunningError, CrawlOrchestrator
from utils.config import RunConfig

OrchestratorFactory = Callable[[], CrawlOrchestrator]


class CrawlRegistry:
    """
    Holds at most one active orchestrator for the process.

    The registry is an ordinary object: the app factory (or a test) builds
    one and hands it to whoever needs it. When a run ends its final snapshot
    is kept so pollers still see `completed`/`stopped` afterwards.
    """

    def __init__(self, factory: Optional[OrchestratorFactory] = None) -> None:
        self.factory = factory or CrawlOrchestrator
        self._lock = threading.Lock()
        self._active: Optional[CrawlOrchestrator] = None
        self._draining: Optional[CrawlOrchestrator] = None
        self._last: Optional[RunProgress] = None
        self.logger = logging.LoggerAdapter(
            logging.getLogger(self.__class__.__name__), {"scraper": "registry"}
        )

    def log(self, event: str, level: str = "info", **kv) -> None:
        getattr(self.logger, level)(f"{event}{fmt_pairs(**kv)}")

    def set_active(self, orchestrator: Optional[CrawlOrchestrator]) -> None:
        with self._lock:
            self._active = orchestrator

    def _busy(self) -> bool:
        # a stopped run keeps its worker until the in-flight request returns
        return any(
            o is not None and o.is_running() for o in (self._active, self._draining)
        )

    def is_active(self) -> bool:
        with self._lock:
            return self._busy()

    def start(self, config: RunConfig, background: bool = True) -> CrawlOrchestrator:
        """
        Start a new run through a fresh orchestrator.

        Raises:
            AlreadyRunningError: Another run is still active.
            ConfigError: `config` fails validation.
        """
        with self._lock:
            if self._busy():
                raise AlreadyRunningError("a scraping run is already in progress")
            orch = self.factory()
            self._active = orch
        try:
            orch.start(config, background=background, on_finish=self._finished(orch))
        except Exception:
            with self._lock:
                if self._active is orch:
                    self._active = None
            raise
        self.log("registry:started", locations=len(config.locations))
        return orch

    def _finished(self, orch: CrawlOrchestrator) -> Callable[[RunProgress], None]:
        def _done(snap: RunProgress) -> None:
            with self._lock:
                self._last = snap
                if self._active is orch:
                    self._active = None
                if self._draining is orch:
                    self._draining = None
            self.log("registry:cleared", completed=snap.completed, stopped=snap.stopped)

        return _done

    def get_progress(self) -> Optional[RunProgress]:
        """Active run's snapshot, else the last finished run's, else None."""
        with self._lock:
            orch = self._active or self._draining
            last = self._last
        if orch is not None:
            snap = orch.get_progress()
            if snap is not None:
                return snap
        return last

    def stop(self) -> bool:
        """Stop the active run (if any) and clear it; returns whether one was running."""
        with self._lock:
            orch = self._active
            self._active = None
            if orch is not None:
                # polled until its callback records the final snapshot
                self._draining = orch
        if orch is None or not orch.is_running():
            return False
        orch.stop()
        self.log("registry:stop")
        return True

    def active(self) -> Optional[CrawlOrchestrator]:
        with self._lock:
            return self._active
