"""
Fetch layer: one GET per call against the public guest endpoints.

`HttpFetcher` deliberately performs no retries of its own; the scrapers own
the retry budget so that every attempt is throttled and counted.
"""

from __future__ import annotations

import logging
import random
import threading

import requests

from requests.adapters import HTTPAdapter
from typing import Any, Dict, Mapping, Optional
from urllib3.util.retry import Retry

LOG = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

BROWSER_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Referer": "https://www.linkedin.com/",
}

# 999 is what LinkedIn answers when it has decided a client is a bot.
RATE_LIMIT_STATUSES = frozenset({429, 999})


class NetworkError(Exception):
    """A fetch failed: timeout, connection error, or non-2xx status."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"{reason} ({url})")


class RateLimitError(NetworkError):
    """The remote side throttled us (HTTP 429 / 999)."""


class HttpFetcher:
    """
    Thin wrapper over a `requests.Session` with browser-like defaults.

    Attributes:
        timeout: Per-call timeout in seconds when the caller passes none.
        session: Shared session (connection pooling + cookies).
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.timeout = float(timeout)
        self.session = session or requests.Session()
        self.session.headers.update(dict(headers or BROWSER_HEADERS))

        adapter = HTTPAdapter(
            max_retries=Retry(total=0, raise_on_status=False),
            pool_connections=4,
            pool_maxsize=4,
        )
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def fetch(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        GET `url` and return the decoded body.

        Args:
            url: Absolute URL to request.
            headers: Extra headers merged over the session defaults.
            timeout: Seconds before giving up (defaults to `self.timeout`).
            params: Optional query parameters.

        Returns:
            The response text.

        Raises:
            RateLimitError: On HTTP 429 or 999.
            NetworkError: On timeout, connection failure, or any other non-2xx.
        """
        try:
            resp = self.session.get(
                url,
                headers=dict(headers or {}),
                params=dict(params or {}),
                timeout=timeout or self.timeout,
            )
        except requests.Timeout as e:
            raise NetworkError(url, f"timeout: {e}") from e
        except requests.RequestException as e:
            raise NetworkError(url, f"request failed: {e}") from e

        if resp.status_code in RATE_LIMIT_STATUSES:
            raise RateLimitError(resp.url or url, "rate limited", resp.status_code)
        if not 200 <= resp.status_code < 300:
            raise NetworkError(resp.url or url, f"HTTP {resp.status_code}", resp.status_code)
        if not resp.encoding and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return resp.text

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpFetcher.close() swallow", exc_info=True)


class Throttle:
    """
    Jittered politeness delay shared by every network call of a run.

    The first `wait()` returns immediately; later calls sleep a uniform
    draw from [delay, 1.5 * delay] milliseconds. Sleeping happens on the
    run's stop event so `stop()` interrupts it.
    """

    def __init__(
        self,
        delay_ms: float,
        stop_event: Optional[threading.Event] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.delay_ms = max(0.0, float(delay_ms))
        self.stop_event = stop_event or threading.Event()
        self.rng = rng or random.Random()
        self._primed = False

    def jitter(self) -> float:
        """Seconds to sleep for one delay draw."""
        if self.delay_ms <= 0:
            return 0.0
        return self.rng.uniform(self.delay_ms, self.delay_ms * 1.5) / 1000.0

    def _sleep(self) -> float:
        seconds = self.jitter()
        if seconds > 0:
            self.stop_event.wait(seconds)
        return seconds

    def pause(self) -> float:
        """
        Sleep one jittered delay now; returns the seconds drawn.

        The gap just slept counts as the next request's delay, so the
        following `wait()` returns immediately.
        """
        seconds = self._sleep()
        self._primed = False
        return seconds

    def wait(self) -> float:
        if not self._primed:
            self._primed = True
            return 0.0
        return self._sleep()
