from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from utils.schema import ContentType, Draft


def _zero_counts() -> Dict[ContentType, int]:
    return {ct: 0 for ct in ContentType}


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


@dataclass
class RunProgress:
    """
    Mutable bookkeeping for one run.

    Only the orchestrator writes to it (under its lock); everyone else reads
    copies produced by `snapshot()`.
    """

    counts: Dict[ContentType, int] = field(default_factory=_zero_counts)
    is_running: bool = False
    completed: bool = False
    stopped: bool = False
    total_locations: int = 0
    completed_locations: int = 0
    errors: int = 0
    retries: int = 0
    rate_limit_hits: int = 0
    current_location: str = ""
    current_type: str = ""
    current_activity: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    last_error: Optional[str] = None
    unsupported_types: List[str] = field(default_factory=list)
    # reserved for interactive-challenge handling; never set today
    verification_required: bool = False
    verification_url: Optional[str] = None

    def add(self, content_type: ContentType, n: int) -> None:
        if n < 0:
            raise ValueError(f"progress counters never decrease (got {n})")
        ct = ContentType(content_type)
        self.counts[ct] = self.counts.get(ct, 0) + n

    def record_error(self, message: str, n: int = 1) -> None:
        if n <= 0:
            return
        self.errors += n
        self.last_error = message

    def snapshot(self) -> "RunProgress":
        return copy.deepcopy(self)

    @property
    def total_items(self) -> int:
        return sum(self.counts.values())

    def to_dict(self) -> Dict[str, Any]:
        """camelCase JSON shape served by GET /scraper/progress."""
        out: Dict[str, Any] = {ct.value: self.counts.get(ct, 0) for ct in ContentType}
        out.update(
            {
                "isRunning": self.is_running,
                "completed": self.completed,
                "stopped": self.stopped,
                "totalLocations": self.total_locations,
                "completedLocations": self.completed_locations,
                "errors": self.errors,
                "retries": self.retries,
                "rateLimitHits": self.rate_limit_hits,
                "currentLocation": self.current_location,
                "currentType": self.current_type,
                "currentActivity": self.current_activity,
                "startTime": _iso(self.start_time),
                "endTime": _iso(self.end_time),
                "lastError": self.last_error,
                "unsupportedTypes": list(self.unsupported_types),
            }
        )
        return out

    @classmethod
    def idle_dict(cls) -> Dict[str, Any]:
        return cls().to_dict()


@dataclass
class ScrapeResult:
    """
    Outcome of one (location, content type) unit of work.

    Attributes:
        supported: False when the content type has no crawler yet; such a
            result carries no drafts and is not an error.
        items_found: Distinct candidates discovered on search pages.
        invalid: Drafts dropped because required fields were empty.
    """

    content_type: ContentType
    location: str
    drafts: List[Draft] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    supported: bool = True
    stopped: bool = False
    timestamp: datetime = field(default_factory=datetime.now)
    duration_s: float = 0.0
    pages_processed: int = 0
    items_found: int = 0
    invalid: int = 0
    retries: int = 0
    rate_limit_hits: int = 0
    reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.supported and not self.errors

    @classmethod
    def unsupported(
        cls, content_type: ContentType, location: str, reason: str = "not implemented"
    ) -> "ScrapeResult":
        return cls(
            content_type=content_type,
            location=location,
            supported=False,
            reason=reason,
        )
