from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from jsonschema import Draft202012Validator

from utils.schema import ContentType

DEFAULT_LOCATIONS = ["United States", "United Kingdom"]
DEFAULT_TYPES = ["jobs"]
DEFAULT_KEYWORDS: Dict[ContentType, str] = {
    ContentType.Jobs: "visa jobs",
    ContentType.Events: "visa",
    ContentType.People: "visa professional",
    ContentType.Articles: "visa",
    ContentType.Companies: "visa sponsor",
    ContentType.Posts: "visa",
}
DEFAULT_DB_URL = "sqlite:///./.cache/harvest.sqlite"

# LinkedIn's f_TPR values (seconds in the window, prefixed with "r").
DATE_POSTED_FILTERS: Dict[str, Optional[str]] = {
    "any": None,
    "past-24h": "r86400",
    "past-week": "r604800",
    "past-month": "r2592000",
}

# camelCase (dashboard payload) -> field name
_PAYLOAD_ALIASES = {
    "scrapeTypes": "content_types",
    "types": "content_types",
    "maxPages": "max_pages",
    "pageSize": "page_size",
    "delayBetweenRequests": "delay_ms",
    "delay": "delay_ms",
    "maxRetries": "max_retries",
    "datePostedFilter": "date_posted",
    "timeout": "timeout_s",
}

PAYLOAD_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "locations": {"type": "array", "items": {"type": "string"}},
        "content_types": {"type": "array", "items": {"type": "string"}},
        "keywords": {
            "anyOf": [
                {"type": "string"},
                {"type": "object", "additionalProperties": {"type": "string"}},
            ]
        },
        "max_pages": {"type": "integer", "minimum": 1},
        "page_size": {"type": "integer", "minimum": 1},
        "delay_ms": {"type": "number", "minimum": 0},
        "max_retries": {"type": "integer", "minimum": 0},
        "date_posted": {"enum": list(DATE_POSTED_FILTERS)},
        "timeout_s": {"type": "number", "exclusiveMinimum": 0},
    },
}
_VALIDATOR = Draft202012Validator(PAYLOAD_SCHEMA)


class ConfigError(ValueError):
    """Run configuration is invalid; the run must not start."""


def _env_list(name: str, fallback: List[str]) -> List[str]:
    raw = os.environ.get(name)
    if not raw:
        return list(fallback)
    try:
        val = json.loads(raw)
    except ValueError:
        # tolerate a plain comma-separated value
        return [p.strip() for p in raw.split(",") if p.strip()]
    if isinstance(val, str):
        return [val]
    if not isinstance(val, list):
        raise ConfigError(f"{name} must be a JSON list")
    return [str(v) for v in val]


def _env_int(name: str, fallback: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return fallback
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def env_defaults() -> Dict[str, Any]:
    """Payload-shaped defaults taken from SCRAPER_* environment variables."""
    return {
        "locations": _env_list("SCRAPER_LOCATIONS", DEFAULT_LOCATIONS),
        "content_types": _env_list("SCRAPER_TYPES", DEFAULT_TYPES),
        "max_pages": _env_int("SCRAPER_MAX_PAGES", 5),
        "delay_ms": _env_int("SCRAPER_DELAY", 2000),
        "max_retries": _env_int("SCRAPER_MAX_RETRIES", 3),
    }


def db_url_from_env() -> str:
    return os.environ.get("JOBS_DB_URL") or DEFAULT_DB_URL


def _parse_types(names: List[str]) -> Tuple[ContentType, ...]:
    out: List[ContentType] = []
    bad: List[str] = []
    for n in names:
        try:
            ct = ContentType.parse(n)
        except ValueError:
            bad.append(n)
            continue
        if ct not in out:
            out.append(ct)
    if bad:
        raise ConfigError(f"unknown content type(s): {', '.join(bad)}")
    return tuple(out)


def _parse_keywords(raw: Any) -> Dict[ContentType, str]:
    kw = dict(DEFAULT_KEYWORDS)
    if isinstance(raw, str):
        if raw.strip():
            # a bare string overrides every type's keyword
            kw = {ct: raw.strip() for ct in kw}
    elif isinstance(raw, Mapping):
        for name, value in raw.items():
            try:
                ct = ContentType.parse(name)
            except ValueError as e:
                raise ConfigError(f"unknown content type in keywords: {name}") from e
            if value and value.strip():
                kw[ct] = value.strip()
    return kw


@dataclass(frozen=True)
class RunConfig:
    """
    Immutable settings for one crawl.

    Attributes:
        locations: Search locations, crawled in order.
        content_types: Content types crawled per location, in order.
        keywords: Search keyword per content type.
        max_pages: Upper bound on search pages per (location, type).
        page_size: Results per search page; a short page ends pagination.
        delay_ms: Base politeness delay; the actual sleep is jittered up to 1.5x.
        max_retries: Retries allowed per page (and per detail fetch).
        date_posted: One of `DATE_POSTED_FILTERS`.
        timeout_s: Per-request timeout.
    """

    locations: Tuple[str, ...]
    content_types: Tuple[ContentType, ...]
    keywords: Dict[ContentType, str] = field(default_factory=lambda: dict(DEFAULT_KEYWORDS))
    max_pages: int = 5
    page_size: int = 25
    delay_ms: int = 2000
    max_retries: int = 3
    date_posted: str = "any"
    timeout_s: float = 30.0

    @classmethod
    def from_payload(
        cls, payload: Optional[Mapping[str, Any]] = None, use_env: bool = True
    ) -> "RunConfig":
        """
        Build a validated config from a JSON-like payload.

        Accepts the dashboard's camelCase names (`scrapeTypes`, `maxPages`,
        `delayBetweenRequests`, ...) as well as the snake_case field names.
        Missing fields fall back to SCRAPER_* environment variables (when
        `use_env`) and then to built-in defaults.

        Raises:
            ConfigError: The payload violates the schema or the run invariant.
        """
        if payload is not None and not isinstance(payload, Mapping):
            raise ConfigError("payload must be a JSON object")
        doc: Dict[str, Any] = {}
        for k, v in (payload or {}).items():
            if v is None:
                continue
            doc[_PAYLOAD_ALIASES.get(k, k)] = v

        errors = sorted(_VALIDATOR.iter_errors(doc), key=lambda e: list(e.path))
        if errors:
            msg = ["invalid scraper config:"]
            for e in errors[:20]:
                loc = ".".join(str(p) for p in e.path) or "<root>"
                msg.append(f" - {loc}: {e.message}")
            raise ConfigError("\n".join(msg))

        base = env_defaults() if use_env else {
            "locations": list(DEFAULT_LOCATIONS),
            "content_types": list(DEFAULT_TYPES),
        }
        merged = {**base, **doc}

        cfg = cls(
            locations=tuple(
                s.strip() for s in merged.get("locations") or [] if s and s.strip()
            ),
            content_types=_parse_types(list(merged.get("content_types") or [])),
            keywords=_parse_keywords(merged.get("keywords")),
            max_pages=int(merged.get("max_pages", 5)),
            page_size=int(merged.get("page_size", 25)),
            delay_ms=int(merged.get("delay_ms", 2000)),
            max_retries=int(merged.get("max_retries", 3)),
            date_posted=str(merged.get("date_posted", "any")),
            timeout_s=float(merged.get("timeout_s", 30.0)),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        problems = []
        if not any(loc.strip() for loc in self.locations):
            problems.append("at least one location is required")
        if not self.content_types:
            problems.append("at least one content type is required")
        if self.max_pages < 1:
            problems.append("max_pages must be >= 1")
        if self.page_size < 1:
            problems.append("page_size must be >= 1")
        if self.delay_ms < 0:
            problems.append("delay_ms must be >= 0")
        if self.max_retries < 0:
            problems.append("max_retries must be >= 0")
        if self.date_posted not in DATE_POSTED_FILTERS:
            problems.append(f"unknown date_posted filter: {self.date_posted}")
        if self.timeout_s <= 0:
            problems.append("timeout_s must be > 0")
        if problems:
            raise ConfigError("; ".join(problems))

    def keyword_for(self, content_type: ContentType) -> str:
        return self.keywords.get(content_type) or DEFAULT_KEYWORDS[content_type]

    @property
    def time_filter(self) -> Optional[str]:
        return DATE_POSTED_FILTERS.get(self.date_posted)

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape echoed back by the API."""
        return {
            "locations": list(self.locations),
            "scrapeTypes": [ct.value for ct in self.content_types],
            "keywords": {ct.value: kw for ct, kw in self.keywords.items()},
            "maxPages": self.max_pages,
            "pageSize": self.page_size,
            "delayBetweenRequests": self.delay_ms,
            "maxRetries": self.max_retries,
            "datePostedFilter": self.date_posted,
            "timeout": self.timeout_s,
        }
