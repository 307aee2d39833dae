"""
Markup -> draft record extraction.

Each content type has one extractor exposing `extract(markup, source_url="")`
that returns a draft (or None when the page lacks its headline element).
Extractors never touch the network; they only parse strings, so tests can
feed them saved fixtures.
"""

from __future__ import annotations

import json
import re

from bs4 import BeautifulSoup as BS
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

from utils.classify import classify_event_type, classify_job_type
from utils.enrich import extract_skills
from utils.schema import (
    ApplicationMethod,
    ArticleDraft,
    CompanyDraft,
    ContentType,
    Draft,
    EventDraft,
    JobDraft,
    PersonDraft,
    PostDraft,
)
from utils.transforms import (
    clean_text,
    normalize_url,
    parse_date,
    parse_salary,
    sanitize_description,
    split_location,
)

DEFAULT_ARTICLE_TAGS = ["visa", "jobs"]
EXCERPT_LENGTH = 200

_JOB_ID_RE = re.compile(r"(?:jobPosting:|/jobs/view/(?:[^/?#]*-)?|currentJobId=)(\d{5,})")


@dataclass(frozen=True)
class Candidate:
    """A job card discovered on a search page."""

    source_id: str
    url: str
    title: str = ""


class Extractor(Protocol):
    content_type: ContentType

    def extract(self, markup: str, source_url: str = "") -> Optional[Draft]: ...


# -----------------------------
# Generic helpers
# -----------------------------
def flatten(
    obj: Any, prefix: str = "", out: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Flatten nested dicts/lists into dotted keys.

    Args:
        obj: Object to flatten (dict, list, or scalar).
        prefix: Key path prefix to apply to nested values.
        out: Destination mapping (created if None).

    Returns:
        The `out` mapping with flattened keys and scalar values.
    """
    if out is None:
        out = {}
    if isinstance(obj, dict):
        for k, v in obj.items():
            flatten(v, f"{prefix}{k}." if prefix else f"{k}.", out)
    elif isinstance(obj, list):
        if all(isinstance(x, (str, int, float, bool)) or x is None for x in obj):
            out[prefix[:-1]] = "; ".join("" if x is None else str(x) for x in obj)
        else:
            for i, v in enumerate(obj):
                flatten(v, f"{prefix}{i}.", out)
    else:
        out[prefix[:-1]] = "" if obj is None else obj
    return out


def extract_jsonld(soup: BS) -> Dict[str, Any]:
    """
    Flatten every JSON-LD block on the page into one dotted-key mapping.

    Later blocks never overwrite keys set by earlier ones; malformed blocks
    are ignored.
    """
    out: Dict[str, Any] = {}
    for b in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(b.string or b.get_text() or "", strict=False)
        except ValueError:
            continue
        items = data if isinstance(data, list) else [data]
        for item in items:
            for k, v in flatten(item).items():
                out.setdefault(k, v)
    return out


def extract_canonical_link(soup: BS) -> Optional[str]:
    link = soup.find("link", rel=lambda v: v and "canonical" in v)
    if link and link.get("href"):
        return link["href"]
    og = soup.find("meta", attrs={"property": "og:url"})
    if og and og.get("content"):
        return og["content"]
    return None


def first_text(soup: BS, *selectors: str) -> str:
    """Collapsed text of the first selector that matches a non-empty node."""
    for sel in selectors:
        node = soup.select_one(sel)
        if node is None:
            continue
        t = clean_text(node.get_text(" ", strip=True))
        if t:
            return t
    return ""


def first_html(soup: BS, *selectors: str) -> str:
    for sel in selectors:
        node = soup.select_one(sel)
        if node is not None:
            return node.decode_contents()
    return ""


def job_id_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    m = _JOB_ID_RE.search(url)
    return m.group(1) if m else None


def _source_url(soup: BS, fallback: str) -> str:
    return normalize_url(extract_canonical_link(soup)) or normalize_url(fallback) or ""


# -----------------------------
# Search pages
# -----------------------------
def extract_search_candidates(markup: str) -> List[Candidate]:
    """
    Pull job ids (in page order, de-duplicated) from a guest search page.

    Cards normally carry `data-entity-urn="urn:li:jobPosting:<id>"`; older
    responses only expose the `/jobs/view/<slug>-<id>` link, so that is the
    fallback.
    """
    soup = BS(markup or "", "lxml")
    out: List[Candidate] = []
    seen: set[str] = set()

    cards = soup.select("div.base-search-card, div.base-card, li")
    for card in cards:
        urn = card.get("data-entity-urn") or ""
        link = card.select_one("a.base-card__full-link") or card.select_one(
            "a[href*='/jobs/view/']"
        )
        href = link.get("href") if link else ""
        jid = job_id_from_url(urn) or job_id_from_url(href)
        if not jid or jid in seen:
            continue
        seen.add(jid)
        title = first_text(card, "h3.base-search-card__title", "h3")
        url = normalize_url(href) or f"https://www.linkedin.com/jobs/view/{jid}"
        out.append(Candidate(source_id=jid, url=url, title=title))
    return out


# -----------------------------
# Jobs
# -----------------------------
def job_criteria(soup: BS) -> Dict[str, str]:
    """Map lower-cased criteria headers ('employment type', ...) to their values."""
    out: Dict[str, str] = {}
    for li in soup.select("li.description__job-criteria-item"):
        head = first_text(li, "h3.description__job-criteria-subheader", "h3")
        val = first_text(li, "span.description__job-criteria-text", "span")
        if head and val:
            out[head.lower()] = val
    return out


def application_method(soup: BS) -> Tuple[ApplicationMethod, Optional[str]]:
    code = soup.select_one("code#applyUrl")
    apply_url = None
    if code is not None:
        m = re.search(r'"(https?://[^"]+)"', str(code))
        apply_url = m.group(1) if m else None

    for node in soup.select("[data-tracking-control-name]"):
        ctl = node.get("data-tracking-control-name") or ""
        if "apply-link-offsite" in ctl:
            return ApplicationMethod.External, apply_url
        if "apply-link-simple" in ctl or "apply-link-onsite" in ctl:
            return ApplicationMethod.EasyApply, None
    if apply_url:
        return ApplicationMethod.External, apply_url
    if re.search(r"\beasy apply\b", soup.get_text(" "), re.I):
        return ApplicationMethod.EasyApply, None
    return ApplicationMethod.Unknown, None


class JobExtractor:
    content_type = ContentType.Jobs

    def extract(self, markup: str, source_url: str = "") -> Optional[JobDraft]:
        """
        Map a job detail fragment to a `JobDraft` with derived fields.

        Args:
            markup: HTML of `/jobs-guest/jobs/api/jobPosting/<id>` (or a full
                `/jobs/view/` page).
            source_url: URL the markup was fetched from; used when the page
                has no canonical top-card link.

        Returns:
            A populated draft, or None when no title element is present.
        """
        soup = BS(markup or "", "lxml")
        title = first_text(
            soup,
            "h2.top-card-layout__title",
            "h1.top-card-layout__title",
            "h3.sub-nav-cta__header",
            "h1",
        )
        if not title:
            return None
        ld = extract_jsonld(soup)

        company = first_text(
            soup,
            "a.topcard__org-name-link",
            "span.topcard__flavor a",
            "span.topcard__flavor",
        ) or str(ld.get("hiringOrganization.name") or "")
        location = first_text(
            soup, "span.topcard__flavor--bullet", "span.sub-nav-cta__meta-text"
        )
        description = sanitize_description(
            first_html(
                soup, "div.show-more-less-html__markup", "div.description__text"
            )
        ) or sanitize_description(ld.get("description"))
        posted = first_text(soup, "span.posted-time-ago__text", "time") or str(
            ld.get("datePosted") or ""
        )
        salary_text = first_text(
            soup, "div.salary.compensation__salary", "div.compensation__salary", ".salary"
        )
        criteria = job_criteria(soup)
        applicants = first_text(
            soup, "span.num-applicants__caption", "figcaption.num-applicants__caption"
        )
        method, apply_url = application_method(soup)

        top_link = soup.select_one("a.topcard__link") or soup.select_one(
            "a[data-tracking-control-name='public_jobs_topcard-title']"
        )
        url = (
            normalize_url(top_link.get("href") if top_link else None)
            or _source_url(soup, source_url)
        )
        salary = parse_salary(salary_text)
        loc = split_location(location)

        return JobDraft(
            title=title,
            description=description,
            company=company,
            location=location,
            job_type=classify_job_type(title, description).value,
            employment_type=criteria.get("employment type") or "Full-time",
            source_url=url,
            source_id=job_id_from_url(url) or job_id_from_url(source_url),
            salary_min=salary.min if salary else None,
            salary_max=salary.max if salary else None,
            salary_currency=salary.currency if salary else None,
            salary_period=salary.period if salary else None,
            salary_mode=salary.mode.value if salary else None,
            salary_raw=salary_text or None,
            country=loc.get("country"),
            state=loc.get("state"),
            city=loc.get("city"),
            skills=extract_skills(title, description),
            application_method=method.value,
            application_url=apply_url,
            seniority=criteria.get("seniority level"),
            category=criteria.get("job function"),
            industries=criteria.get("industries"),
            applicants=applicants or None,
            posted_at=parse_date(posted) if posted else None,
        )


# -----------------------------
# Other content types
# -----------------------------
class EventExtractor:
    content_type = ContentType.Events

    def extract(self, markup: str, source_url: str = "") -> Optional[EventDraft]:
        soup = BS(markup or "", "lxml")
        ld = extract_jsonld(soup)
        title = first_text(
            soup, ".event-details__title", "h1.top-card-layout__title", "h1"
        ) or str(ld.get("name") or "")
        if not title:
            return None
        description = sanitize_description(
            first_html(
                soup,
                ".event-details__description",
                "div.show-more-less-html__markup",
            )
        ) or clean_text(str(ld.get("description") or ""))
        when = first_text(soup, ".event-details__date", "time") or str(
            ld.get("startDate") or ""
        )
        location = (
            first_text(soup, ".event-details__location")
            or str(ld.get("location.name") or ld.get("location.address.addressLocality") or "")
            or None
        )
        lower_loc = (location or "").lower()
        return EventDraft(
            title=title,
            description=description,
            source_url=_source_url(soup, source_url),
            start_date=parse_date(when) if when else None,
            location=location,
            is_virtual=(not location) or "virtual" in lower_loc or "online" in lower_loc,
            event_type=classify_event_type(title, description).value,
            organizer=first_text(soup, ".event-organizer__name", "a.event-organizer")
            or str(ld.get("organizer.name") or "")
            or None,
        )


class PersonExtractor:
    content_type = ContentType.People

    def extract(self, markup: str, source_url: str = "") -> Optional[PersonDraft]:
        soup = BS(markup or "", "lxml")
        name = first_text(
            soup, ".pv-text-details__left-panel h1", "h1.top-card-layout__title", "h1"
        )
        if not name:
            return None
        first, _, last = name.partition(" ")
        return PersonDraft(
            first_name=first,
            last_name=last.strip(),
            source_url=_source_url(soup, source_url),
            headline=first_text(
                soup,
                "h2.top-card-layout__headline",
                ".pv-text-details__left-panel .text-body-medium",
            )
            or None,
            current_location=first_text(
                soup,
                "div.top-card__subline-item",
                ".pv-text-details__left-panel .text-body-small",
            )
            or None,
            bio=first_text(
                soup,
                ".pv-about__summary-text",
                "section.summary div.core-section-container__content",
            )
            or None,
        )


class ArticleExtractor:
    content_type = ContentType.Articles

    def extract(self, markup: str, source_url: str = "") -> Optional[ArticleDraft]:
        soup = BS(markup or "", "lxml")
        ld = extract_jsonld(soup)
        title = first_text(soup, "h1.pulse-title", "h1") or str(ld.get("headline") or "")
        if not title:
            return None
        content = sanitize_description(
            first_html(
                soup,
                "div.article-main__content",
                "div.reader-article-content",
                ".feed-shared-text-view__text",
            )
        )
        published = first_text(soup, "time") or str(ld.get("datePublished") or "")
        return ArticleDraft(
            title=title,
            content=content,
            source_url=_source_url(soup, source_url),
            excerpt=content[:EXCERPT_LENGTH] or None,
            author=first_text(
                soup, ".base-main-card__title", ".author-info__name", ".feed-shared-actor__name"
            )
            or str(ld.get("author.name") or "")
            or None,
            tags=extract_skills(title, content)[:10] or list(DEFAULT_ARTICLE_TAGS),
            published_at=parse_date(published) if published else None,
        )


class CompanyExtractor:
    content_type = ContentType.Companies

    def extract(self, markup: str, source_url: str = "") -> Optional[CompanyDraft]:
        soup = BS(markup or "", "lxml")
        name = first_text(soup, "h1.top-card-layout__title", "h1")
        if not name:
            return None
        site = soup.select_one("[data-test-id='about-us__website'] dd a")
        website = normalize_url(site.get("href")) if site else None
        return CompanyDraft(
            name=name,
            source_url=_source_url(soup, source_url),
            description=first_text(
                soup,
                "p.about-us__description",
                "[data-test-id='about-us__description']",
            )
            or None,
            industry=first_text(soup, "[data-test-id='about-us__industry'] dd") or None,
            company_size=first_text(soup, "[data-test-id='about-us__size'] dd") or None,
            headquarters=first_text(soup, "[data-test-id='about-us__headquarters'] dd")
            or None,
            website=website
            or first_text(soup, "[data-test-id='about-us__website'] dd")
            or None,
        )


class PostExtractor:
    content_type = ContentType.Posts

    def extract(self, markup: str, source_url: str = "") -> Optional[PostDraft]:
        soup = BS(markup or "", "lxml")
        content = first_text(
            soup,
            "p.attributed-text-segment-list__content",
            "[data-test-id='main-feed-activity-card__commentary']",
            ".feed-shared-text-view__text",
        )
        if not content:
            return None
        reactions = first_text(soup, "[data-test-id='social-actions__reaction-count']")
        digits = re.sub(r"[^\d]", "", reactions)
        posted = first_text(soup, "time")
        return PostDraft(
            content=content,
            author=first_text(
                soup,
                "a[data-tracking-control-name='public_post_feed-actor-name']",
                ".feed-shared-actor__name",
                ".base-main-card__title",
            ),
            source_url=_source_url(soup, source_url),
            posted_at=parse_date(posted) if posted else None,
            reactions=int(digits) if digits else None,
        )


EXTRACTORS: Dict[ContentType, Extractor] = {
    e.content_type: e
    for e in (
        JobExtractor(),
        EventExtractor(),
        PersonExtractor(),
        ArticleExtractor(),
        CompanyExtractor(),
        PostExtractor(),
    )
}
