from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class ContentType(str, Enum):
    Jobs = "jobs"
    Events = "events"
    People = "people"
    Articles = "articles"
    Companies = "companies"
    Posts = "posts"

    @classmethod
    def parse(cls, name: str) -> "ContentType":
        """Resolve 'jobs', 'job', 'Jobs', 'person', ... to a member."""
        key = (name or "").strip().lower()
        if key in _SINGULAR:
            return _SINGULAR[key]
        return cls(key)

    @property
    def label(self) -> str:
        return self.value.capitalize()


_SINGULAR = {
    "job": ContentType.Jobs,
    "event": ContentType.Events,
    "person": ContentType.People,
    "article": ContentType.Articles,
    "company": ContentType.Companies,
    "post": ContentType.Posts,
}


class JobType(str, Enum):
    Student = "STUDENT"
    Graduate = "GRADUATE"
    Experienced = "EXPERIENCED"
    Internship = "INTERNSHIP"
    Apprenticeship = "APPRENTICESHIP"
    Contract = "CONTRACT"
    Temporary = "TEMPORARY"
    Volunteer = "VOLUNTEER"
    PartTime = "PART_TIME"
    Remote = "REMOTE"
    OnSite = "ON_SITE"
    Hybrid = "HYBRID"
    FullTime = "FULL_TIME"


class EventType(str, Enum):
    Webinar = "WEBINAR"
    Workshop = "WORKSHOP"
    Seminar = "SEMINAR"
    Networking = "NETWORKING"
    Conference = "CONFERENCE"
    JobFair = "JOB_FAIR"
    JobHunting = "JOB_HUNTING"
    Meetup = "MEETUP"


class SalaryMode(str, Enum):
    Fixed = "FIXED"
    Range = "RANGE"
    Competitive = "COMPETITIVE"


class ApplicationMethod(str, Enum):
    EasyApply = "EASY_APPLY"
    External = "EXTERNAL"
    Unknown = "UNKNOWN"


@dataclass(frozen=True)
class Salary:
    min: Optional[float]
    max: Optional[float]
    currency: str
    period: str
    mode: SalaryMode


@dataclass
class JobDraft:
    title: str
    description: str
    company: str
    location: str
    job_type: str
    employment_type: str
    source_url: str
    source_id: Optional[str] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: Optional[str] = None
    salary_period: Optional[str] = None
    salary_mode: Optional[str] = None
    salary_raw: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    application_method: str = ApplicationMethod.Unknown.value
    application_url: Optional[str] = None
    seniority: Optional[str] = None
    category: Optional[str] = None
    industries: Optional[str] = None
    applicants: Optional[str] = None
    posted_at: Optional[datetime] = None
    is_active: bool = True


@dataclass
class EventDraft:
    title: str
    description: str
    source_url: str
    start_date: Optional[datetime] = None
    location: Optional[str] = None
    is_virtual: bool = False
    event_type: str = EventType.Meetup.value
    organizer: Optional[str] = None
    is_active: bool = True


@dataclass
class PersonDraft:
    first_name: str
    last_name: str
    source_url: str
    headline: Optional[str] = None
    current_location: Optional[str] = None
    bio: Optional[str] = None


@dataclass
class ArticleDraft:
    title: str
    content: str
    source_url: str
    excerpt: Optional[str] = None
    author: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    published_at: Optional[datetime] = None
    is_published: bool = True


@dataclass
class CompanyDraft:
    name: str
    source_url: str
    description: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    headquarters: Optional[str] = None
    website: Optional[str] = None


@dataclass
class PostDraft:
    content: str
    author: str
    source_url: str
    posted_at: Optional[datetime] = None
    reactions: Optional[int] = None


Draft = Union[JobDraft, EventDraft, PersonDraft, ArticleDraft, CompanyDraft, PostDraft]

REQUIRED_FIELDS: Dict[type, Tuple[str, ...]] = {
    JobDraft: (
        "title",
        "description",
        "company",
        "location",
        "job_type",
        "employment_type",
        "source_url",
    ),
    EventDraft: ("title", "description", "source_url"),
    PersonDraft: ("first_name", "source_url"),
    ArticleDraft: ("title", "content", "source_url"),
    CompanyDraft: ("name", "source_url"),
    PostDraft: ("content", "author", "source_url"),
}


def validate_draft(draft: Draft) -> List[str]:
    errors = []
    for k in REQUIRED_FIELDS.get(type(draft), ()):
        v = getattr(draft, k, None)
        if v is None or not str(v).strip():
            errors.append(f"missing_required:{k}")
    return errors


def is_valid(draft: Draft) -> bool:
    return not validate_draft(draft)


def draft_to_record(draft: Draft) -> Dict[str, Any]:
    """Flatten a draft into a plain dict (enum members become their values)."""
    out: Dict[str, Any] = {}
    for f in fields(draft):
        v = getattr(draft, f.name)
        if isinstance(v, Enum):
            v = v.value
        elif isinstance(v, list):
            v = list(v)
        out[f.name] = v
    return out
