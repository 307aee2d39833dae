import json
import sys
import threading
from pathlib import Path

import pytest

# ---------- Resolve project root ----------
HERE = Path(__file__).resolve()
PROJECT_ROOT = HERE.parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from utils.persistence import SqlGateway  # noqa: E402


# ---------- Fakes ----------
class FakeFetcher:
    """
    Stand-in for HttpFetcher. `handler(url, params)` returns markup or raises;
    every call is recorded on `calls` as (url, params).
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, url, headers=None, timeout=None, params=None):
        with self._lock:
            self.calls.append((url, dict(params or {})))
        return self.handler(url, dict(params or {}))

    def detail_calls(self):
        return [u for u, _ in self.calls if "jobPosting" in u]

    def search_calls(self):
        return [p for u, p in self.calls if "seeMoreJobPostings" in u]


SEARCH_CARD = """
<li>
  <div class="base-card relative w-full base-search-card base-search-card--link job-search-card"
       data-entity-urn="urn:li:jobPosting:{job_id}">
    <a class="base-card__full-link" href="https://www.linkedin.com/jobs/view/{slug}-{job_id}?position=1&amp;pageNum=0&amp;trackingId=abc">
      <span class="sr-only">{title}</span>
    </a>
    <div class="base-search-card__info">
      <h3 class="base-search-card__title">{title}</h3>
      <h4 class="base-search-card__subtitle"><a>{company}</a></h4>
      <span class="job-search-card__location">{location}</span>
    </div>
  </div>
</li>
"""

JOB_DETAIL = """
<section class="top-card-layout">
  <a class="topcard__link" href="https://www.linkedin.com/jobs/view/{slug}-{job_id}?trk=public_jobs_topcard-title"
     data-tracking-control-name="public_jobs_topcard-title">
    <h2 class="top-card-layout__title topcard__title">{title}</h2>
  </a>
  <h4 class="top-card-layout__second-subline">
    <span class="topcard__flavor"><a class="topcard__org-name-link" href="https://www.linkedin.com/company/acme">{company}</a></span>
    <span class="topcard__flavor topcard__flavor--bullet">{location}</span>
  </h4>
  <span class="posted-time-ago__text">2 days ago</span>
  <button data-tracking-control-name="public_jobs_apply-link-simple_sign-up-modal">Easy Apply</button>
</section>
<div class="show-more-less-html__markup"><p>{description}</p></div>
<ul class="description__job-criteria-list">
  <li class="description__job-criteria-item">
    <h3 class="description__job-criteria-subheader">Employment type</h3>
    <span class="description__job-criteria-text">Full-time</span>
  </li>
  <li class="description__job-criteria-item">
    <h3 class="description__job-criteria-subheader">Job function</h3>
    <span class="description__job-criteria-text">Engineering</span>
  </li>
</ul>
"""


class LinkedInPages:
    """Builds guest-API markup for orchestrator tests."""

    @staticmethod
    def job_id(url):
        return url.rstrip("/").rsplit("/", 1)[-1]

    def search(self, ids, location="London, England, United Kingdom"):
        cards = "".join(
            SEARCH_CARD.format(
                job_id=i,
                slug="software-engineer-at-acme",
                title=f"Software Engineer {i}",
                company="Acme Corp",
                location=location,
            )
            for i in ids
        )
        return f"<ul class='jobs-search__results-list'>{cards}</ul>"

    def detail(self, job_id, title=None, company="Acme Corp", description=None):
        return JOB_DETAIL.format(
            job_id=job_id,
            slug="software-engineer-at-acme",
            title=title if title is not None else f"Software Engineer {job_id}",
            company=company,
            location="London, England, United Kingdom",
            description=description
            if description is not None
            else "Build Python services on AWS with a friendly team.",
        )


# ---------- Test fixtures ----------
@pytest.fixture
def fx(request):
    base = Path(request.config.rootpath) / "tests" / "data"

    class _Fx:
        def text(self, name):
            return (base / name).read_text(encoding="utf-8")

        def json(self, name):
            return json.loads((base / name).read_text(encoding="utf-8"))

    return _Fx()


@pytest.fixture
def pages():
    return LinkedInPages()


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def memory_gateway():
    gw = SqlGateway("sqlite://")
    yield gw
    gw.close()


@pytest.fixture(autouse=True)
def _clean_scraper_env(monkeypatch):
    for name in (
        "SCRAPER_LOCATIONS",
        "SCRAPER_TYPES",
        "SCRAPER_MAX_PAGES",
        "SCRAPER_DELAY",
        "SCRAPER_MAX_RETRIES",
        "JOBS_DB_URL",
    ):
        monkeypatch.delenv(name, raising=False)
