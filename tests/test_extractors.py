from datetime import datetime

from utils.extractors import (
    EXTRACTORS,
    ArticleExtractor,
    CompanyExtractor,
    EventExtractor,
    JobExtractor,
    PersonExtractor,
    PostExtractor,
    extract_search_candidates,
    job_id_from_url,
)
from utils.schema import ContentType, is_valid


def test_search_candidates_in_page_order_without_duplicates(fx):
    cands = extract_search_candidates(fx.text("linkedin_search.html"))
    assert [c.source_id for c in cands] == ["3812345678", "3812345679"]
    assert cands[0].title == "Graduate Software Engineer"
    # tracking params are dropped
    assert cands[0].url == (
        "https://uk.linkedin.com/jobs/view/"
        "graduate-software-engineer-at-acme-corp-3812345678"
    )


def test_search_candidates_empty_page():
    assert extract_search_candidates("") == []
    assert extract_search_candidates("<html><body>No jobs</body></html>") == []


def test_job_id_from_url_variants():
    assert job_id_from_url("urn:li:jobPosting:3812345678") == "3812345678"
    assert job_id_from_url("https://www.linkedin.com/jobs/view/3812345678/") == "3812345678"
    assert (
        job_id_from_url("https://www.linkedin.com/jobs/view/data-analyst-at-globex-3812345679")
        == "3812345679"
    )
    assert job_id_from_url("https://www.linkedin.com/company/acme") is None
    assert job_id_from_url(None) is None


def test_job_detail_fields(fx):
    d = JobExtractor().extract(fx.text("linkedin_job_detail.html"))
    assert d.title == "Graduate Software Engineer"
    assert d.company == "Acme Corp"
    assert d.location == "London, England, United Kingdom"
    assert (d.city, d.state, d.country) == ("London", "England", "United Kingdom")
    assert d.source_url == (
        "https://uk.linkedin.com/jobs/view/graduate-software-engineer-at-acme-corp-3812345678"
    )
    assert d.source_id == "3812345678"
    assert "build Python and React services" in d.description
    assert "Show more" not in d.description
    assert d.employment_type == "Full-time"
    assert d.seniority == "Entry level"
    assert d.category == "Engineering and Information Technology"
    assert d.industries == "Software Development"
    assert d.applicants == "Over 200 applicants"
    assert is_valid(d)


def test_job_detail_derived_fields(fx):
    d = JobExtractor().extract(fx.text("linkedin_job_detail.html"))
    assert d.job_type == "GRADUATE"
    assert (d.salary_min, d.salary_max) == (30000, 40000)
    assert d.salary_currency == "GBP"
    assert d.salary_period == "Yearly"
    assert d.salary_mode == "RANGE"
    assert {"python", "react", "aws", "sql", "docker"} <= set(d.skills)
    assert d.application_method == "EXTERNAL"
    assert d.application_url.startswith("https://www.linkedin.com/jobs/view/externalApply/")
    assert isinstance(d.posted_at, datetime)
    assert d.posted_at < datetime.now()


def test_job_detail_easy_apply_and_url_fallback(pages):
    # no top-card link at all: the caller's URL is used, minus its query
    html = (
        pages.detail("4000001")
        .replace('class="topcard__link"', "")
        .replace('data-tracking-control-name="public_jobs_topcard-title"', "")
    )
    d = JobExtractor().extract(
        html, source_url="https://www.linkedin.com/jobs/view/4000001?refId=zz"
    )
    assert d.application_method == "EASY_APPLY"
    assert d.source_url == "https://www.linkedin.com/jobs/view/4000001"
    assert d.source_id == "4000001"


def test_job_without_title_is_none():
    assert JobExtractor().extract("<div class='show-more-less-html__markup'>x</div>") is None
    assert JobExtractor().extract("") is None


def test_job_without_salary_or_criteria(pages):
    d = JobExtractor().extract(pages.detail("4000002").replace("Employment type", "Other"))
    assert d.salary_min is None and d.salary_mode is None
    assert d.employment_type == "Full-time"


def test_event_extraction(fx):
    d = EventExtractor().extract(fx.text("linkedin_event.html"))
    assert d.title == "Visa Sponsorship Careers Webinar"
    assert d.event_type == "WEBINAR"
    assert d.start_date.date() == datetime(2025, 3, 14).date()
    assert d.location == "Online"
    assert d.is_virtual is True
    assert d.organizer == "Global Mobility Network"
    assert d.source_url == (
        "https://www.linkedin.com/events/visasponsorshipcareerswebinar7123456789/"
    )
    assert is_valid(d)


def test_event_without_location_is_virtual():
    html = (
        "<h1 class='event-details__title'>Career Fair</h1>"
        "<div class='event-details__description'>Meet employers</div>"
    )
    d = EventExtractor().extract(html, source_url="https://www.linkedin.com/events/1/")
    assert d.is_virtual is True
    assert d.event_type == "JOB_FAIR"
    assert d.start_date is None


def test_person_extraction(fx):
    d = PersonExtractor().extract(fx.text("linkedin_person.html"))
    assert (d.first_name, d.last_name) == ("Ada", "Lovelace")
    assert d.headline == "Immigration Lawyer at Example LLP"
    assert d.current_location == "London, England, United Kingdom"
    assert d.bio == "Helping engineers relocate with skilled-worker visas."
    assert d.source_url == "https://uk.linkedin.com/in/ada-lovelace-123"


def test_company_extraction(fx):
    d = CompanyExtractor().extract(fx.text("linkedin_company.html"))
    assert d.name == "Acme Corp"
    assert d.website == "https://acme.example.com"
    assert d.industry == "Software Development"
    assert d.company_size == "51-200 employees"
    assert d.headquarters == "London, England"
    assert d.description.startswith("Acme builds")
    assert d.source_url == "https://uk.linkedin.com/company/acme-corp"


def test_article_extraction(fx):
    d = ArticleExtractor().extract(fx.text("linkedin_article.html"))
    assert d.title == "How to land a visa-sponsored job"
    assert d.author == "Jane Doe"
    assert "Python and SQL" in d.content
    assert d.excerpt == d.content[:200]
    assert {"python", "sql", "communication"} <= set(d.tags)
    assert d.published_at.date() == datetime(2025, 1, 5).date()


def test_article_default_tags():
    d = ArticleExtractor().extract(
        "<h1>Moving abroad</h1><div class='article-main__content'><p>Pack light.</p></div>",
        source_url="https://www.linkedin.com/pulse/moving-abroad",
    )
    assert d.tags == ["visa", "jobs"]


def test_post_extraction(fx):
    d = PostExtractor().extract(fx.text("linkedin_post.html"))
    assert d.content.startswith("We are hiring!")
    assert d.author == "Acme Corp"
    assert d.reactions == 1204
    assert d.source_url == "https://www.linkedin.com/posts/acme-corp_hiring-activity-7123"


def test_extractors_registry_covers_every_type():
    assert set(EXTRACTORS) == set(ContentType)
    for ct, ex in EXTRACTORS.items():
        assert ex.content_type is ct
        assert ex.extract("") is None
