import pytest

from utils.classify import JOB_TYPE_RULES, classify_event_type, classify_job_type
from utils.enrich import extract_skills
from utils.schema import EventType, JobType


@pytest.mark.parametrize(
    "title,description,expected",
    [
        ("Graduate Software Engineer", "Join our team", JobType.Graduate),
        ("Remote Backend Role", "Work on APIs", JobType.Remote),
        ("Senior Backend Engineer", "Fully remote", JobType.Experienced),
        ("Summer Internship", "Open to students", JobType.Student),
        ("Apprentice Electrician", "", JobType.Apprenticeship),
        ("Backend Engineer", "Part-time, 20 hours", JobType.PartTime),
        ("Backend Engineer", "Hybrid working from our office", JobType.Hybrid),
        ("Backend Engineer", "Build APIs", JobType.FullTime),
    ],
)
def test_classify_job_type(title, description, expected):
    assert classify_job_type(title, description) is expected


def test_job_type_priority_is_total_order():
    # every earlier rule beats every later one when both keywords appear
    words = {
        JobType.Student: "student",
        JobType.Graduate: "graduate",
        JobType.Experienced: "senior",
        JobType.Internship: "internship",
        JobType.Apprenticeship: "apprenticeship",
        JobType.Contract: "contract",
        JobType.Temporary: "temporary",
        JobType.Volunteer: "volunteer",
        JobType.PartTime: "part-time",
        JobType.Remote: "remote",
        JobType.OnSite: "on-site",
        JobType.Hybrid: "hybrid",
    }
    order = [jt for jt, _ in JOB_TYPE_RULES]
    for i, hi in enumerate(order):
        for lo in order[i + 1 :]:
            assert classify_job_type(f"{words[lo]} role", words[hi]) is hi


def test_classify_job_type_handles_none():
    assert classify_job_type(None, None) is JobType.FullTime


@pytest.mark.parametrize(
    "title,expected",
    [
        ("Python Webinar", EventType.Webinar),
        ("Resume Workshop", EventType.Workshop),
        ("Immigration Law Seminar", EventType.Seminar),
        ("Tech Networking Night", EventType.Networking),
        ("Global Talent Summit", EventType.Conference),
        ("Spring Career Fair", EventType.JobFair),
        ("Recruitment Drive", EventType.JobHunting),
        ("Friday drinks", EventType.Meetup),
    ],
)
def test_classify_event_type(title, expected):
    assert classify_event_type(title, "") is expected


def test_extract_skills_groups_and_symbols():
    skills = extract_skills(
        "Python, C++ and React developer", "AWS + Docker; strong communication"
    )
    for s in ("python", "c++", "react", "aws", "docker", "communication"):
        assert s in skills


def test_extract_skills_dedupes_lowercases():
    assert extract_skills("python Python PYTHON") == ["python"]


def test_extract_skills_avoids_partial_words():
    skills = extract_skills("JavaScript and MySQL")
    assert "javascript" in skills and "mysql" in skills
    assert "java" not in skills and "sql" not in skills


def test_extract_skills_empty():
    assert extract_skills("", None) == []
    assert extract_skills("Friendly team, great coffee") == []
