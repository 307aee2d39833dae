# utils/classify.py
from __future__ import annotations

import re

from typing import List, Optional, Pattern, Tuple

from utils.schema import EventType, JobType


def _rx(*phrases: str) -> Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(phrases) + r")\b", re.I)


# Priority order matters: the first matching rule wins.
JOB_TYPE_RULES: List[Tuple[JobType, Pattern[str]]] = [
    (JobType.Student, _rx(r"student", r"students", r"undergraduate", r"placement year")),
    (JobType.Graduate, _rx(r"graduate", r"graduates", r"grad", r"new grad", r"entry[- ]level", r"junior")),
    (JobType.Experienced, _rx(r"experienced", r"senior", r"sr\.?")),
    (JobType.Internship, _rx(r"intern", r"interns", r"internship", r"internships")),
    (JobType.Apprenticeship, _rx(r"apprentice", r"apprenticeship", r"apprenticeships")),
    (JobType.Contract, _rx(r"contract", r"contractor", r"freelance", r"fixed[- ]term")),
    (JobType.Temporary, _rx(r"temporary", r"temp", r"seasonal")),
    (JobType.Volunteer, _rx(r"volunteer", r"volunteering", r"unpaid")),
    (JobType.PartTime, _rx(r"part[- ]time")),
    (JobType.Remote, _rx(r"remote", r"work from home", r"wfh", r"fully distributed")),
    (JobType.OnSite, _rx(r"on[- ]site", r"onsite", r"in[- ]office")),
    (JobType.Hybrid, _rx(r"hybrid")),
]

EVENT_TYPE_RULES: List[Tuple[EventType, Pattern[str]]] = [
    (EventType.Webinar, _rx(r"webinar", r"webinars", r"live stream", r"livestream")),
    (EventType.Workshop, _rx(r"workshop", r"workshops", r"bootcamp", r"hands[- ]on")),
    (EventType.Seminar, _rx(r"seminar", r"seminars", r"lecture", r"talk")),
    (EventType.Networking, _rx(r"networking", r"meetup", r"meet[- ]up", r"mixer")),
    (EventType.Conference, _rx(r"conference", r"summit", r"expo", r"convention")),
    (EventType.JobFair, _rx(r"job fair", r"career fair", r"careers fair", r"hiring fair")),
    (EventType.JobHunting, _rx(r"job hunting", r"job search", r"recruitment", r"recruiting", r"hiring event")),
]


def classify_job_type(title: Optional[str], description: Optional[str] = "") -> JobType:
    """
    Classify a listing by scanning title + description against `JOB_TYPE_RULES`.

    Args:
        title: Listing title.
        description: Listing body text.

    Returns:
        The first `JobType` whose keywords appear, else `JobType.FullTime`.
    """
    text = f"{title or ''}\n{description or ''}"
    for job_type, rx in JOB_TYPE_RULES:
        if rx.search(text):
            return job_type
    return JobType.FullTime


def classify_event_type(title: Optional[str], description: Optional[str] = "") -> EventType:
    text = f"{title or ''}\n{description or ''}"
    for event_type, rx in EVENT_TYPE_RULES:
        if rx.search(text):
            return event_type
    return EventType.Meetup
