from __future__ import annotations

import math
import re

from bs4 import BeautifulSoup as BS
from datetime import datetime
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta
from typing import Dict, List, Optional
from urllib.parse import urlparse, urlunparse

from utils.schema import Salary, SalaryMode

CURRENCY_SYMBOLS = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
    "₽": "RUB",
    "₩": "KRW",
    "₦": "NGN",
    "₵": "GHS",
    "₺": "TRY",
}
CURRENCY_CODES = (
    "USD", "EUR", "GBP", "JPY", "INR", "RUB", "KRW", "NGN", "GHS", "TRY",
    "CAD", "AUD", "NZD", "CHF", "SEK", "NOK", "DKK", "PLN", "SGD", "HKD",
    "AED", "SAR", "QAR", "KWD", "BHD", "OMR", "ZAR", "KES", "CNY", "BRL",
    "MXN",
)
DEFAULT_CURRENCY = "USD"

# Checked in order; the first hit wins.
PERIODS = [
    ("Yearly", ("yearly", "/yr", "/year", "per year", "per annum", "annually", "p.a.")),
    ("Monthly", ("monthly", "/mo", "/month", "per month")),
    ("Hourly", ("hourly", "/hr", "/hour", "per hour")),
    ("Daily", ("daily", "/day", "per day")),
    ("Weekly", ("weekly", "/wk", "/week", "per week")),
]
DEFAULT_PERIOD = "Yearly"

COMPETITIVE_MARKERS = ("competitive", "doe", "negotiable")

_CODE_RE = re.compile(r"\b(" + "|".join(CURRENCY_CODES) + r")\b", re.I)
_AMOUNT_RE = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(k\b)?", re.I)
_RANGE_SEP_RE = re.compile(r"[-–—]|\bto\b", re.I)

_RELATIVE_RE = re.compile(
    r"(\d+)\s*(minute|min|hour|hr|day|week|month|year)s?\b", re.I
)
_RELATIVE_UNITS = {
    "minute": "minutes",
    "min": "minutes",
    "hour": "hours",
    "hr": "hours",
    "day": "days",
    "week": "weeks",
    "month": "months",
    "year": "years",
}


def clean_text(s: Optional[str]) -> str:
    if not s:
        return ""
    return re.sub(r"\s+", " ", s.replace("\xa0", " ")).strip()


def normalize_url(u: Optional[str]) -> Optional[str]:
    if not u:
        return None
    try:
        p = urlparse(u.strip())
        if p.scheme in ("http", "https") and p.netloc:
            return urlunparse((p.scheme, p.netloc, p.path, "", "", ""))
        return None
    except Exception:
        return None


def _detect_currency(text: str) -> str:
    for sym, code in CURRENCY_SYMBOLS.items():
        if sym in text:
            return code
    m = _CODE_RE.search(text)
    if m:
        return m.group(1).upper()
    return DEFAULT_CURRENCY


def _detect_period(lower: str) -> str:
    for period, markers in PERIODS:
        if any(m in lower for m in markers):
            return period
    return DEFAULT_PERIOD


def _amounts(text: str) -> List[tuple]:
    """Return (value, has_k, start, end) for each figure in `text`."""
    out = []
    for m in _AMOUNT_RE.finditer(text):
        raw = m.group(1).replace(",", "")
        try:
            v = float(raw)
        except ValueError:
            continue
        # absurdly long digit runs overflow to inf, with or without "k"
        if not math.isfinite(v * 1000):
            continue
        out.append((v, bool(m.group(2)), m.start(), m.end()))
    return out


def parse_salary(raw: Optional[str]) -> Optional[Salary]:
    """
    Parse free-form salary text into a `Salary`.

    Recognizes currency symbols then ISO codes, a period keyword (default
    Yearly), a dash-separated range, a single figure, "k" shorthand and
    thousands separators. Text mentioning competitive/DOE/negotiable pay
    yields a COMPETITIVE salary without bounds.

    Args:
        raw: Salary text as scraped (e.g. "£30,000 - £40,000", "$45/hr").

    Returns:
        A `Salary`, or None when the text carries no usable figure.
    """
    text = clean_text(raw)
    if not text:
        return None
    lower = text.lower()
    currency = _detect_currency(text)
    period = _detect_period(lower)

    if any(re.search(rf"\b{m}\b", lower) for m in COMPETITIVE_MARKERS):
        return Salary(None, None, currency, period, SalaryMode.Competitive)

    found = _amounts(text)
    if not found:
        return None

    if len(found) >= 2:
        (a, ak, _, a_end), (b, bk, b_start, _) = found[0], found[1]
        if _RANGE_SEP_RE.search(text[a_end:b_start]):
            # "30-40k" carries the multiplier on the upper bound only
            if bk and not ak and a < 1000:
                ak = True
            a = a * 1000 if ak else a
            b = b * 1000 if bk else b
            return Salary(min(a, b), max(a, b), currency, period, SalaryMode.Range)

    v, vk, _, _ = found[0]
    v = v * 1000 if vk else v
    return Salary(v, v, currency, period, SalaryMode.Fixed)


def parse_date(s: Optional[str], now: Optional[datetime] = None) -> datetime:
    """
    Resolve relative ("3 days ago", "5 hours") or absolute date text.

    Never raises: anything unparseable resolves to `now`.
    """
    if now is None:
        now = datetime.now()
    text = clean_text(s)
    if not text:
        return now
    lower = text.lower()
    if lower in ("today", "just now", "now"):
        return now
    if lower == "yesterday":
        return now - relativedelta(days=1)
    m = _RELATIVE_RE.search(lower)
    if m:
        n = int(m.group(1))
        unit = _RELATIVE_UNITS[m.group(2)]
        try:
            return now - relativedelta(**{unit: n})
        except (ValueError, OverflowError):
            return now
    try:
        return date_parser.parse(text, default=now.replace(hour=0, minute=0, second=0, microsecond=0))
    except (ValueError, OverflowError):
        return now


def split_location(s: Optional[str]) -> Dict[str, str]:
    """
    Decompose "City, State, Country" into parts.

    Three comma-separated parts map to city/state/country, two to
    city/country, one to country; anything longer keeps the first part as
    city, the second as state and the last as country.
    """
    parts = [p.strip() for p in (s or "").split(",") if p.strip()]
    if not parts:
        return {}
    if len(parts) == 1:
        return {"country": parts[0]}
    if len(parts) == 2:
        return {"city": parts[0], "country": parts[1]}
    return {"city": parts[0], "state": parts[1], "country": parts[-1]}


def sanitize_description(raw: Optional[str]) -> str:
    if not raw:
        return ""
    s = str(raw)
    s = (
        s.replace("</br>", "<br>")
        .replace("<br/>", "<br>")
        .replace("<BR/>", "<br>")
        .replace("<BR>", "<br>")
    )
    soup = BS(s, "html.parser")
    for tag in soup.find_all(["script", "style", "button"]):
        tag.decompose()
    for p in soup.find_all(["p", "div"]):
        if p.find("br") is None:
            p.append(soup.new_string("\n"))
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for li in soup.find_all("li"):
        text = li.get_text(" ", strip=True)
        li.clear()
        li.append(text + "\n")
    txt = soup.get_text("\n", strip=True)
    txt = re.sub(r"[ \t]+", " ", txt)
    txt = re.sub(r"\n{3,}", "\n\n", txt)
    txt = txt.replace("\xa0", " ").strip()
    return txt
