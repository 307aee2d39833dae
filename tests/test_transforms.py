from datetime import datetime

from utils.schema import SalaryMode
from utils.transforms import (
    clean_text,
    normalize_url,
    parse_date,
    parse_salary,
    sanitize_description,
    split_location,
)

T = datetime(2025, 3, 20, 15, 30)


def test_salary_gbp_range():
    s = parse_salary("£30,000 - £40,000")
    assert (s.min, s.max) == (30000, 40000)
    assert s.currency == "GBP"
    assert s.period == "Yearly"
    assert s.mode is SalaryMode.Range


def test_salary_competitive_has_no_bounds():
    s = parse_salary("Competitive")
    assert s.mode is SalaryMode.Competitive
    assert s.min is None and s.max is None


def test_salary_empty_and_figureless_are_none():
    assert parse_salary("") is None
    assert parse_salary(None) is None
    assert parse_salary("Great benefits") is None


def test_salary_single_hourly_figure():
    s = parse_salary("$45/hr")
    assert (s.min, s.max, s.currency, s.period) == (45, 45, "USD", "Hourly")
    assert s.mode is SalaryMode.Fixed


def test_salary_k_shorthand_and_iso_code():
    s = parse_salary("EUR 30-40k per month")
    assert (s.min, s.max) == (30000, 40000)
    assert s.currency == "EUR"
    assert s.period == "Monthly"


def test_salary_reversed_range_is_ordered():
    s = parse_salary("₹9,00,000 – ₹6,00,000 yearly")
    assert s.min == 600000 and s.max == 900000
    assert s.currency == "INR"


def test_salary_linkedin_compensation_text():
    # slashes inside each bound must not hide the range separator
    s = parse_salary("$100,000.00/yr - $150,000.00/yr")
    assert (s.min, s.max, s.period) == (100000, 150000, "Yearly")


def test_salary_doe_is_competitive():
    assert parse_salary("£35k DOE").mode is SalaryMode.Competitive


def test_date_relative_days():
    assert parse_date("3 days ago", now=T).date() == datetime(2025, 3, 17).date()


def test_date_relative_units():
    assert parse_date("5 hours ago", now=T) == datetime(2025, 3, 20, 10, 30)
    assert parse_date("2 weeks ago", now=T).date() == datetime(2025, 3, 6).date()
    assert parse_date("1 month ago", now=T).date() == datetime(2025, 2, 20).date()
    assert parse_date("yesterday", now=T).date() == datetime(2025, 3, 19).date()


def test_date_absolute():
    assert parse_date("2024-05-01", now=T) == datetime(2024, 5, 1)
    assert parse_date("March 14, 2025", now=T).date() == datetime(2025, 3, 14).date()


def test_date_garbage_falls_back_to_now():
    out = parse_date("garbage", now=T)
    assert isinstance(out, datetime)
    assert out == T
    assert parse_date("", now=T) == T


def test_split_location():
    assert split_location("London, England, United Kingdom") == {
        "city": "London",
        "state": "England",
        "country": "United Kingdom",
    }
    assert split_location("Berlin, Germany") == {"city": "Berlin", "country": "Germany"}
    assert split_location("Remote") == {"country": "Remote"}
    assert split_location("") == {}
    assert split_location(None) == {}


def test_clean_text_and_normalize_url():
    assert clean_text("  a\xa0 b\n\tc ") == "a b c"
    assert (
        normalize_url("https://www.linkedin.com/jobs/view/123?trk=x#frag")
        == "https://www.linkedin.com/jobs/view/123"
    )
    assert normalize_url("javascript:void(0)") is None
    assert normalize_url(None) is None


def test_sanitize_description_keeps_lines_drops_buttons():
    out = sanitize_description(
        "<p>Hello<br/>World</p><ul><li>One</li><li>Two</li></ul><button>Show more</button>"
    )
    assert "Hello\nWorld" in out
    assert "One" in out and "Two" in out
    assert "Show more" not in out


def test_date_huge_relative_offsets_fall_back_to_now():
    assert parse_date("99999999999 days ago", now=T) == T
    assert parse_date("5000 years ago", now=T) == T
    assert parse_date("99999999999999999999 hours", now=T) == T


def test_salary_overflowing_figure_is_ignored():
    assert parse_salary("£" + "9" * 400) is None
    s = parse_salary("£" + "9" * 400 + " or £45,000")
    assert (s.min, s.max) == (45000, 45000)
