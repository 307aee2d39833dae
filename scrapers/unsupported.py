"""
Placeholders for content types without a discovery crawler.

Their extractors exist (see `utils.extractors`), but there is no public
search endpoint wired up for them yet. Each scraper answers with an explicit
`ScrapeResult.unsupported` so callers never mistake "feature absent" for
"no data found".
"""

from __future__ import annotations

from scrapers.base import ContentScraper
from scrapers.models import ScrapeResult
from utils.schema import ContentType


class UnsupportedScraper(ContentScraper):
    reason = "no search crawler for this content type"

    def scrape(self, location: str) -> ScrapeResult:
        self.log("scrape:unsupported", level="warning", location=location)
        assert self.content_type is not None
        return ScrapeResult.unsupported(self.content_type, location, self.reason)


class EventScraper(UnsupportedScraper):
    content_type = ContentType.Events


class PeopleScraper(UnsupportedScraper):
    content_type = ContentType.People
    reason = "profile search requires an authenticated session"


class ArticleScraper(UnsupportedScraper):
    content_type = ContentType.Articles


class CompanyScraper(UnsupportedScraper):
    content_type = ContentType.Companies


class PostScraper(UnsupportedScraper):
    content_type = ContentType.Posts
