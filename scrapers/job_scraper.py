from __future__ import annotations

from time import monotonic
from typing import Any, Dict, Optional, Set

from scrapers.base import ContentScraper
from scrapers.models import ScrapeResult
from utils.extractors import EXTRACTORS, Candidate, extract_search_candidates
from utils.http import NetworkError
from utils.schema import ContentType, JobDraft, validate_draft

SEARCH_URL = "https://www.linkedin.com/jobs-guest/jobs/api/seeMoreJobPostings/search"
DETAIL_URL = "https://www.linkedin.com/jobs-guest/jobs/api/jobPosting/{job_id}"


class LinkedInJobScraper(ContentScraper):
    """
    Job listings from LinkedIn's public guest endpoints.

    Search pages are requested at offsets 0, page_size, 2*page_size, ...
    until a page comes back short, `max_pages` is reached, or a stop is
    requested. Each discovered job id is then fetched from the detail
    endpoint, extracted, normalized and validated.
    """

    content_type = ContentType.Jobs

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.extractor = EXTRACTORS[ContentType.Jobs]

    def search_params(self, location: str, start: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "keywords": self.config.keyword_for(ContentType.Jobs),
            "location": location,
            "start": start,
        }
        if self.config.time_filter:
            params["f_TPR"] = self.config.time_filter
        return params

    def scrape(self, location: str) -> ScrapeResult:
        started = monotonic()
        result = self.new_result(location)
        page_size = self.config.page_size
        # pages can overlap while new postings arrive; postings repeated across
        # locations are caught by the persistence duplicate check instead
        seen_ids: Set[str] = set()

        for page in range(self.config.max_pages):
            if self.should_stop():
                self.log("list:stopped", location=location, page=page)
                break
            start = page * page_size
            try:
                markup = self.fetch_with_retries(
                    SEARCH_URL,
                    result,
                    params=self.search_params(location, start),
                    what="list",
                )
            except NetworkError as e:
                # budget exhausted: mark the page and move on
                result.errors.append(f"list page {page} ({location}): {e}")
                self.log("list:error", level="error", page=page, reason=e.reason)
                continue
            if markup is None:
                break

            result.pages_processed += 1
            candidates = extract_search_candidates(markup)
            self.log("list:page", location=location, page=page, n=len(candidates))

            for idx, cand in enumerate(candidates, start=1):
                if self.should_stop():
                    break
                if cand.source_id in seen_ids:
                    continue
                seen_ids.add(cand.source_id)
                result.items_found += 1
                draft = self.scrape_detail(cand, result)
                if draft is not None:
                    result.drafts.append(draft)
                if idx == 1 or idx % self.log_every == 0:
                    self.log("detail:progress", idx=idx, total=len(candidates))

            if len(candidates) < page_size:
                break

        return self.finish(result, started)

    def scrape_detail(
        self, cand: Candidate, result: ScrapeResult
    ) -> Optional[JobDraft]:
        """
        Fetch, extract and validate one job posting.

        Failures are recorded on `result` and never raised: a bad candidate
        must not cost the rest of the page.
        """
        url = DETAIL_URL.format(job_id=cand.source_id)
        try:
            markup = self.fetch_with_retries(url, result, what="detail")
        except NetworkError as e:
            result.errors.append(f"detail {cand.source_id}: {e}")
            self.log("detail:error", level="error", id=cand.source_id, reason=e.reason)
            return None
        if markup is None:
            return None

        try:
            draft = self.extractor.extract(markup, source_url=cand.url)
        except Exception as e:
            self.logger.exception("detail:extract:error id=%s", cand.source_id)
            result.errors.append(f"extract {cand.source_id}: {e}")
            return None
        if draft is None:
            result.errors.append(f"extract {cand.source_id}: missing title markup")
            self.log("detail:extract:empty", level="warning", id=cand.source_id)
            return None

        problems = validate_draft(draft)
        if problems:
            result.invalid += 1
            self.log("detail:invalid", id=cand.source_id, problems=",".join(problems))
            return None
        return draft
