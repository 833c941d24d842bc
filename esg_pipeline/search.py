"""
Web search through SerpApi, plus ranking of results that look like
sustainability reports.
"""

import logging
from dataclasses import dataclass, asdict
from typing import List, Optional

import requests

from .config import REQUEST_TIMEOUT, SERPAPI_URL, PipelineConfig
from .errors import RetryableAPIError
from .retry import RETRYABLE_STATUS_CODES, RetryPolicy

logger = logging.getLogger(__name__)

REPORT_KEYWORDS = ["sustainability", "esg", "environmental", "report", "annual"]


@dataclass
class SearchResult:
    title: str
    link: str
    snippet: str = ""
    position: int = 0
    score: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class SearchClient:
    """Google results via SerpApi."""

    def __init__(self, config: PipelineConfig, policy: Optional[RetryPolicy] = None,
                 session: Optional[requests.Session] = None):
        self.config = config
        self.policy = policy or RetryPolicy.from_config(config)
        self.session = session or requests.Session()

    def _get(self, params: dict) -> dict:
        resp = self.session.get(SERPAPI_URL, params=params, timeout=REQUEST_TIMEOUT)
        if resp.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableAPIError(f"SerpApi returned {resp.status_code}", resp.status_code)
        resp.raise_for_status()
        return resp.json()

    def search(self, query: str, num: int = 10) -> List[SearchResult]:
        """Run a web search. Returns [] when the search fails."""
        self.config.require_search()
        logger.info(f"Searching: {query}")
        params = {
            "q": query,
            "api_key": self.config.serp_api_key,
            "engine": "google",
            "num": num,
            "hl": "en",
            "gl": "us",
        }
        try:
            data = self.policy.call(self._get, params, operation="SerpApi search")
        except (requests.RequestException, RetryableAPIError, ValueError) as e:
            logger.error(f"Search failed for '{query}': {e}")
            return []

        results = [
            SearchResult(
                title=r.get("title") or "",
                link=r.get("link") or "",
                snippet=r.get("snippet") or "",
                position=r.get("position") or 0,
            )
            for r in data.get("organic_results", [])
            if r.get("link")
        ]
        logger.info(f"Found {len(results)} search results")
        return results


def is_pdf_url(url: str) -> bool:
    """True if the URL path ends in .pdf, ignoring query string and fragment."""
    return url.lower().split("?")[0].split("#")[0].endswith(".pdf")


def dedupe_results(results: List[SearchResult]) -> List[SearchResult]:
    """Drop results whose link was already seen (first one wins)."""
    seen = set()
    unique = []
    for result in results:
        if result.link in seen:
            continue
        seen.add(result.link)
        unique.append(result)
    return unique


def score_result(result: SearchResult, company: str, year: str) -> int:
    title = result.title.lower()
    snippet = result.snippet.lower()
    link = result.link.lower()
    score = 0

    if is_pdf_url(link):
        score += 10
    if "pdf" in title or "pdf" in link:
        score += 5

    for keyword in REPORT_KEYWORDS:
        if keyword in title:
            score += 3
        if keyword in snippet:
            score += 2
        if keyword in link:
            score += 1

    for word in company.lower().split():
        if word in title:
            score += 2
        if word in link:
            score += 1

    if year in title or year in snippet:
        score += 5
    return score


def prioritize_results(results: List[SearchResult], company: str, year) -> List[SearchResult]:
    """Score results and sort them best-first (ties keep search order)."""
    year = str(year)
    for result in results:
        result.score = score_result(result, company, year)
    return sorted(results, key=lambda r: r.score, reverse=True)
