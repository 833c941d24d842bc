"""
Company research: parent company, headquarters country, revenue,
industry category and related companies, each answered by one
extraction task.
"""

import logging
import re
from typing import Iterable, List, Optional

from .config import INDUSTRY_CATEGORIES
from .gemini import GeminiClient
from .schemas import CategoryInfo, CountryInfo, RevenueInfo
from .tasks import (
    ExtractionTask,
    category_prompt,
    country_prompt,
    parent_company_prompt,
    related_companies_prompt,
    revenue_prompt,
)

logger = logging.getLogger(__name__)

LEGAL_SUFFIXES = {
    "inc", "incorporated", "corp", "corporation", "co", "company", "ltd", "limited",
    "plc", "llc", "lp", "ag", "sa", "se", "nv", "bv", "gmbh", "spa", "ab", "asa",
    "oyj", "kk", "holdings", "holding", "group", "the",
}


def normalize_company_name(name: str) -> str:
    words = re.sub(r"[^a-z0-9\s]", " ", name.lower()).split()
    kept = [w for w in words if w not in LEGAL_SUFFIXES]
    return " ".join(kept or words)


def is_same_company(a: str, b: str) -> bool:
    """Same company ignoring case, punctuation and legal suffixes."""
    if not a or not b:
        return False
    return normalize_company_name(a) == normalize_company_name(b)


def match_category(value: str, categories: Iterable[str] = INDUSTRY_CATEGORIES) -> Optional[str]:
    """Canonical category name for value, or None if it is not in the list."""
    wanted = value.strip().lower()
    for category in categories:
        if category.lower() == wanted:
            return category
    return None


class CompanyResearcher:
    def __init__(self, client: GeminiClient):
        self.client = client

    def find_parent_company(self, company: str) -> str:
        """Top-level parent of company; the company itself on any failure."""
        try:
            result = self.client.generate(ExtractionTask.PARENT_COMPANY, parent_company_prompt(company))
        except Exception as e:
            logger.error(f"Error finding parent company for {company}: {e}")
            return company

        parent = result.parent_company.strip()
        if not parent or is_same_company(company, parent):
            return company
        logger.info(f"{company} is owned by {parent}")
        return parent

    def determine_country(self, company: str, report_url: Optional[str] = None) -> Optional[CountryInfo]:
        try:
            info = self.client.generate(ExtractionTask.COUNTRY, country_prompt(company, report_url))
        except Exception as e:
            logger.error(f"Error determining country for {company}: {e}")
            return None
        if not info.country.strip():
            logger.warning(f"No country found for {company}")
            return None
        return info

    def get_revenue(self, company: str, reporting_period: Optional[str] = None) -> Optional[RevenueInfo]:
        try:
            info = self.client.generate(ExtractionTask.REVENUE, revenue_prompt(company, reporting_period))
        except Exception as e:
            logger.error(f"Error getting revenue for {company}: {e}")
            return None
        if info.revenue is None or info.revenue <= 0:
            logger.warning(f"No revenue found for {company}")
            return None
        return info

    def get_employees(self, company: str, reporting_period: Optional[str] = None) -> Optional[float]:
        try:
            info = self.client.generate(ExtractionTask.REVENUE, revenue_prompt(company, reporting_period))
        except Exception as e:
            logger.error(f"Error getting employee count for {company}: {e}")
            return None
        if info.employees is None or info.employees <= 0:
            logger.warning(f"No employee count found for {company}")
            return None
        return info.employees

    def get_category(self, company: str, country: Optional[str] = None) -> Optional[CategoryInfo]:
        try:
            info = self.client.generate(ExtractionTask.CATEGORY, category_prompt(company, country))
        except Exception as e:
            logger.error(f"Error getting category for {company}: {e}")
            return None
        category = match_category(info.company_category)
        if category is None:
            logger.warning(f"Category '{info.company_category}' for {company} is not a known industry")
            return None
        info.company_category = category
        return info

    def get_related_companies(self, company: str, exclude: Iterable[str] = ()) -> List[str]:
        """Competitors of company, minus anything in exclude."""
        exclude = list(exclude)
        try:
            result = self.client.generate(
                ExtractionTask.RELATED_COMPANIES, related_companies_prompt(company, exclude)
            )
        except Exception as e:
            logger.error(f"Error getting related companies for {company}: {e}")
            return []

        skip = {normalize_company_name(name) for name in exclude}
        skip.add(normalize_company_name(company))
        related = []
        for name in result.related_companies:
            key = normalize_company_name(name)
            if not name.strip() or key in skip:
                continue
            skip.add(key)
            related.append(name.strip())
        return related
