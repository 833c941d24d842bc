"""
Extraction tasks sent to the generative model.

Each ExtractionTask member carries its own TaskConfig: the model to call,
the response schema the reply is validated against, the sampling
temperature and the system instruction. Prompt builders for each task sit
beside the enumeration.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Type

from pydantic import BaseModel

from .config import DEFAULT_MODEL, INDUSTRY_CATEGORIES, SCOPE3_CATEGORY_NAMES
from .schemas import (
    CategoryInfo,
    CountryInfo,
    EmissionsReport,
    ParentCompany,
    RelatedCompanies,
    ReportLink,
    RevenueInfo,
)

_JSON_ONLY = "Return only a single JSON object matching the requested fields. No prose."


@dataclass(frozen=True)
class TaskConfig:
    schema: Type[BaseModel]
    temperature: float
    system_instruction: str
    model: str = DEFAULT_MODEL


class ExtractionTask(Enum):
    PARENT_COMPANY = TaskConfig(
        schema=ParentCompany,
        temperature=0.2,
        system_instruction=(
            "You identify the top-level private parent company of a company. "
            'Fields: parentCompany, confidence (0-10), relationship, notes. ' + _JSON_ONLY
        ),
    )
    COUNTRY = TaskConfig(
        schema=CountryInfo,
        temperature=0.2,
        system_instruction=(
            "You determine the country where a company is headquartered. "
            "Fields: country, confidence (0-10), headquarters. " + _JSON_ONLY
        ),
    )
    REVENUE = TaskConfig(
        schema=RevenueInfo,
        temperature=0.1,
        system_instruction=(
            "You research annual revenue and headcount of companies. "
            "Fields: revenue (number), currency (ISO code), year (concise fiscal period), "
            "source, sourceUrl, confidence (0-10), employees (number). " + _JSON_ONLY
        ),
    )
    CATEGORY = TaskConfig(
        schema=CategoryInfo,
        temperature=0.1,
        system_instruction=(
            "You classify companies into exactly one industry category from a fixed list. "
            "Fields: companyCategory, confidence (0-10). " + _JSON_ONLY
        ),
    )
    RELATED_COMPANIES = TaskConfig(
        schema=RelatedCompanies,
        temperature=0.4,
        system_instruction=(
            "You list competitors of similar size and region. "
            "Fields: relatedCompanies (array of names). " + _JSON_ONLY
        ),
    )
    REPORT_LINK = TaskConfig(
        schema=ReportLink,
        temperature=0.1,
        system_instruction=(
            "You pick the most likely latest sustainability report PDF from a list of links. "
            "Fields: reportUrl, reportYear, confidence (0-10), reasoning. " + _JSON_ONLY
        ),
    )
    EMISSIONS = TaskConfig(
        schema=EmissionsReport,
        temperature=0.0,
        system_instruction=(
            "You extract greenhouse gas emissions from sustainability reports. "
            "Fields: containsRelevantData, reportingPeriod, standardUnit, "
            "scope1 {value, unit, confidence}, "
            "scope2 {locationBased {value, unit, confidence}, marketBased {value, unit, confidence}, notes}, "
            'scope3 {total {value, unit, confidence}, categories {"1".."15": '
            "{value, unit, confidence, included, notes}}, notes}, "
            "confidence {overall, notes, missingData, potentialErrors}, notes. "
            "containsRelevantData is true only if scope 1, scope 2 or scope 3 total "
            "has a non-zero value. " + _JSON_ONLY
        ),
    )

    @property
    def config(self) -> TaskConfig:
        return self.value

    @property
    def schema(self) -> Type[BaseModel]:
        return self.value.schema


# ── Prompt builders ───────────────────────────────────────────────────────────


def parent_company_prompt(company: str) -> str:
    return (
        f"Determine the non-government parent company of {company}, only if it is a "
        f"subsidiary of another private company. If {company} is already the top-level "
        f"parent, or its owner is a government, fund or private equity firm, "
        f'return "{company}" as parentCompany.'
    )


def country_prompt(company: str, report_url: Optional[str] = None) -> str:
    prompt = (
        f'Determine the primary country of headquarters or registration of "{company}". '
        "For multinationals use the country where the parent company is registered."
    )
    if report_url:
        prompt += f" The company's sustainability report is at {report_url}."
    return prompt


def revenue_prompt(company: str, reporting_period: Optional[str] = None) -> str:
    period = reporting_period or "the most recent year available"
    return (
        f"Find the annual revenue and number of employees of {company} for {period}. "
        "Prefer official company financial reports."
    )


def category_prompt(company: str, country: Optional[str] = None,
                    categories: Sequence[str] = INDUSTRY_CATEGORIES) -> str:
    where = f" in {country}" if country else ""
    options = "\n".join(f"- {c}" for c in categories)
    return f"Choose the industry category of {company}{where} from this list:\n{options}"


def related_companies_prompt(company: str, exclude: Iterable[str] = ()) -> str:
    exclude = list(exclude)
    prompt = (
        f"List related competitors of similar size and region to {company}. "
        "The companies must not share a parent company."
    )
    if exclude:
        prompt += " Do not include any of: " + ", ".join(exclude) + "."
    return prompt


def report_link_prompt(company: str, links: Sequence[str]) -> str:
    joined = "\n".join(links)
    return (
        f"These PDFs were found on the website of {company}:\n{joined}\n"
        "Which one is most likely the latest sustainability/ESG report?"
    )


def emissions_prompt(company: str) -> str:
    categories = "\n".join(f"{n}. {name}" for n, name in SCOPE3_CATEGORY_NAMES.items())
    return (
        f"Extract the greenhouse gas emissions of {company} from the attached report. "
        "Report scope 1, scope 2 (location and market based), scope 3 total and every "
        "scope 3 category with its value, unit and a 0-10 confidence. "
        "If only a combined total is given, state which scopes it includes in the notes."
        f"\nScope 3 categories:\n{categories}"
    )
