"""
Typed schemas for AI responses.

Every model reply is validated against one of these before anything else
touches it; a reply that is not JSON or does not fit the schema raises
MalformedResponseError instead of leaking a half-populated dict.
"""

import json
import logging
import re
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedResponseError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_MISSING_MARKERS = {"", "n/a", "na", "none", "null", "not specified", "not reported", "-"}


def _coerce_number(value):
    """Accept numbers sent as strings ("1,234", "N/A")."""
    if value is None or isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace(" ", "").strip()
        if cleaned.lower() in _MISSING_MARKERS:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None
    return value


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EmissionValue(_Schema):
    value: Optional[float] = None
    unit: Optional[str] = None
    confidence: Optional[float] = None
    included: Optional[bool] = None
    notes: Optional[str] = None
    description: Optional[str] = None

    @field_validator("value", "confidence", mode="before")
    @classmethod
    def coerce_numeric(cls, value):
        return _coerce_number(value)

    @property
    def is_reported(self) -> bool:
        return self.value is not None and self.value != 0


class Scope2Emissions(_Schema):
    location_based: EmissionValue = Field(default_factory=EmissionValue, alias="locationBased")
    market_based: EmissionValue = Field(default_factory=EmissionValue, alias="marketBased")
    notes: Optional[str] = None


class Scope3Emissions(_Schema):
    total: EmissionValue = Field(default_factory=EmissionValue)
    categories: Dict[str, EmissionValue] = Field(default_factory=dict)
    notes: Optional[str] = None

    def category(self, number: int) -> EmissionValue:
        return self.categories.get(str(number), EmissionValue())


class ReportConfidence(_Schema):
    overall: Optional[float] = None
    notes: Optional[str] = None
    missing_data: List[str] = Field(default_factory=list, alias="missingData")
    potential_errors: List[str] = Field(default_factory=list, alias="potentialErrors")

    @field_validator("overall", mode="before")
    @classmethod
    def coerce_numeric(cls, value):
        return _coerce_number(value)


class EmissionsReport(_Schema):
    """GHG emissions extracted from one sustainability report."""
    contains_relevant_data: bool = Field(False, alias="containsRelevantData")
    reporting_period: Optional[str] = Field(None, alias="reportingPeriod")
    standard_unit: Optional[str] = Field(None, alias="standardUnit")
    scope1: EmissionValue = Field(default_factory=EmissionValue)
    scope2: Scope2Emissions = Field(default_factory=Scope2Emissions)
    scope3: Scope3Emissions = Field(default_factory=Scope3Emissions)
    confidence: ReportConfidence = Field(default_factory=ReportConfidence)
    notes: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def confidence_from_number(cls, value):
        if isinstance(value, (int, float, str)):
            return {"overall": value}
        return value

    @field_validator("contains_relevant_data", mode="before")
    @classmethod
    def relevant_flag(cls, value):
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value) if value is not None else False

    @field_validator("reporting_period", mode="before")
    @classmethod
    def period_to_str(cls, value):
        if isinstance(value, (int, float)):
            return str(int(value))
        return value


class ParentCompany(_Schema):
    parent_company: str = Field(alias="parentCompany")
    confidence: Optional[float] = None
    relationship: Optional[str] = None
    notes: Optional[str] = None


class CountryInfo(_Schema):
    country: str
    confidence: Optional[float] = None
    headquarters: Optional[str] = None


class RevenueInfo(_Schema):
    revenue: Optional[float] = None
    currency: Optional[str] = None
    year: Optional[str] = None
    source: Optional[str] = None
    source_url: Optional[str] = Field(None, alias="sourceUrl")
    confidence: Optional[float] = None
    employees: Optional[float] = None

    @field_validator("revenue", "confidence", "employees", mode="before")
    @classmethod
    def coerce_numeric(cls, value):
        return _coerce_number(value)

    @field_validator("year", mode="before")
    @classmethod
    def year_to_str(cls, value):
        if isinstance(value, (int, float)):
            return str(int(value))
        return value


class CategoryInfo(_Schema):
    company_category: str = Field(alias="companyCategory")
    confidence: Optional[float] = None


class RelatedCompanies(_Schema):
    related_companies: List[str] = Field(default_factory=list, alias="relatedCompanies")


class ReportLink(_Schema):
    report_url: str = Field(alias="reportUrl")
    report_year: Optional[str] = Field(None, alias="reportYear")
    confidence: Optional[float] = None
    reasoning: Optional[str] = None


def _extract_json_text(text: str) -> str:
    fenced = _FENCE_RE.search(text)
    if fenced:
        return fenced.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text


def parse_model_response(text: str, schema: Type[T]) -> T:
    """Parse a model reply into `schema` or raise MalformedResponseError."""
    if not text or not text.strip():
        raise MalformedResponseError(f"Empty response for {schema.__name__}", raw_text=text or "")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        candidate = _extract_json_text(text)
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(
                f"Response for {schema.__name__} is not valid JSON: {e}", raw_text=text
            ) from e

    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Response for {schema.__name__} is a {type(data).__name__}, expected an object",
            raw_text=text,
        )

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Schema mismatch for {schema.__name__}: {text[:200]}")
        raise MalformedResponseError(
            f"Response does not match {schema.__name__}: {e.error_count()} error(s)", raw_text=text
        ) from e
