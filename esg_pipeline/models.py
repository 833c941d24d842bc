"""
Data models for the ESG report pipeline.
Every stored row carries the report it was extracted from.
"""

from dataclasses import dataclass, field, asdict, fields
from datetime import datetime
from typing import Optional

from .schemas import CategoryInfo, CountryInfo, EmissionsReport, RevenueInfo


@dataclass
class SourceInfo:
    """Provenance information for a downloaded report."""
    url: str
    company: str
    year: Optional[int] = None
    doc_type: str = "sustainability_report"
    local_path: str = ""
    sha256: str = ""
    download_date: str = ""
    file_size_bytes: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CompanyRecord:
    """One output row: a company's emissions plus its metadata."""
    company: str
    processed_company: str = ""  # parent company actually researched
    report_url: str = ""
    reporting_period: Optional[str] = None
    unit: Optional[str] = None
    scope1: Optional[float] = None
    scope2_location: Optional[float] = None
    scope2_market: Optional[float] = None
    scope3: Optional[float] = None
    scope3_cat1: Optional[float] = None
    scope3_cat2: Optional[float] = None
    scope3_cat3: Optional[float] = None
    scope3_cat4: Optional[float] = None
    scope3_cat5: Optional[float] = None
    scope3_cat6: Optional[float] = None
    scope3_cat7: Optional[float] = None
    scope3_cat8: Optional[float] = None
    scope3_cat9: Optional[float] = None
    scope3_cat10: Optional[float] = None
    scope3_cat11: Optional[float] = None
    scope3_cat12: Optional[float] = None
    scope3_cat13: Optional[float] = None
    scope3_cat14: Optional[float] = None
    scope3_cat15: Optional[float] = None
    revenue: Optional[float] = None
    revenue_currency: Optional[str] = None
    revenue_year: Optional[str] = None
    revenue_source: Optional[str] = None
    employees: Optional[float] = None
    country: Optional[str] = None
    headquarters: Optional[str] = None
    category: Optional[str] = None
    confidence: Optional[float] = None
    notes: str = ""
    status: str = "success"
    sha256: str = ""
    processed_date: str = field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d"))

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def columns(cls) -> list:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_extraction(cls, company: str, emissions: EmissionsReport,
                        source: Optional[SourceInfo] = None,
                        processed_company: Optional[str] = None,
                        revenue: Optional[RevenueInfo] = None,
                        country: Optional[CountryInfo] = None,
                        category: Optional[CategoryInfo] = None) -> "CompanyRecord":
        scope3 = emissions.scope3
        record = cls(
            company=company,
            processed_company=processed_company or company,
            report_url=source.url if source else "",
            sha256=source.sha256 if source else "",
            reporting_period=emissions.reporting_period,
            unit=emissions.standard_unit,
            scope1=emissions.scope1.value,
            scope2_location=emissions.scope2.location_based.value,
            scope2_market=emissions.scope2.market_based.value,
            scope3=scope3.total.value,
            confidence=emissions.confidence.overall,
            notes=emissions.notes or emissions.confidence.notes or "",
        )
        for number in range(1, 16):
            setattr(record, f"scope3_cat{number}", scope3.category(number).value)

        if revenue is not None:
            record.revenue = revenue.revenue
            record.revenue_currency = revenue.currency
            record.revenue_year = revenue.year
            record.revenue_source = revenue.source_url or revenue.source
            record.employees = revenue.employees
        if country is not None:
            record.country = country.country
            record.headquarters = country.headquarters
        if category is not None:
            record.category = category.company_category
        return record
