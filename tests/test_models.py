from esg_pipeline.models import CompanyRecord, SourceInfo
from esg_pipeline.schemas import CategoryInfo, CountryInfo, RevenueInfo


def test_record_from_extraction(emissions_report):
    source = SourceInfo(url="https://a.com/r.pdf", company="Acme", sha256="abc")
    record = CompanyRecord.from_extraction(
        "Acme UK",
        emissions_report,
        source=source,
        processed_company="Acme",
        revenue=RevenueInfo(revenue=2e9, currency="USD", year="2023", sourceUrl="https://a.com/ar"),
        country=CountryInfo(country="United Kingdom", headquarters="London"),
        category=CategoryInfo(companyCategory="Retail"),
    )

    assert record.company == "Acme UK"
    assert record.processed_company == "Acme"
    assert record.report_url == "https://a.com/r.pdf"
    assert record.reporting_period == "2023"
    assert record.scope2_location == 3400.0
    assert record.scope3_cat1 == 50000
    assert record.scope3_cat6 is None
    assert record.revenue_source == "https://a.com/ar"
    assert record.country == "United Kingdom"
    assert record.category == "Retail"
    assert record.confidence == 0.8


def test_record_without_metadata(emissions_report):
    record = CompanyRecord.from_extraction("Acme", emissions_report)
    row = record.to_dict()
    assert list(row) == CompanyRecord.columns()
    assert row["processed_company"] == "Acme"
    assert row["revenue"] is None
    assert row["report_url"] == ""
