import pandas as pd
import pytest

from esg_pipeline.benchmarks import (
    calculate_industry_benchmarks,
    prepare_companies,
    write_benchmarks,
)
from esg_pipeline.config import GHG_CATEGORY_FIELDS, BenchmarkType


def _company(name, category, tonnes, revenue=1000, currency="USD", employees=10, **overrides):
    row = {"company": name, "category": category, "revenue": revenue,
           "revenue_currency": currency, "employees": employees}
    row.update({column: tonnes for column in GHG_CATEGORY_FIELDS.values()})
    row.update(overrides)
    return row


@pytest.fixture
def companies():
    rows = [_company(f"Shop {i}", "Retail", t) for i, t in enumerate([10, 11, 12, 13, 14, 0.01])]
    rows += [
        _company("Bank A", "Banking & Financial Services", 5),
        _company("Bank B", "Banking & Financial Services", 6),
        _company("Euro Shop", "Retail", 50, currency="EUR"),
        _company("Mystery", "Space Tourism", 50),
        _company("No Revenue", "Retail", 50, revenue=None),
        _company("Partial", "Retail", 50, scope3_cat14=None),
    ]
    return pd.DataFrame(rows)


def test_prepare_filters_unusable_rows(companies):
    names = prepare_companies(companies, BenchmarkType.REVENUE)["company"].tolist()
    assert names == [f"Shop {i}" for i in range(6)] + ["Bank A", "Bank B"]


def test_prepare_can_allow_partial_reporting(companies):
    names = prepare_companies(companies, BenchmarkType.REVENUE, require_all_categories=False)["company"]
    assert "Partial" in names.tolist()


def test_employee_benchmarks_ignore_currency(companies):
    names = prepare_companies(companies, BenchmarkType.EMPLOYEE)["company"].tolist()
    assert "Euro Shop" in names
    assert "No Revenue" in names


def test_revenue_benchmarks(companies):
    result = calculate_industry_benchmarks(companies, BenchmarkType.REVENUE)

    # the banking group is below the minimum company count
    assert result["industry"].unique().tolist() == ["Retail"]
    assert len(result) == len(GHG_CATEGORY_FIELDS)

    scope1 = result[result["ghg_category"] == "scope1"].iloc[0]
    assert scope1["unit"] == "kg CO2e/USD"
    assert scope1["companies_included"] == 5
    assert scope1["outlier_count"] == 1
    assert scope1["industry_companies"] == 6
    assert scope1["average"] == pytest.approx(12.0)
    assert scope1["median"] == pytest.approx(12.0)
    assert scope1["min"] == pytest.approx(10.0)
    assert scope1["max"] == pytest.approx(14.0)
    assert scope1["std_dev"] == pytest.approx(2 ** 0.5)


def test_string_numbers_are_parsed():
    rows = [_company(f"Shop {i}", "Retail", 2, revenue="1,000") for i in range(3)]
    result = calculate_industry_benchmarks(pd.DataFrame(rows), min_companies=3)
    assert result["average"].tolist() == pytest.approx([2.0] * len(GHG_CATEGORY_FIELDS))


def test_empty_input():
    result = calculate_industry_benchmarks(pd.DataFrame(columns=["company", "category"]))
    assert result.empty


def test_write_benchmarks(companies, tmp_path):
    result = calculate_industry_benchmarks(companies, BenchmarkType.EMPLOYEE)
    path = tmp_path / "out" / "benchmarks.csv"
    write_benchmarks(result, path, BenchmarkType.EMPLOYEE)

    saved = pd.read_csv(path)
    assert saved.columns[0] == "benchmark_type"
    assert set(saved["benchmark_type"]) == {"employee"}
    assert set(saved["unit"]) == {"kg CO2e/employee"}


def _scope1(result):
    return result[result["ghg_category"] == "scope1"].iloc[0]


@pytest.mark.parametrize("multiplier, outliers", [(0.0, 1), (1.5, 1), (5.0, 0)])
def test_multiplier_controls_trimming(companies, multiplier, outliers):
    # retail scope 1 intensities: Q1=10, Q3=13, low value 0.01
    result = calculate_industry_benchmarks(companies, BenchmarkType.REVENUE, multiplier=multiplier)
    scope1 = _scope1(result)
    assert scope1["outlier_count"] == outliers
    assert scope1["companies_included"] == 6 - outliers
