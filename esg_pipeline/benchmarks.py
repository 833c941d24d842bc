"""
Industry emissions-intensity benchmarks.

For every industry category and GHG category, computes the average
emissions per USD of revenue (or per employee) across stored companies,
after trimming low outliers with the IQR filter.

Emissions are stored in tonnes CO2e and converted to kg before dividing.

Usage:
    python -m esg_pipeline.orchestrator benchmarks --type revenue
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from .config import GHG_CATEGORY_FIELDS, INDUSTRY_CATEGORIES, BenchmarkType
from .stats import (
    DEFAULT_IQR_MULTIPLIER,
    filter_low_outliers,
    mean,
    median,
    standard_deviation,
)

logger = logging.getLogger(__name__)

KG_PER_TONNE = 1000.0

DENOMINATOR_COLUMNS = {
    BenchmarkType.REVENUE: "revenue",
    BenchmarkType.EMPLOYEE: "employees",
}

UNITS = {
    BenchmarkType.REVENUE: "kg CO2e/USD",
    BenchmarkType.EMPLOYEE: "kg CO2e/employee",
}

BENCHMARK_COLUMNS = [
    "industry",
    "ghg_category",
    "unit",
    "average",
    "median",
    "std_dev",
    "min",
    "max",
    "companies_included",
    "outlier_count",
    "industry_companies",
]


def _numeric(series: pd.Series) -> pd.Series:
    """Numbers from a column that may hold strings like '1,234'."""
    if series.dtype == object or pd.api.types.is_string_dtype(series):
        series = series.astype(str).str.replace(",", "", regex=False).str.strip()
    return pd.to_numeric(series, errors="coerce")


def prepare_companies(df: pd.DataFrame, benchmark_type: BenchmarkType = BenchmarkType.REVENUE,
                      require_all_categories: bool = True) -> pd.DataFrame:
    """Rows usable for benchmarks, with numeric GHG and denominator columns.

    Keeps companies with a known industry category and a positive
    denominator. Revenue benchmarks also need the revenue in USD. With
    require_all_categories, a company must report a positive value for
    every GHG category.
    """
    denominator = DENOMINATOR_COLUMNS[benchmark_type]
    out = df.copy()
    for column in list(GHG_CATEGORY_FIELDS.values()) + [denominator]:
        if column not in out.columns:
            out[column] = np.nan
        out[column] = _numeric(out[column])

    mask = out["category"].isin(INDUSTRY_CATEGORIES) & (out[denominator] > 0)

    if benchmark_type == BenchmarkType.REVENUE and "revenue_currency" in out.columns:
        currency = out["revenue_currency"].fillna("USD").astype(str).str.upper().str.strip()
        non_usd = mask & (currency != "USD")
        if non_usd.any():
            logger.info(f"Skipping {int(non_usd.sum())} companies with non-USD revenue")
        mask &= currency == "USD"

    if require_all_categories:
        ghg = out[list(GHG_CATEGORY_FIELDS.values())]
        mask &= (ghg > 0).all(axis=1)

    return out[mask]


def _category_intensities(companies: pd.DataFrame, field: str, denominator: str) -> list:
    valid = companies[(companies[field] > 0) & (companies[denominator] > 0)]
    intensities = valid[field] * KG_PER_TONNE / valid[denominator]
    return intensities.tolist()


def calculate_industry_benchmarks(df: pd.DataFrame,
                                  benchmark_type: BenchmarkType = BenchmarkType.REVENUE,
                                  multiplier: float = DEFAULT_IQR_MULTIPLIER,
                                  min_companies: int = 3,
                                  require_all_categories: bool = True) -> pd.DataFrame:
    """One row per (industry, GHG category) with intensity statistics."""
    denominator = DENOMINATOR_COLUMNS[benchmark_type]
    unit = UNITS[benchmark_type]
    companies = prepare_companies(df, benchmark_type, require_all_categories)
    logger.info(f"{len(companies)} of {len(df)} companies usable for {benchmark_type.value} benchmarks")

    rows = []
    for industry, group in companies.groupby("category", sort=True):
        if len(group) < min_companies:
            logger.warning(
                f"Skipping industry '{industry}' - insufficient data ({len(group)} companies)"
            )
            continue

        for ghg_category, field in GHG_CATEGORY_FIELDS.items():
            intensities = _category_intensities(group, field, denominator)
            cleaned = filter_low_outliers(intensities, multiplier)
            if not cleaned:
                continue
            rows.append({
                "industry": industry,
                "ghg_category": ghg_category,
                "unit": unit,
                "average": mean(cleaned),
                "median": median(cleaned),
                "std_dev": standard_deviation(cleaned),
                "min": min(cleaned),
                "max": max(cleaned),
                "companies_included": len(cleaned),
                "outlier_count": len(intensities) - len(cleaned),
                "industry_companies": len(group),
            })

    result = pd.DataFrame(rows, columns=BENCHMARK_COLUMNS)
    logger.info(
        f"Benchmarks computed for {result['industry'].nunique()} industries "
        f"({len(result)} category rows)"
    )
    return result


def write_benchmarks(benchmarks: pd.DataFrame, path: Path, benchmark_type: Optional[BenchmarkType] = None):
    path.parent.mkdir(parents=True, exist_ok=True)
    out = benchmarks.copy()
    if benchmark_type is not None:
        out.insert(0, "benchmark_type", benchmark_type.value)
    out.to_csv(path, index=False)
    logger.info(f"Benchmarks saved: {path} ({len(out)} rows)")
