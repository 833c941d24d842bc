"""
Configuration and path management for the ESG report pipeline.
All paths are relative to the project root.

Runtime settings (API keys, concurrency, retry timings) are read once at
startup into a PipelineConfig and passed to the components that need them.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from .errors import ConfigError

# Project root: one level up from esg_pipeline/
_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = _THIS_DIR.parent

# ── Data directories ──────────────────────────────────────────────────────────

DATA_DIR = PROJECT_ROOT / "data"
REPORTS_DIR = DATA_DIR / "reports"
INPUT_COMPANIES_FILE = DATA_DIR / "companies.csv"

# ── Output directories ────────────────────────────────────────────────────────

OUTPUTS_DIR = PROJECT_ROOT / "outputs"

# File names inside the output directory
RESULTS_FILENAME = "company_emissions.csv"
ATTEMPTS_FILENAME = "company_attempts.csv"
BENCHMARKS_FILENAME = "industry_benchmarks.csv"
WORKBOOK_FILENAME = "esg_results.xlsx"
DOWNLOAD_MANIFEST_FILENAME = "download_manifest.json"

# ── HTTP settings ─────────────────────────────────────────────────────────────

REQUEST_TIMEOUT = 60
REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; esg-report-pipeline/0.1)",
    "Accept-Language": "en-US,en;q=0.9",
}
SERPAPI_URL = "https://serpapi.com/search"

# ── AI defaults ───────────────────────────────────────────────────────────────

DEFAULT_MODEL = "gemini-2.0-flash"

# ── GHG categories ────────────────────────────────────────────────────────────
# Benchmark category name -> CompanyRecord column

GHG_CATEGORY_FIELDS = {
    "scope1": "scope1",
    "scope2_location": "scope2_location",
    "scope2_market": "scope2_market",
    "scope3_total": "scope3",
    "scope3_cat1_purchased_goods_services": "scope3_cat1",
    "scope3_cat2_capital_goods": "scope3_cat2",
    "scope3_cat3_fuel_energy_activities": "scope3_cat3",
    "scope3_cat4_upstream_transportation": "scope3_cat4",
    "scope3_cat5_waste_generated": "scope3_cat5",
    "scope3_cat6_business_travel": "scope3_cat6",
    "scope3_cat7_employee_commuting": "scope3_cat7",
    "scope3_cat8_upstream_leased_assets": "scope3_cat8",
    "scope3_cat9_downstream_transportation": "scope3_cat9",
    "scope3_cat10_processing_sold_products": "scope3_cat10",
    "scope3_cat11_use_sold_products": "scope3_cat11",
    "scope3_cat12_end_of_life_treatment": "scope3_cat12",
    "scope3_cat13_downstream_leased_assets": "scope3_cat13",
    "scope3_cat14_franchises": "scope3_cat14",
    "scope3_cat15_investments": "scope3_cat15",
}

SCOPE3_CATEGORY_NAMES = {
    1: "Purchased goods and services",
    2: "Capital goods",
    3: "Fuel and energy related activities",
    4: "Upstream transportation and distribution",
    5: "Waste generated in operations",
    6: "Business travel",
    7: "Employee commuting",
    8: "Upstream leased assets",
    9: "Downstream transportation and distribution",
    10: "Processing of sold products",
    11: "Use of sold products",
    12: "End-of-life treatment of sold products",
    13: "Downstream leased assets",
    14: "Franchises",
    15: "Investments",
}

# Industry categories accepted for companies and benchmarks
INDUSTRY_CATEGORIES = [
    "Agriculture, Forestry & Fishing",
    "Automotive",
    "Banking & Financial Services",
    "Chemicals",
    "Construction & Real Estate",
    "Consumer Goods",
    "Education",
    "Energy & Utilities",
    "Food & Beverage",
    "Healthcare & Pharmaceuticals",
    "Hospitality & Leisure",
    "Industrial Manufacturing",
    "Insurance",
    "Media & Entertainment",
    "Metals & Mining",
    "Oil & Gas",
    "Professional Services",
    "Retail",
    "Software & IT Services",
    "Telecommunications",
    "Transportation & Logistics",
]


class BenchmarkType(str, Enum):
    """Denominator used for emissions-intensity benchmarks."""
    REVENUE = "revenue"
    EMPLOYEE = "employee"


# IQR multiplier applied to the lower tail for each benchmark type
DEFAULT_IQR_MULTIPLIERS = {
    BenchmarkType.REVENUE: 1.5,
    BenchmarkType.EMPLOYEE: 1.5,
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


@dataclass
class PipelineConfig:
    """Runtime settings for one pipeline process."""
    gemini_api_key: str = ""
    serp_api_key: str = ""
    model_override: str = ""
    partitions: int = 5
    max_retries: int = 5
    retry_base_delay: float = 1.0
    retry_max_delay: float = 60.0
    report_lookback_years: int = 3
    max_search_attempts: int = 5
    output_dir: Path = OUTPUTS_DIR
    reports_dir: Path = REPORTS_DIR
    iqr_multipliers: Dict[BenchmarkType, float] = field(
        default_factory=lambda: dict(DEFAULT_IQR_MULTIPLIERS)
    )

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "PipelineConfig":
        """Build a config from the environment, loading a .env file first."""
        load_dotenv(env_file)
        output_dir = os.getenv("PIPELINE_OUTPUT_DIR")
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            serp_api_key=os.getenv("SERP_API_KEY", ""),
            model_override=os.getenv("GEMINI_MODEL", ""),
            partitions=_env_int("PIPELINE_PARTITIONS", 5),
            max_retries=_env_int("PIPELINE_MAX_RETRIES", 5),
            retry_base_delay=_env_float("PIPELINE_RETRY_BASE_DELAY", 1.0),
            retry_max_delay=_env_float("PIPELINE_RETRY_MAX_DELAY", 60.0),
            report_lookback_years=_env_int("PIPELINE_REPORT_LOOKBACK_YEARS", 3),
            output_dir=Path(output_dir) if output_dir else OUTPUTS_DIR,
        )

    def require_gemini(self):
        if not self.gemini_api_key:
            raise ConfigError("GEMINI_API_KEY is not set")

    def require_search(self):
        if not self.serp_api_key:
            raise ConfigError("SERP_API_KEY is not set")

    def multiplier_for(self, benchmark_type: BenchmarkType) -> float:
        return self.iqr_multipliers.get(
            benchmark_type, DEFAULT_IQR_MULTIPLIERS[BenchmarkType.REVENUE]
        )

    @property
    def results_file(self) -> Path:
        return self.output_dir / RESULTS_FILENAME

    @property
    def attempts_file(self) -> Path:
        return self.output_dir / ATTEMPTS_FILENAME

    @property
    def benchmarks_file(self) -> Path:
        return self.output_dir / BENCHMARKS_FILENAME

    @property
    def workbook_file(self) -> Path:
        return self.output_dir / WORKBOOK_FILENAME

    @property
    def manifest_file(self) -> Path:
        return self.reports_dir / DOWNLOAD_MANIFEST_FILENAME
