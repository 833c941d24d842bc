"""
Orchestrator - end-to-end pipeline runner.
Finds each company's latest sustainability report, extracts its emissions,
researches revenue, country and industry, and appends the result to the
output CSV. Companies are processed in concurrent partitions.

Usage:
    python -m esg_pipeline.orchestrator run --input data/companies.csv
    python -m esg_pipeline.orchestrator company "Acme Corp" --report-url https://...
    python -m esg_pipeline.orchestrator check-missing-scopes --partitions 4
    python -m esg_pipeline.orchestrator benchmarks --type revenue
"""

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from .batch import HandlerResult, partition_and_run
from .benchmarks import calculate_industry_benchmarks, write_benchmarks
from .company import CompanyResearcher, is_same_company
from .config import GHG_CATEGORY_FIELDS, INPUT_COMPANIES_FILE, BenchmarkType, PipelineConfig
from .downloader import ReportDownloader
from .emissions import EmissionsExtractor
from .gemini import GeminiClient
from .models import CompanyRecord
from .report_finder import ReportFinder
from .retry import RetryPolicy
from .search import SearchClient
from .storage import ResultStore, export_workbook, load_companies

logger = logging.getLogger(__name__)


SCOPE_COLUMNS = list(GHG_CATEGORY_FIELDS.values())
SCOPE3_CATEGORY_COLUMNS = [f"scope3_cat{n}" for n in range(1, 16)]

YEAR_PATTERN = re.compile(r"(?<!\d)(?:19|20)\d{2}(?!\d)")


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value) -> Optional[str]:
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _year_of(value) -> Optional[str]:
    """Last four-digit year in a period such as 'FY2022/2023'."""
    years = YEAR_PATTERN.findall(_text(value) or "")
    return years[-1] if years else None


def has_missing_scopes(row: dict) -> bool:
    """
    True when a stored row lacks scope data its report may hold:
    no scope 1, neither scope 2 figure, or a scope 3 total with no categories.
    """
    if _is_blank(row.get("scope1")):
        return True
    if _is_blank(row.get("scope2_location")) and _is_blank(row.get("scope2_market")):
        return True
    if not _is_blank(row.get("scope3")):
        return all(_is_blank(row.get(column)) for column in SCOPE3_CATEGORY_COLUMNS)
    return False


def revenue_is_current(row: dict) -> bool:
    """Revenue is stored and belongs to the same year as the emissions."""
    if _is_blank(row.get("revenue")):
        return False
    period = _year_of(row.get("reporting_period"))
    return period is not None and period == _year_of(row.get("revenue_year"))


class Pipeline:
    """Wires the collaborators together and runs per-company work."""

    def __init__(self, config: PipelineConfig, store: ResultStore,
                 researcher: CompanyResearcher, finder: ReportFinder):
        self.config = config
        self.store = store
        self.researcher = researcher
        self.finder = finder

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "Pipeline":
        policy = RetryPolicy.from_config(config)
        client = GeminiClient(config, policy)
        downloader = ReportDownloader(config, policy)
        finder = ReportFinder(
            config,
            search=SearchClient(config, policy),
            downloader=downloader,
            extractor=EmissionsExtractor(client),
            client=client,
        )
        return cls(config, ResultStore(config), CompanyResearcher(client), finder)

    def process_company(self, company: str, report_url: Optional[str] = None) -> HandlerResult:
        """Research one company and store its row."""
        logger.info(f"Processing company: {company}")
        try:
            parent = self.researcher.find_parent_company(company)
            target = company if is_same_company(company, parent) else parent
            if target != company:
                logger.info(f"Using parent company {target} for {company}")

            if report_url:
                found = self.finder.process_report_url(target, report_url)
            else:
                found = self.finder.find_latest_report(target)

            if found is None:
                self.store.record_attempt(company, "no_report_found")
                return HandlerResult(False, "no report with emissions data found")

            emissions = found.emissions
            revenue = self.researcher.get_revenue(target, emissions.reporting_period)
            country = self.researcher.determine_country(target, found.source.url)
            category = self.researcher.get_category(target, country.country if country else None)

            record = CompanyRecord.from_extraction(
                company,
                emissions,
                source=found.source,
                processed_company=target,
                revenue=revenue,
                country=country,
                category=category,
            )
            self.store.append(record)
            self.store.record_attempt(company, "success")
        except Exception as e:
            self.store.record_attempt(company, "error", str(e))
            raise

        logger.info(f"Successfully processed {company}")
        return HandlerResult(True)

    def run(self, companies: Iterable[str], partitions: Optional[int] = None) -> int:
        """Process every company not stored yet. Returns the success count."""
        companies = list(companies)
        done = self.store.processed_names()
        pending = [c for c in companies if c.strip().lower() not in done]

        logger.info("=" * 60)
        logger.info("ESG REPORT PIPELINE - Find, Extract & Store")
        logger.info("=" * 60)
        logger.info(f"{len(companies)} companies, {len(companies) - len(pending)} already processed")

        succeeded = partition_and_run(
            pending, partitions or self.config.partitions, self.process_company, label="companies"
        )
        _print_summary("PIPELINE SUMMARY", len(pending), succeeded)
        return succeeded

    def _stored_rows(self) -> List[dict]:
        df = self.store.existing()
        return df.astype(object).where(df.notna(), None).to_dict("records")

    def update_categories(self, partitions: Optional[int] = None) -> int:
        def handler(row: dict) -> HandlerResult:
            company = row["company"]
            category = self.researcher.get_category(company, row.get("country"))
            if category is None:
                return HandlerResult(False, f"no category found for {company}")
            return HandlerResult(self.store.update_field(company, "category", category.company_category))

        rows = self._stored_rows()
        succeeded = partition_and_run(rows, partitions or self.config.partitions, handler, label="categories")
        _print_summary("CATEGORY UPDATE SUMMARY", len(rows), succeeded)
        return succeeded

    def update_countries(self, partitions: Optional[int] = None) -> int:
        def handler(row: dict) -> HandlerResult:
            company = row["company"]
            info = self.researcher.determine_country(company, row.get("report_url"))
            if info is None:
                return HandlerResult(False, f"no country found for {company}")
            return HandlerResult(self.store.update_field(company, "country", info.country))

        rows = self._stored_rows()
        succeeded = partition_and_run(rows, partitions or self.config.partitions, handler, label="countries")
        _print_summary("COUNTRY UPDATE SUMMARY", len(rows), succeeded)
        return succeeded

    def update_revenues(self, partitions: Optional[int] = None, refresh_all: bool = False) -> int:
        """Re-research revenue of stored companies whose revenue year lags their report."""
        def handler(row: dict) -> HandlerResult:
            company = row["company"]
            info = self.researcher.get_revenue(company, _text(row.get("reporting_period")))
            if info is None:
                return HandlerResult(False, f"no revenue found for {company}")
            values = {
                "revenue": info.revenue,
                "revenue_currency": info.currency,
                "revenue_year": info.year,
                "revenue_source": info.source_url or info.source,
            }
            if info.employees:
                values["employees"] = info.employees
            return HandlerResult(all(
                self.store.update_field(company, column, value) for column, value in values.items()
            ))

        rows = self._stored_rows()
        if not refresh_all:
            rows = [r for r in rows if not revenue_is_current(r)]
        succeeded = partition_and_run(rows, partitions or self.config.partitions, handler, label="revenues")
        _print_summary("REVENUE UPDATE SUMMARY", len(rows), succeeded)
        return succeeded

    def update_employees(self, partitions: Optional[int] = None) -> int:
        """Look up employee counts for stored companies that have none."""
        def handler(row: dict) -> HandlerResult:
            company = row["company"]
            employees = self.researcher.get_employees(company, _text(row.get("reporting_period")))
            if employees is None:
                return HandlerResult(False, f"no employee count found for {company}")
            return HandlerResult(self.store.update_field(company, "employees", employees))

        rows = [r for r in self._stored_rows() if not (r.get("employees") or 0) > 0]
        succeeded = partition_and_run(rows, partitions or self.config.partitions, handler, label="employees")
        _print_summary("EMPLOYEE UPDATE SUMMARY", len(rows), succeeded)
        return succeeded

    def check_missing_scopes(self, partitions: Optional[int] = None) -> int:
        """
        Re-extract the stored report of every company with a scope gap.

        Only empty scope columns are filled; stored values are never replaced.
        """
        def handler(row: dict) -> HandlerResult:
            company = row["company"]
            found = self.finder.process_report_url(company, row["report_url"])
            if found is None:
                return HandlerResult(False, f"no emissions data in {row['report_url']}")

            record = CompanyRecord.from_extraction(company, found.emissions)
            filled = 0
            for column in SCOPE_COLUMNS:
                value = getattr(record, column)
                if _is_blank(row.get(column)) and value is not None:
                    filled += self.store.update_field(company, column, value)
            if not filled:
                return HandlerResult(False, f"report for {company} has none of its missing scopes")
            logger.info(f"Filled {filled} missing scope values for {company}")
            return HandlerResult(True)

        rows = [r for r in self._stored_rows() if r.get("report_url") and has_missing_scopes(r)]
        succeeded = partition_and_run(rows, partitions or self.config.partitions, handler, label="scopes")
        _print_summary("MISSING SCOPES SUMMARY", len(rows), succeeded)
        return succeeded


def run_benchmarks(config: PipelineConfig, benchmark_type: BenchmarkType,
                   multiplier: Optional[float] = None, min_companies: int = 3):
    store = ResultStore(config)
    df = store.existing()
    if df.empty:
        logger.warning(f"No stored companies in {config.results_file}")
    multiplier = multiplier if multiplier is not None else config.multiplier_for(benchmark_type)
    benchmarks = calculate_industry_benchmarks(
        df, benchmark_type, multiplier=multiplier, min_companies=min_companies
    )
    write_benchmarks(benchmarks, config.benchmarks_file, benchmark_type)
    return benchmarks


def export_results(config: PipelineConfig, output_path: Optional[Path] = None) -> Path:
    """Companies and the last computed benchmarks as one Excel workbook."""
    output_path = output_path or config.workbook_file
    results = ResultStore(config).existing()
    if config.benchmarks_file.exists():
        benchmarks = pd.read_csv(config.benchmarks_file)
    else:
        logger.warning(f"No benchmarks at {config.benchmarks_file}, run the benchmarks command first")
        benchmarks = pd.DataFrame()
    export_workbook(results, benchmarks, output_path)
    return output_path


def _print_summary(title: str, attempted: int, succeeded: int):
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)
    logger.info(f"Items attempted: {attempted}")
    logger.info(f"  Succeeded: {succeeded}")
    logger.info(f"  Failed or skipped: {attempted - succeeded}")
    logger.info("=" * 60)


def _configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for noisy in ("urllib3", "requests", "pdfminer", "google"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="esg-pipeline", description=__doc__.split("\n")[1])
    parser.add_argument("--env-file", type=Path, default=None, help="Path to a .env file")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Process every company in the input list")
    run.add_argument("--input", type=Path, default=INPUT_COMPANIES_FILE)
    run.add_argument("--partitions", type=int, default=None)

    one = sub.add_parser("company", help="Process a single company")
    one.add_argument("name")
    one.add_argument("--report-url", default=None)

    for name, help_text in (("update-categories", "Refresh industry categories of stored companies"),
                            ("update-countries", "Refresh countries of stored companies"),
                            ("update-revenues", "Refresh revenues older than the stored report"),
                            ("update-employees", "Look up missing employee counts"),
                            ("check-missing-scopes", "Re-extract reports of companies with scope gaps")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--partitions", type=int, default=None)
        if name == "update-revenues":
            cmd.add_argument("--all", dest="refresh_all", action="store_true",
                             help="Refresh every company, not only outdated ones")

    related = sub.add_parser("related", help="List related companies")
    related.add_argument("name")

    bench = sub.add_parser("benchmarks", help="Compute industry emissions benchmarks")
    bench.add_argument("--type", choices=[t.value for t in BenchmarkType], default=BenchmarkType.REVENUE.value)
    bench.add_argument("--multiplier", type=float, default=None)
    bench.add_argument("--min-companies", type=int, default=3)

    export = sub.add_parser("export", help="Write companies and benchmarks to an Excel workbook")
    export.add_argument("--output", type=Path, default=None)

    sub.add_parser("clean-uploads", help="Delete files uploaded to Gemini")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    config = PipelineConfig.from_env(args.env_file)

    if args.command == "benchmarks":
        run_benchmarks(config, BenchmarkType(args.type), args.multiplier, args.min_companies)
        return 0

    if args.command == "export":
        export_results(config, args.output)
        return 0

    if args.command == "clean-uploads":
        GeminiClient(config).clean_uploads()
        return 0

    pipeline = Pipeline.from_config(config)

    if args.command == "run":
        pipeline.run(load_companies(args.input), args.partitions)
    elif args.command == "company":
        result = pipeline.process_company(args.name, args.report_url)
        if not result.success:
            logger.error(f"{args.name}: {result.error}")
            return 1
    elif args.command == "update-categories":
        pipeline.update_categories(args.partitions)
    elif args.command == "update-countries":
        pipeline.update_countries(args.partitions)
    elif args.command == "update-revenues":
        pipeline.update_revenues(args.partitions, args.refresh_all)
    elif args.command == "update-employees":
        pipeline.update_employees(args.partitions)
    elif args.command == "check-missing-scopes":
        pipeline.check_missing_scopes(args.partitions)
    elif args.command == "related":
        exclude = pipeline.store.existing()["company"].dropna().tolist()
        for name in pipeline.researcher.get_related_companies(args.name, exclude):
            print(name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
