"""
Emissions extraction - sends a report PDF to the model and returns the
scope 1/2/3 figures as an EmissionsReport.
"""

import logging
from pathlib import Path

from .gemini import GeminiClient
from .schemas import EmissionsReport
from .tasks import ExtractionTask, emissions_prompt

logger = logging.getLogger(__name__)


def has_relevant_data(report: EmissionsReport) -> bool:
    """A report counts only if scope 1, 2 or the scope 3 total is non-zero."""
    return any(
        value.is_reported
        for value in (
            report.scope1,
            report.scope2.location_based,
            report.scope2.market_based,
            report.scope3.total,
        )
    )


class EmissionsExtractor:
    def __init__(self, client: GeminiClient):
        self.client = client

    def extract(self, pdf_path: Path, company: str) -> EmissionsReport:
        logger.info(f"Extracting emissions for {company} from {pdf_path.name}")
        uploaded = self.client.upload_report(pdf_path)
        try:
            report = self.client.generate(
                ExtractionTask.EMISSIONS, emissions_prompt(company), attachment=uploaded
            )
        finally:
            self.client.delete_upload(uploaded)

        relevant = has_relevant_data(report)
        if report.contains_relevant_data and not relevant:
            logger.warning(
                f"{company}: model flagged relevant data but no scope totals were returned"
            )
        report.contains_relevant_data = relevant

        logger.info(
            f"{company} ({report.reporting_period}): scope1={report.scope1.value} "
            f"scope2_location={report.scope2.location_based.value} "
            f"scope2_market={report.scope2.market_based.value} "
            f"scope3={report.scope3.total.value} {report.standard_unit or ''}"
        )
        return report
