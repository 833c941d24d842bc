"""
Report finder - locates a company's sustainability report for a year,
downloads it and keeps the first one the model finds emissions in.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import PipelineConfig
from .downloader import ReportDownloader, extract_pdf_links, looks_like_emissions_report
from .emissions import EmissionsExtractor
from .gemini import GeminiClient
from .models import SourceInfo
from .schemas import EmissionsReport
from .search import SearchClient, dedupe_results, is_pdf_url, prioritize_results
from .tasks import ExtractionTask, report_link_prompt

logger = logging.getLogger(__name__)


@dataclass
class FoundReport:
    source: SourceInfo
    emissions: EmissionsReport


class ReportFinder:
    def __init__(self, config: PipelineConfig, search: SearchClient, downloader: ReportDownloader,
                 extractor: EmissionsExtractor, client: GeminiClient):
        self.config = config
        self.search = search
        self.downloader = downloader
        self.extractor = extractor
        self.client = client

    def search_reports(self, company: str, year: int) -> list:
        query = f"{company} {year} sustainability esg report fact sheet pdf"
        results = dedupe_results(self.search.search(query))
        return prioritize_results(results, company, year)

    def resolve_pdf_url(self, link: str, company: str) -> Optional[str]:
        """The report PDF behind a search result (the link itself or one on its page)."""
        if is_pdf_url(link):
            return link

        pdf_links = extract_pdf_links(link, self.downloader.session)
        if not pdf_links:
            logger.info(f"No report PDFs linked from {link}")
            return None
        if len(pdf_links) == 1:
            return pdf_links[0]

        try:
            choice = self.client.generate(
                ExtractionTask.REPORT_LINK, report_link_prompt(company, pdf_links)
            )
        except Exception as e:
            logger.warning(f"Could not pick a report link for {company}, using first PDF: {e}")
            return pdf_links[0]

        if choice.report_url in pdf_links:
            return choice.report_url
        logger.warning(f"Model picked a link not on the page for {company}, using first PDF")
        return pdf_links[0]

    def process_report_url(self, company: str, url: str, year: Optional[int] = None) -> Optional[FoundReport]:
        """Download url and extract emissions. None if it holds no emissions data."""
        source = self.downloader.download(url, company, year)
        if source is None:
            return None

        pdf_path = Path(source.local_path)
        if not looks_like_emissions_report(pdf_path):
            logger.info(f"Skipping {url}: does not look like an emissions report")
            return None

        emissions = self.extractor.extract(pdf_path, company)
        if not emissions.contains_relevant_data:
            logger.info(f"No emissions data in {url}")
            return None
        return FoundReport(source=source, emissions=emissions)

    def find_report(self, company: str, year: int) -> Optional[FoundReport]:
        logger.info(f"Searching for {company} report from {year}")
        results = self.search_reports(company, year)
        if not results:
            logger.warning(f"No search results for {company} {year}")
            return None

        for result in results[:self.config.max_search_attempts]:
            try:
                pdf_url = self.resolve_pdf_url(result.link, company)
                if not pdf_url:
                    continue
                found = self.process_report_url(company, pdf_url, year)
            except Exception as e:
                logger.error(f"Error processing {result.link} for {company}: {e}")
                continue
            if found:
                logger.info(f"Found {company} report for {year}: {pdf_url}")
                return found
        return None

    def find_latest_report(self, company: str, current_year: Optional[int] = None) -> Optional[FoundReport]:
        """Newest report with emissions data, searching back over the lookback window."""
        current_year = current_year or datetime.now().year
        lookback = max(self.config.report_lookback_years, 1)
        for year in range(current_year, current_year - lookback, -1):
            found = self.find_report(company, year)
            if found:
                return found
        logger.warning(f"No ESG report found for {company} in the last {lookback} years")
        return None
