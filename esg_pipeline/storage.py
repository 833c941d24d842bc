"""
CSV-backed result storage.

Company rows go to one CSV, processing attempts to another. Appends and
updates are serialized with a lock because concurrent batch partitions
write to the same files.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import List

import pandas as pd

from .config import PipelineConfig
from .models import CompanyRecord

logger = logging.getLogger(__name__)

ATTEMPT_COLUMNS = ["company", "status", "error", "attempted_at"]


def load_companies(path: Path) -> List[str]:
    """Company names from a CSV (the 'company' column, else the first column).

    Names are stripped and deduplicated ignoring case; the first spelling wins.
    """
    df = pd.read_csv(path, dtype=str)
    column = "company" if "company" in df.columns else df.columns[0]
    names = df[column].dropna().str.strip()
    names = names[names != ""]
    seen = set()
    companies = []
    for name in names:
        key = name.lower()
        if key not in seen:
            seen.add(key)
            companies.append(name)
    logger.info(f"Loaded {len(companies)} companies from {path}")
    return companies


class ResultStore:
    def __init__(self, config: PipelineConfig):
        self.results_path = config.results_file
        self.attempts_path = config.attempts_file
        self._lock = threading.Lock()

    def _append_rows(self, path: Path, rows: List[dict], columns: List[str]):
        path.parent.mkdir(parents=True, exist_ok=True)
        df = pd.DataFrame(rows, columns=columns)
        df.to_csv(path, mode="a", header=not path.exists(), index=False)

    def append(self, record: CompanyRecord):
        with self._lock:
            self._append_rows(self.results_path, [record.to_dict()], CompanyRecord.columns())
        logger.info(f"Saved {record.company} to {self.results_path.name}")

    def record_attempt(self, company: str, status: str, error: str = ""):
        row = {
            "company": company,
            "status": status,
            "error": error[:200],
            "attempted_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        }
        with self._lock:
            self._append_rows(self.attempts_path, [row], ATTEMPT_COLUMNS)

    def existing(self) -> pd.DataFrame:
        with self._lock:
            if not self.results_path.exists():
                return pd.DataFrame(columns=CompanyRecord.columns())
            return pd.read_csv(self.results_path)

    def attempts(self) -> pd.DataFrame:
        with self._lock:
            if not self.attempts_path.exists():
                return pd.DataFrame(columns=ATTEMPT_COLUMNS)
            return pd.read_csv(self.attempts_path, dtype=str)

    def processed_names(self) -> set:
        """Lower-cased names of every company already stored."""
        df = self.existing()
        return {str(name).strip().lower() for name in df["company"].dropna()}

    def update_field(self, company: str, column: str, value) -> bool:
        """Set column for every stored row of company. False if it has none."""
        with self._lock:
            if not self.results_path.exists():
                return False
            df = pd.read_csv(self.results_path)
            mask = df["company"].astype(str).str.strip().str.lower() == company.strip().lower()
            if not mask.any():
                logger.warning(f"{company} not found in {self.results_path.name}")
                return False
            if column not in df.columns:
                df[column] = None
            if isinstance(value, str) and df[column].dtype != object:
                df[column] = df[column].astype(object)
            df.loc[mask, column] = value
            df.to_csv(self.results_path, index=False)
        logger.info(f"Updated {column} for {company}: {value}")
        return True


def export_workbook(results: pd.DataFrame, benchmarks: pd.DataFrame, output_path: Path):
    """
    Write an Excel workbook for review.

    Sheets:
    - Companies: one row per stored company
    - Benchmarks: industry intensity statistics
    """
    from openpyxl import Workbook
    from openpyxl.styles import Font

    wb = Workbook()
    ws = wb.active
    ws.title = "Companies"
    _write_sheet(ws, results, Font(bold=True))
    _write_sheet(wb.create_sheet("Benchmarks"), benchmarks, Font(bold=True))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    logger.info(f"Created workbook: {output_path}")


def _write_sheet(ws, df: pd.DataFrame, header_font):
    for j, column in enumerate(df.columns):
        ws.cell(row=1, column=j + 1, value=str(column)).font = header_font
    values = df.astype(object).where(df.notna(), None)
    for i, row in enumerate(values.itertuples(index=False)):
        for j, value in enumerate(row):
            ws.cell(row=i + 2, column=j + 1, value=value)
    ws.freeze_panes = "A2"
