"""
Report downloader with manifest tracking.
Downloads report PDFs, computes SHA256 hashes, and maintains a manifest
so we never re-download the same file. Also finds PDF links on report
landing pages and screens PDFs for emissions content before they are sent
to the model.
"""

import hashlib
import json
import logging
import re
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urljoin

import pdfplumber
import requests
from bs4 import BeautifulSoup

from .config import PROJECT_ROOT, REQUEST_HEADERS, REQUEST_TIMEOUT, PipelineConfig
from .models import SourceInfo
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

LINK_KEYWORDS = ["sustainability", "esg", "report", "annual", "environmental", "climate"]

EMISSIONS_PATTERNS = [
    r"scope\s*1",
    r"scope\s*2",
    r"scope\s*3",
    r"ghg\s+emissions?",
    r"greenhouse\s+gas",
    r"t\s*co2\s*e",
    r"co2\s*e?\s+emissions?",
]


def _compute_sha256(file_path: Path) -> str:
    h = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", name.lower())
    return slug.strip("_") or "company"


def _relative_to_project(path: Path) -> str:
    try:
        return str(path.relative_to(PROJECT_ROOT))
    except ValueError:
        return str(path)


class ReportDownloader:
    """Downloads PDFs and tracks them in a manifest."""

    def __init__(self, config: PipelineConfig, policy: Optional[RetryPolicy] = None,
                 session: Optional[requests.Session] = None):
        self.base_dir = config.reports_dir
        self.manifest_path = config.manifest_file
        self.policy = policy or RetryPolicy.from_config(config)
        self.session = session or requests.Session()
        self._lock = threading.Lock()
        self._url_locks: Dict[str, threading.Lock] = {}
        self.manifest = self._load_manifest()

    def _load_manifest(self) -> dict:
        if self.manifest_path.exists():
            with open(self.manifest_path, "r") as f:
                return json.load(f)
        return {"downloads": []}

    def _save_manifest(self):
        self.manifest_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.manifest_path, "w") as f:
            json.dump(self.manifest, f, indent=2)

    def _find_existing(self, url: str) -> Optional[dict]:
        """Manifest entry for this URL whose file is still on disk."""
        for entry in self.manifest["downloads"]:
            if entry["url"] == url and Path(entry["local_path"]).exists():
                return entry
        return None

    def _url_lock(self, url: str) -> threading.Lock:
        with self._lock:
            return self._url_locks.setdefault(url, threading.Lock())

    def _fetch(self, url: str, local_path: Path) -> Optional[bytes]:
        """Stream url to local_path. Returns the first chunk written."""
        resp = self.session.get(url, headers=REQUEST_HEADERS, timeout=REQUEST_TIMEOUT,
                                stream=True, allow_redirects=True)
        resp.raise_for_status()
        first_chunk = None
        with open(local_path, "wb") as f:
            for chunk in resp.iter_content(chunk_size=8192):
                if first_chunk is None:
                    first_chunk = chunk
                f.write(chunk)
        return first_chunk

    def download(self, url: str, company: str, year: Optional[int] = None,
                 doc_type: str = "sustainability_report") -> Optional[SourceInfo]:
        """Download a PDF report. Returns SourceInfo or None on failure.

        Concurrent calls for the same URL are serialized; the later ones
        reuse the manifest entry written by the first.
        """
        with self._url_lock(url):
            return self._download(url, company, year, doc_type)

    def _download(self, url: str, company: str, year: Optional[int],
                  doc_type: str) -> Optional[SourceInfo]:
        with self._lock:
            existing = self._find_existing(url)
        if existing:
            logger.info(f"Already downloaded: {existing['local_path']}")
            return SourceInfo(
                url=url,
                company=company,
                year=year if year is not None else existing.get("year"),
                doc_type=existing.get("doc_type", doc_type),
                local_path=existing["local_path"],
                sha256=existing["sha256"],
                download_date=existing.get("download_date", ""),
                file_size_bytes=existing.get("file_size_bytes", 0),
            )

        company_slug = slugify(company)
        company_dir = self.base_dir / company_slug
        company_dir.mkdir(parents=True, exist_ok=True)

        url_filename = url.split("/")[-1].split("?")[0]
        if not url_filename.lower().endswith(".pdf"):
            url_filename = f"{company_slug}_{doc_type}_{year or 'latest'}.pdf"
        local_path = company_dir / url_filename

        logger.info(f"Downloading: {url}")
        try:
            first_chunk = self.policy.call(self._fetch, url, local_path,
                                           operation=f"Download {url_filename}")
        except requests.RequestException as e:
            logger.error(f"Failed to download {url}: {e}")
            local_path.unlink(missing_ok=True)
            return None

        # Verify it's actually a PDF
        if not first_chunk or first_chunk[:5] != b"%PDF-":
            logger.warning(f"Downloaded file is not a PDF ({url}). Removing.")
            local_path.unlink(missing_ok=True)
            return None

        sha = _compute_sha256(local_path)
        file_size = local_path.stat().st_size
        download_date = time.strftime("%Y-%m-%d %H:%M:%S")

        with self._lock:
            self.manifest["downloads"].append({
                "url": url,
                "company_slug": company_slug,
                "company_name": company,
                "year": year,
                "doc_type": doc_type,
                "local_path": str(local_path),
                "relative_path": _relative_to_project(local_path),
                "sha256": sha,
                "file_size_bytes": file_size,
                "download_date": download_date,
            })
            self._save_manifest()

        logger.info(f"Downloaded {file_size / 1024 / 1024:.1f} MB -> {local_path.name}")
        return SourceInfo(
            url=url,
            company=company,
            year=year,
            doc_type=doc_type,
            local_path=str(local_path),
            sha256=sha,
            download_date=download_date,
            file_size_bytes=file_size,
        )


def find_pdf_links(html: str, base_url: str) -> List[str]:
    """PDF links on a page whose URL or anchor text looks like a report."""
    soup = BeautifulSoup(html, "html.parser")
    links = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        href = urljoin(base_url, anchor["href"].strip())
        path = href.lower().split("?")[0].split("#")[0]
        if not path.endswith(".pdf"):
            continue
        text = anchor.get_text(" ", strip=True).lower()
        if not any(k in path or k in text for k in LINK_KEYWORDS):
            continue
        if href not in seen:
            seen.add(href)
            links.append(href)
    return links


def extract_pdf_links(page_url: str, session: Optional[requests.Session] = None) -> List[str]:
    """Fetch a landing page and return the report PDF links on it."""
    http = session or requests
    try:
        resp = http.get(page_url, headers=REQUEST_HEADERS, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Error extracting links from {page_url}: {e}")
        return []
    return find_pdf_links(resp.text, page_url)


def looks_like_emissions_report(pdf_path: Path, max_pages: int = 60, min_hits: int = 2) -> bool:
    """Cheap text scan: does the PDF mention GHG scopes at all?"""
    hits = set()
    try:
        with pdfplumber.open(pdf_path) as pdf:
            for page in pdf.pages[:max_pages]:
                text = page.extract_text() or ""
                for pattern in EMISSIONS_PATTERNS:
                    if pattern not in hits and re.search(pattern, text, re.IGNORECASE):
                        hits.add(pattern)
                if len(hits) >= min_hits:
                    return True
    except Exception as e:
        # Unreadable text layer (scanned PDF); let the model decide
        logger.warning(f"Could not read text from {pdf_path.name}: {e}")
        return True
    logger.info(f"{pdf_path.name}: no emissions keywords in first {max_pages} pages")
    return False
