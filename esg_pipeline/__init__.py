"""
ESG Report Pipeline - Report Discovery & Emissions Extraction
=============================================================

Finds company sustainability reports, extracts scope 1/2/3 emissions
with Gemini, enriches them with revenue, country and industry, and
computes industry emissions-intensity benchmarks.

Usage:
    python -m esg_pipeline.orchestrator run
"""

__version__ = "0.1.0"
