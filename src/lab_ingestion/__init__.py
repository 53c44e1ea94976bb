# ============================================================================
# src/lab_ingestion/__init__.py
# ============================================================================
"""
Lab Ingestion Engine

Extracts blood-test measurements from scanned lab reports (images and
PDFs), classifies them against reference ranges and maintains a
per-patient trend history.
"""

__version__ = "0.1.0"
