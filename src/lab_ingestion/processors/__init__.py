# ============================================================================
# src/lab_ingestion/processors/__init__.py
# ============================================================================
"""
Classification and report assembly.

The assembler and manual entry builder live in
lab_ingestion.processors.report_assembler and
lab_ingestion.processors.manual_entry.
"""

from .status_classifier import (
    ReferenceRange,
    parse_range,
    classify,
    abnormal_direction,
    DEFAULT_CRITICAL_POLICY,
)
