# ============================================================================
# src/lab_ingestion/core/models/__init__.py
# ============================================================================
"""
Data model for reports, readings, trends and the patient aggregate
"""

from .enums import ReadingStatus, TrendDirection, AlertKind, OutcomeStatus
from .parameter import CriticalPolicy, StatusGuidance, ParameterDefinition, compile_patterns
from .report import Reading, ReportMetadata, Report, MANUAL_ENTRY_KEY
from .trend import TrendPoint, Alert, ParameterTrend, TrendSet
from .patient import PatientMetadata, PatientData

__all__ = [
    "ReadingStatus",
    "TrendDirection",
    "AlertKind",
    "OutcomeStatus",
    "CriticalPolicy",
    "StatusGuidance",
    "ParameterDefinition",
    "compile_patterns",
    "Reading",
    "ReportMetadata",
    "Report",
    "MANUAL_ENTRY_KEY",
    "TrendPoint",
    "Alert",
    "ParameterTrend",
    "TrendSet",
    "PatientMetadata",
    "PatientData",
]
