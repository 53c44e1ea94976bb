# ============================================================================
# src/lab_ingestion/core/__init__.py
# ============================================================================
"""
Core components: data model, patient store/service and the report pipeline.

Import the pipeline and services from their modules
(lab_ingestion.core.pipeline, lab_ingestion.core.patient_service).
"""

from .models import (
    ReadingStatus,
    TrendDirection,
    AlertKind,
    OutcomeStatus,
    Reading,
    Report,
    ReportMetadata,
    PatientData,
    PatientMetadata,
    ParameterTrend,
    TrendSet,
)
