# ============================================================================
# src/lab_ingestion/temporal/__init__.py
# ============================================================================
"""
Temporal analysis: per-parameter trends, alerts and patient-level summaries.
"""

from .trend_engine import TrendEngine, trend_direction, change_rate, generate_alerts
from .summary import (
    summarize_patient,
    compare_reports,
    health_score,
    health_verdict,
    significance_level,
    format_timeframe,
    trend_series,
)
