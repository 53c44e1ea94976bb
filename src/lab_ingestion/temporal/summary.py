# ============================================================================
# src/lab_ingestion/temporal/summary.py
# ============================================================================
"""
Patient-level views derived from reports and trends.

- Patient summary (report count, critical alerts, improving/worsening parameters)
- Side-by-side comparison of two reports with significance levels
- Health score of a single report
- Human-readable timeframes
- Chart-ready series for one parameter (data only, no rendering)
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from ..core.models.enums import AlertKind, ReadingStatus
from ..core.models.patient import PatientData
from ..core.models.report import Report
from ..core.models.trend import ParameterTrend
from ..processors.status_classifier import parse_range
from ..utils.exceptions import MalformedRangeExpression
from .trend_engine import percent_change

logger = logging.getLogger(__name__)

MINIMAL_CHANGE_PERCENT = 5.0
MODERATE_CHANGE_PERCENT = 15.0


@dataclass
class PatientSummary:
    total_reports: int
    critical_alerts: int
    improving_parameters: int
    worsening_parameters: int
    parameters: int
    last_report_date: Optional[date] = None
    manual_entry_reports: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalReports": self.total_reports,
            "criticalAlerts": self.critical_alerts,
            "improvingParameters": self.improving_parameters,
            "worseningParameters": self.worsening_parameters,
            "parameters": self.parameters,
            "lastReportDate": self.last_report_date.isoformat() if self.last_report_date else None,
            "manualEntryReports": self.manual_entry_reports,
        }


@dataclass
class ParameterComparison:
    parameter: str
    previous_value: float
    current_value: float
    unit: str
    change_percent: float
    significance: str
    current_status: ReadingStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "previousValue": self.previous_value,
            "currentValue": self.current_value,
            "unit": self.unit,
            "changePercent": self.change_percent,
            "significance": self.significance,
            "currentStatus": self.current_status.value,
        }


@dataclass
class ReportComparison:
    latest_report_id: str
    previous_report_id: str
    timeframe: str
    parameters: List[ParameterComparison] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latestReportId": self.latest_report_id,
            "previousReportId": self.previous_report_id,
            "timeframe": self.timeframe,
            "parameters": [p.to_dict() for p in self.parameters],
        }


def significance_level(change: float) -> str:
    magnitude = abs(change)
    if magnitude < MINIMAL_CHANGE_PERCENT:
        return "Minimal"
    if magnitude < MODERATE_CHANGE_PERCENT:
        return "Moderate"
    return "Significant"


def distance_from_range(value: float, expression: str) -> Optional[float]:
    """How far a value sits outside its reference range (0 inside, None if unparseable)."""
    try:
        ref = parse_range(expression)
    except MalformedRangeExpression:
        return None
    if ref.minimum is not None and value < ref.minimum:
        return ref.minimum - value
    if ref.maximum is not None and value > ref.maximum:
        return value - ref.maximum
    return 0.0


def movement(trend: ParameterTrend) -> Optional[str]:
    """
    "improving" when the latest value moved toward the reference range,
    "worsening" when it moved away, None otherwise.
    """
    if len(trend.values) < 2:
        return None
    before = distance_from_range(trend.values[-2].value, trend.reference_range)
    after = distance_from_range(trend.values[-1].value, trend.reference_range)
    if before is None or after is None or before == after:
        return None
    return "improving" if after < before else "worsening"


def summarize_patient(patient: PatientData) -> PatientSummary:
    trends = patient.trends.parameter_trends
    movements = [movement(t) for t in trends.values()]
    dated = [r.report_date for r in patient.reports]

    return PatientSummary(
        total_reports=len(patient.reports),
        critical_alerts=sum(
            1 for t in trends.values() for a in t.alerts if a.kind == AlertKind.CRITICAL
        ),
        improving_parameters=movements.count("improving"),
        worsening_parameters=movements.count("worsening"),
        parameters=len(trends),
        last_report_date=max(dated) if dated else None,
        manual_entry_reports=sum(1 for r in patient.reports if r.requires_manual_entry),
    )


def compare_reports(latest: Report, previous: Report) -> ReportComparison:
    """Per-parameter change between two reports, for parameters present in both."""
    comparisons = []
    for name, current in latest.parameters.items():
        before = previous.parameters.get(name)
        if before is None or ReadingStatus.MANUAL_ENTRY_NEEDED in (current.status, before.status):
            continue
        change = round(percent_change(before.value, current.value), 2)
        comparisons.append(ParameterComparison(
            parameter=name,
            previous_value=before.value,
            current_value=current.value,
            unit=current.unit,
            change_percent=change,
            significance=significance_level(change),
            current_status=current.status,
        ))

    return ReportComparison(
        latest_report_id=latest.id,
        previous_report_id=previous.id,
        timeframe=format_timeframe(previous.report_date, latest.report_date),
        parameters=comparisons,
    )


def health_score(report: Report) -> Optional[int]:
    """Share of readings with normal status, 0-100; None when there is nothing to score."""
    readings = [
        r for r in report.parameters.values()
        if r.status != ReadingStatus.MANUAL_ENTRY_NEEDED
    ]
    if not readings:
        return None
    normal = sum(1 for r in readings if r.status == ReadingStatus.NORMAL)
    return round(normal / len(readings) * 100)


def health_verdict(score: Optional[int]) -> str:
    if score is None:
        return "No values to assess yet."
    if score >= 80:
        return "Excellent! Most parameters are within optimal range."
    if score >= 60:
        return "Good, but some parameters need attention."
    return "Several parameters require immediate attention."


def format_timeframe(start: date, end: date) -> str:
    days = abs((end - start).days)

    if days <= 7:
        amount, unit = days, "day"
    elif days <= 30:
        amount, unit = math.ceil(days / 7), "week"
    elif days <= 365:
        amount, unit = math.ceil(days / 30), "month"
    else:
        amount, unit = math.ceil(days / 365), "year"

    return f"{amount} {unit}" + ("" if amount == 1 else "s")


def trend_series(patient: PatientData, parameter: str) -> Optional[Dict[str, Any]]:
    """Chart-ready data for one parameter, or None if the patient has no such trend."""
    trend = patient.trends.parameter_trends.get(parameter)
    if trend is None:
        return None

    return {
        "parameter": parameter,
        "data": [
            {"date": p.date.isoformat(), "value": p.value, "status": p.status.value}
            for p in trend.values
        ],
        "unit": trend.unit,
        "referenceRange": trend.reference_range,
        "trendDirection": trend.direction.value,
        "changeRate": trend.change_rate,
        "alerts": [a.to_dict() for a in trend.alerts],
    }
