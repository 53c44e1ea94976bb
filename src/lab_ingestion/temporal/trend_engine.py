# ============================================================================
# src/lab_ingestion/temporal/trend_engine.py
# ============================================================================
"""
Trend Engine - per-parameter history for one patient

Computes, for every parameter seen in any report:
- The date-ordered series of observations
- Whole-series direction (increasing, decreasing, stable, fluctuating)
- Short-term change rate between the two most recent observations
- Critical / warning / improvement alerts

Trends are always recomputed from the complete report history.
Manual-entry placeholder readings never enter a series.
"""

from typing import Dict, Iterable, List, Optional, Sequence
from datetime import datetime
import logging

from ..config.clinical_config import clinical_settings
from ..constants.parameter_specs import PARAMETER_DEFINITIONS
from ..core.models.enums import AlertKind, ReadingStatus, TrendDirection
from ..core.models.report import Reading, Report
from ..core.models.trend import Alert, ParameterTrend, TrendPoint, TrendSet
from ..processors.status_classifier import abnormal_direction

logger = logging.getLogger(__name__)

# Points considered for warning / improvement alerts
RECENT_WINDOW = 3
RECENT_THRESHOLD = 2

# Sign reversals across consecutive deltas that make a series fluctuating
FLUCTUATION_REVERSALS = 2


def percent_change(old: float, new: float) -> float:
    """
    Percent change from old to new.

    A zero baseline gives 0.0 when unchanged and +/-100.0 otherwise.
    """
    if old == 0:
        if new == old:
            return 0.0
        return 100.0 if new > old else -100.0
    return (new - old) / abs(old) * 100.0


def count_sign_reversals(values: Sequence[float]) -> int:
    """Sign flips between consecutive non-zero deltas."""
    signs = []
    for prev, cur in zip(values, values[1:]):
        delta = cur - prev
        if delta != 0:
            signs.append(delta > 0)
    return sum(1 for a, b in zip(signs, signs[1:]) if a != b)


def trend_direction(
    values: Sequence[float],
    stable_percent: Optional[float] = None
) -> TrendDirection:
    if len(values) < 2:
        return TrendDirection.STABLE

    if count_sign_reversals(values) >= FLUCTUATION_REVERSALS:
        return TrendDirection.FLUCTUATING

    threshold = clinical_settings.TREND_STABLE_PERCENT if stable_percent is None else stable_percent
    change = percent_change(values[0], values[-1])
    if abs(change) < threshold:
        return TrendDirection.STABLE
    return TrendDirection.INCREASING if change > 0 else TrendDirection.DECREASING


def change_rate(points: Sequence[TrendPoint]) -> float:
    """Percent change between the two most recent points."""
    if len(points) < 2:
        return 0.0
    return round(percent_change(points[-2].value, points[-1].value), 2)


def generate_alerts(
    points: Sequence[TrendPoint],
    parameter: str,
    reference_range: str,
    label: Optional[str] = None
) -> List[Alert]:
    label = label or parameter
    alerts: List[Alert] = []

    for point in points:
        if point.status != ReadingStatus.CRITICAL:
            continue
        side = abnormal_direction(point.value, reference_range)
        wording = f"critically {side}" if side else "at a critical level"
        alerts.append(Alert(
            kind=AlertKind.CRITICAL,
            message=f"{label} is {wording} ({point.value:g})",
            date=point.date,
            parameter=parameter,
            value=point.value,
        ))

    if not points:
        return alerts

    recent = points[-RECENT_WINDOW:]
    latest = recent[-1]

    abnormal_recent = sum(1 for p in recent if p.status in (ReadingStatus.HIGH, ReadingStatus.LOW))
    if abnormal_recent >= RECENT_THRESHOLD:
        alerts.append(Alert(
            kind=AlertKind.WARNING,
            message=f"{label} has been consistently abnormal in recent measurements",
            date=latest.date,
            parameter=parameter,
            value=latest.value,
        ))

    any_abnormal = any(p.status.is_abnormal for p in points)
    normal_recent = sum(1 for p in recent if p.status == ReadingStatus.NORMAL)
    if any_abnormal and normal_recent >= RECENT_THRESHOLD:
        alerts.append(Alert(
            kind=AlertKind.IMPROVEMENT,
            message=f"{label} has improved to normal levels",
            date=latest.date,
            parameter=parameter,
            value=latest.value,
        ))

    return alerts


class TrendEngine:
    """
    Full recompute of a patient's parameter trends.

    Deterministic for a given report set: report order only matters for
    points that share a date, which keep their input order.
    """

    def __init__(self, stable_percent: Optional[float] = None):
        self.stable_percent = (
            clinical_settings.TREND_STABLE_PERCENT if stable_percent is None else stable_percent
        )
        self.logger = logging.getLogger(__name__)

    def compute_trends(self, reports: Iterable[Report]) -> Dict[str, ParameterTrend]:
        series: Dict[str, List[tuple]] = {}

        for report in reports:
            for name, reading in report.parameters.items():
                if reading.status == ReadingStatus.MANUAL_ENTRY_NEEDED:
                    continue
                series.setdefault(name, []).append((report, reading))

        trends: Dict[str, ParameterTrend] = {}
        for name, observations in series.items():
            trends[name] = self._build_trend(name, observations)

        self.logger.debug(f"Computed trends for {len(trends)} parameters")
        return trends

    def compute_trend_set(
        self,
        reports: Iterable[Report],
        now: Optional[datetime] = None
    ) -> TrendSet:
        return TrendSet(
            last_updated=now or datetime.now(),
            parameter_trends=self.compute_trends(reports),
        )

    def _build_trend(self, name: str, observations: List[tuple]) -> ParameterTrend:
        # sorted() is stable, so same-day points keep report order
        observations = sorted(observations, key=lambda item: item[0].report_date)

        points = [
            TrendPoint(
                date=report.report_date,
                value=reading.value,
                status=reading.status,
                report_id=report.id,
            )
            for report, reading in observations
        ]
        latest_reading: Reading = observations[-1][1]

        definition = PARAMETER_DEFINITIONS.get(name)
        label = definition.label if definition else name

        return ParameterTrend(
            parameter_name=name,
            values=points,
            unit=latest_reading.unit,
            reference_range=latest_reading.reference_range,
            direction=trend_direction([p.value for p in points], self.stable_percent),
            change_rate=change_rate(points),
            alerts=generate_alerts(points, name, latest_reading.reference_range, label),
        )
