# ============================================================================
# src/lab_ingestion/core/models/trend.py
# ============================================================================
"""
Trend representation
- TrendPoint: one observation of a parameter, tied to its report
- Alert: critical / warning / improvement signal
- ParameterTrend: full per-parameter series with direction and change rate
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .enums import AlertKind, ReadingStatus, TrendDirection


@dataclass(frozen=True)
class TrendPoint:
    date: date
    value: float
    status: ReadingStatus
    report_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "value": self.value,
            "status": self.status.value,
            "reportId": self.report_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrendPoint":
        return cls(
            date=date.fromisoformat(data["date"]),
            value=data["value"],
            status=ReadingStatus(data["status"]),
            report_id=data["reportId"],
        )


@dataclass(frozen=True)
class Alert:
    kind: AlertKind
    message: str
    date: date
    parameter: str
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "message": self.message,
            "date": self.date.isoformat(),
            "parameter": self.parameter,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alert":
        return cls(
            kind=AlertKind(data["type"]),
            message=data["message"],
            date=date.fromisoformat(data["date"]),
            parameter=data["parameter"],
            value=data["value"],
        )


@dataclass(frozen=True)
class ParameterTrend:
    parameter_name: str
    values: List[TrendPoint]  # ascending by date
    unit: str
    reference_range: str
    direction: TrendDirection
    change_rate: float  # percent, two most recent points
    alerts: List[Alert] = field(default_factory=list)

    @property
    def latest(self) -> Optional[TrendPoint]:
        return self.values[-1] if self.values else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameterName": self.parameter_name,
            "values": [p.to_dict() for p in self.values],
            "unit": self.unit,
            "referenceRange": self.reference_range,
            "trendDirection": self.direction.value,
            "changeRate": self.change_rate,
            "alerts": [a.to_dict() for a in self.alerts],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParameterTrend":
        return cls(
            parameter_name=data["parameterName"],
            values=[TrendPoint.from_dict(p) for p in data.get("values", [])],
            unit=data.get("unit", ""),
            reference_range=data.get("referenceRange", ""),
            direction=TrendDirection(data["trendDirection"]),
            change_rate=data.get("changeRate", 0.0),
            alerts=[Alert.from_dict(a) for a in data.get("alerts", [])],
        )


@dataclass(frozen=True)
class TrendSet:
    last_updated: Optional[datetime] = None
    parameter_trends: Dict[str, ParameterTrend] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            "parameterTrends": {
                name: trend.to_dict() for name, trend in self.parameter_trends.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrendSet":
        last_updated = data.get("lastUpdated")
        return cls(
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
            parameter_trends={
                name: ParameterTrend.from_dict(trend)
                for name, trend in data.get("parameterTrends", {}).items()
            },
        )
