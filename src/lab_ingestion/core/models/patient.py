# ============================================================================
# src/lab_ingestion/core/models/patient.py
# ============================================================================
"""
Patient aggregate
- Demographics, report history, trends, bookkeeping metadata
- Persisted as one JSON document per patient
- Replaced as a whole on every mutation
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .report import Report
from .trend import TrendSet


@dataclass(frozen=True)
class PatientMetadata:
    created: datetime
    last_modified: datetime
    total_reports: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": self.created.isoformat(),
            "lastModified": self.last_modified.isoformat(),
            "totalReports": self.total_reports,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatientMetadata":
        return cls(
            created=datetime.fromisoformat(data["created"]),
            last_modified=datetime.fromisoformat(data["lastModified"]),
            total_reports=data.get("totalReports", 0),
        )


@dataclass(frozen=True)
class PatientData:
    patient_id: str
    name: str
    metadata: PatientMetadata
    age: Optional[int] = None
    gender: Optional[str] = None
    relationship: Optional[str] = None
    reports: List[Report] = field(default_factory=list)
    trends: TrendSet = field(default_factory=TrendSet)

    def find_report(self, report_id: str) -> Optional[Report]:
        for report in self.reports:
            if report.id == report_id:
                return report
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patientId": self.patient_id,
            "name": self.name,
            "age": self.age,
            "gender": self.gender,
            "relationship": self.relationship,
            "reports": [r.to_dict() for r in self.reports],
            "trends": self.trends.to_dict(),
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatientData":
        return cls(
            patient_id=data["patientId"],
            name=data.get("name", ""),
            age=data.get("age"),
            gender=data.get("gender"),
            relationship=data.get("relationship"),
            reports=[Report.from_dict(r) for r in data.get("reports", [])],
            trends=TrendSet.from_dict(data.get("trends") or {}),
            metadata=PatientMetadata.from_dict(data["metadata"]),
        )
