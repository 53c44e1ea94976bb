# ============================================================================
# src/lab_ingestion/core/models/report.py
# ============================================================================
"""
Report representation
- One Report per processed input file (real or sentinel)
- Readings keyed by parameter name; a missing key means "not recognized"
- Optional failure metadata for sentinel reports
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, Optional

from .enums import ReadingStatus

MANUAL_ENTRY_KEY = "manual_entry_required"


@dataclass(frozen=True)
class Reading:
    value: float
    unit: str
    reference_range: str
    status: ReadingStatus
    insight: Optional[str] = None
    recommendation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "value": self.value,
            "unit": self.unit,
            "referenceRange": self.reference_range,
            "status": self.status.value,
        }
        if self.insight is not None:
            data["insight"] = self.insight
        if self.recommendation is not None:
            data["recommendation"] = self.recommendation
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reading":
        return cls(
            value=data["value"],
            unit=data.get("unit", ""),
            reference_range=data.get("referenceRange", ""),
            status=ReadingStatus(data.get("status", ReadingStatus.NORMAL.value)),
            insight=data.get("insight"),
            recommendation=data.get("recommendation"),
        )


@dataclass(frozen=True)
class ReportMetadata:
    processing_failed: bool = False
    failure_reason: Optional[str] = None
    requires_manual_entry: bool = False
    original_file_type: Optional[str] = None
    file_size: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processingFailed": self.processing_failed,
            "failureReason": self.failure_reason,
            "requiresManualEntry": self.requires_manual_entry,
            "originalFileType": self.original_file_type,
            "fileSize": self.file_size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportMetadata":
        return cls(
            processing_failed=bool(data.get("processingFailed", False)),
            failure_reason=data.get("failureReason"),
            requires_manual_entry=bool(data.get("requiresManualEntry", False)),
            original_file_type=data.get("originalFileType"),
            file_size=data.get("fileSize"),
        )


@dataclass(frozen=True)
class Report:
    id: str
    patient_name: str
    report_date: date
    upload_date: datetime
    report_type: str
    file_name: str
    parameters: Dict[str, Reading] = field(default_factory=dict)
    metadata: Optional[ReportMetadata] = None

    @property
    def requires_manual_entry(self) -> bool:
        return self.metadata is not None and self.metadata.requires_manual_entry

    def with_patient_name(self, patient_name: str) -> "Report":
        """The only permitted change to a stored report."""
        return replace(self, patient_name=patient_name)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "patientName": self.patient_name,
            "reportDate": self.report_date.isoformat(),
            "uploadDate": self.upload_date.isoformat(),
            "type": self.report_type,
            "fileName": self.file_name,
            "parameters": {name: r.to_dict() for name, r in self.parameters.items()},
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        metadata = data.get("metadata")
        return cls(
            id=data["id"],
            patient_name=data.get("patientName", ""),
            report_date=date.fromisoformat(data["reportDate"]),
            upload_date=datetime.fromisoformat(data["uploadDate"]),
            report_type=data.get("type", ""),
            file_name=data.get("fileName", ""),
            parameters={
                name: Reading.from_dict(reading)
                for name, reading in data.get("parameters", {}).items()
            },
            metadata=ReportMetadata.from_dict(metadata) if metadata is not None else None,
        )
