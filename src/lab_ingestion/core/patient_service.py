# ============================================================================
# src/lab_ingestion/core/patient_service.py
# ============================================================================
"""
Patient Service

Single writer for each patient aggregate. Every mutation:
1. Takes the patient's lock
2. Loads the current aggregate
3. Builds a new aggregate (reports + fully recomputed trends + metadata)
4. Saves it as a whole

Readers therefore never see new reports paired with stale trends.
"""

import asyncio
import json
import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..extractors.parameter_extractor import reclassify_report
from ..temporal.trend_engine import TrendEngine
from ..utils.exceptions import (
    PatientNotFoundError,
    PersistenceError,
    ReportNotFoundError,
    ValidationError,
)
from .models.patient import PatientData, PatientMetadata
from .models.report import Report
from .patient_store import PatientStore, is_valid_patient_id

logger = logging.getLogger(__name__)


class PatientService:
    """Aggregate operations over a PatientStore."""

    def __init__(self, store: PatientStore, trend_engine: Optional[TrendEngine] = None):
        self.store = store
        self.trend_engine = trend_engine or TrendEngine()
        self.logger = logging.getLogger(__name__)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, patient_id: str) -> asyncio.Lock:
        return self._locks.setdefault(patient_id, asyncio.Lock())

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    async def get_patient(self, patient_id: str) -> PatientData:
        data = await self.store.load_patient_data(self._checked_id(patient_id))
        if data is None:
            raise PatientNotFoundError(patient_id)
        return data

    async def list_patients(self) -> List[str]:
        return await self.store.list_patient_ids()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    async def create_patient(
        self,
        patient_id: str,
        name: str,
        age: Optional[int] = None,
        gender: Optional[str] = None,
        relationship: Optional[str] = None
    ) -> PatientData:
        patient_id = self._checked_id(patient_id)
        if not (name or "").strip():
            raise ValidationError("Patient name is required")

        async with self._lock_for(patient_id):
            if await self.store.load_patient_data(patient_id) is not None:
                raise ValidationError(f"Patient already exists: {patient_id}")

            now = datetime.now()
            data = PatientData(
                patient_id=patient_id,
                name=name.strip(),
                age=age,
                gender=gender,
                relationship=relationship,
                metadata=PatientMetadata(created=now, last_modified=now, total_reports=0),
            )
            await self._save(data)

        self.logger.info(f"Created patient {patient_id}", extra={"patient_id": patient_id})
        return data

    async def get_or_create_patient(self, patient_id: str, name: Optional[str] = None) -> PatientData:
        try:
            return await self.get_patient(patient_id)
        except PatientNotFoundError:
            return await self.create_patient(patient_id, name or patient_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def add_reports(self, patient_id: str, reports: Sequence[Report]) -> PatientData:
        """Append reports and recompute trends once over the full history."""
        async with self._lock_for(patient_id):
            current = await self.get_patient(patient_id)
            updated = self._rebuild(current, list(current.reports) + list(reports))
            await self._save(updated)

        self.logger.info(
            f"Added {len(reports)} reports to {patient_id} "
            f"(total {updated.metadata.total_reports}, "
            f"{len(updated.trends.parameter_trends)} trended parameters)",
            extra={"patient_id": patient_id},
        )
        return updated

    async def override_patient_name(self, patient_id: str, report_id: str, name: str) -> Report:
        """Replace the patient name recorded on one report."""
        name = " ".join((name or "").split())
        if not name:
            raise ValidationError("Patient name cannot be empty")

        async with self._lock_for(patient_id):
            current = await self.get_patient(patient_id)
            target = current.find_report(report_id)
            if target is None:
                raise ReportNotFoundError(patient_id, report_id)

            renamed = target.with_patient_name(name)
            reports = [renamed if r.id == report_id else r for r in current.reports]
            await self._save(self._rebuild(current, reports))

        self.logger.info(f"Report {report_id} patient name set to {name!r}",
                         extra={"patient_id": patient_id})
        return renamed

    async def clear_reports(self, patient_id: str) -> PatientData:
        """Remove every report (and with them all trends); demographics stay."""
        async with self._lock_for(patient_id):
            current = await self.get_patient(patient_id)
            cleared = self._rebuild(current, [])
            await self._save(cleared)

        self.logger.info(f"Cleared {len(current.reports)} reports for {patient_id}",
                         extra={"patient_id": patient_id})
        return cleared

    async def delete_patient(self, patient_id: str) -> bool:
        async with self._lock_for(patient_id):
            deleted = await self.store.delete_patient_data(self._checked_id(patient_id))
        if not deleted:
            raise PatientNotFoundError(patient_id)
        self._locks.pop(patient_id, None)
        return True

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------
    async def export_patient(self, patient_id: str) -> str:
        data = await self.get_patient(patient_id)
        return json.dumps(data.to_dict(), indent=2, ensure_ascii=False)

    async def import_patient(self, document: str, overwrite: bool = False) -> PatientData:
        """
        Import an exported patient document.

        Reading statuses and trends are recomputed from the imported
        values rather than trusted.
        """
        try:
            imported = PatientData.from_dict(json.loads(document))
        except (ValueError, KeyError, TypeError) as e:
            raise ValidationError(f"Invalid patient document: {e}") from e

        patient_id = self._checked_id(imported.patient_id)
        async with self._lock_for(patient_id):
            existing = await self.store.load_patient_data(patient_id)
            if existing is not None and not overwrite:
                raise ValidationError(f"Patient already exists: {patient_id}")

            reports = [reclassify_report(report) for report in imported.reports]
            data = self._rebuild(imported, reports)
            await self._save(data)

        self.logger.info(f"Imported patient {patient_id} ({len(data.reports)} reports)",
                         extra={"patient_id": patient_id})
        return data

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _rebuild(self, current: PatientData, reports: List[Report]) -> PatientData:
        now = datetime.now()
        return replace(
            current,
            reports=reports,
            trends=self.trend_engine.compute_trend_set(reports, now=now),
            metadata=PatientMetadata(
                created=current.metadata.created,
                last_modified=now,
                total_reports=len(reports),
            ),
        )

    async def _save(self, data: PatientData) -> None:
        if not await self.store.save_patient_data(data):
            raise PersistenceError(data.patient_id)

    @staticmethod
    def _checked_id(patient_id: str) -> str:
        if not is_valid_patient_id(patient_id):
            raise ValidationError(f"Invalid patient id: {patient_id!r}")
        return patient_id
