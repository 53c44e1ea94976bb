# ============================================================================
# src/lab_ingestion/core/pipeline.py
# ============================================================================
"""
Report Pipeline

Per-file flow:
    upload -> DocumentExtractor (text layer / enhance + OCR fallback)
           -> ReportAssembler (Report or sentinel Report)

Batch flow:
    N uploads -> N outcomes, in input order
    (sequential by default, bounded by MAX_CONCURRENT_DOCS otherwise)
    -> one aggregate replacement with trends recomputed once

A single bad file never aborts the batch. Unsupported file types are the
only short-circuit and produce a "skipped" outcome without a report.
"""

import asyncio
import inspect
import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from ..config.hardware_config import hardware_settings
from ..extractors.document_extractor import DocumentExtractor
from ..extractors.ocr_engine_pool import OCREnginePool
from ..extractors.ocr_orchestrator import OCRAttempt, OCROrchestrator
from ..processors.report_assembler import ReportAssembler
from ..utils.exceptions import UnsupportedFileType
from .models.enums import OutcomeStatus
from .models.patient import PatientData
from .models.report import Report
from .patient_service import PatientService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    file_name: str
    content: bytes
    mime_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> "UploadedFile":
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(file_name=path.name, content=path.read_bytes(), mime_type=mime_type or guessed)


@dataclass(frozen=True)
class ProgressUpdate:
    current: int
    total: int
    current_file: str

    def to_dict(self) -> Dict[str, Any]:
        return {"current": self.current, "total": self.total, "currentFile": self.current_file}


ProgressCallback = Callable[[ProgressUpdate], Union[None, Awaitable[None]]]


@dataclass
class FileOutcome:
    file_name: str
    status: OutcomeStatus
    report: Optional[Report] = None
    reason: Optional[str] = None
    extraction_method: Optional[str] = None
    ocr_attempts: List[OCRAttempt] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileName": self.file_name,
            "status": self.status.value,
            "report": self.report.to_dict() if self.report else None,
            "reason": self.reason,
            "extractionMethod": self.extraction_method,
            "ocrAttempts": [
                {"strategy": a.strategy, "outcome": a.outcome.value, "detail": a.detail}
                for a in self.ocr_attempts
            ],
        }


@dataclass
class BatchResult:
    outcomes: List[FileOutcome] = field(default_factory=list)
    patient: Optional[PatientData] = None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def reports(self) -> List[Report]:
        return [o.report for o in self.outcomes if o.report is not None]

    @property
    def extracted_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.EXTRACTED)

    @property
    def manual_entry_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.MANUAL_ENTRY)

    @property
    def skipped_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.SKIPPED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "extracted": self.extracted_count,
            "manualEntry": self.manual_entry_count,
            "skipped": self.skipped_count,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class ReportPipeline:
    """Turns uploaded files into Reports and, optionally, into a patient's history."""

    def __init__(
        self,
        document_extractor: DocumentExtractor,
        assembler: Optional[ReportAssembler] = None,
        patient_service: Optional[PatientService] = None,
        max_concurrent: Optional[int] = None
    ):
        self.document_extractor = document_extractor
        self.assembler = assembler or ReportAssembler()
        self.patient_service = patient_service
        self.max_concurrent = max_concurrent or hardware_settings.MAX_CONCURRENT_DOCS
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_pool(
        cls,
        pool: OCREnginePool,
        patient_service: Optional[PatientService] = None,
        max_concurrent: Optional[int] = None
    ) -> "ReportPipeline":
        return cls(
            document_extractor=DocumentExtractor(OCROrchestrator(pool)),
            patient_service=patient_service,
            max_concurrent=max_concurrent,
        )

    # ------------------------------------------------------------------
    # Single file
    # ------------------------------------------------------------------
    async def process_file(self, upload: UploadedFile) -> FileOutcome:
        """Exactly one outcome per file; never raises."""
        name = upload.file_name
        try:
            document = await self.document_extractor.extract(upload.content, upload.mime_type, name)
        except UnsupportedFileType as e:
            self.logger.warning(f"Skipping {name}: {e}", extra={"file_name": name})
            return FileOutcome(file_name=name, status=OutcomeStatus.SKIPPED, reason=str(e))
        except Exception as e:
            self.logger.exception(f"Text extraction crashed for {name}")
            report = self.assembler.build_sentinel(
                name, f"Unexpected error: {e}", upload.mime_type, upload.size
            )
            return FileOutcome(file_name=name, status=OutcomeStatus.MANUAL_ENTRY, report=report,
                               reason=report.metadata.failure_reason)

        report = self.assembler.assemble(document, name, upload.mime_type, upload.size)

        if report.requires_manual_entry:
            return FileOutcome(
                file_name=name,
                status=OutcomeStatus.MANUAL_ENTRY,
                report=report,
                reason=report.metadata.failure_reason,
                extraction_method=document.method,
                ocr_attempts=document.ocr_attempts,
            )
        return FileOutcome(
            file_name=name,
            status=OutcomeStatus.EXTRACTED,
            report=report,
            extraction_method=document.method,
            ocr_attempts=document.ocr_attempts,
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------
    async def process_batch(
        self,
        uploads: Sequence[UploadedFile],
        progress_callback: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """Process every upload; outcome order equals input order."""
        total = len(uploads)

        if self.max_concurrent <= 1:
            outcomes = []
            for index, upload in enumerate(uploads, start=1):
                await self._notify(progress_callback, ProgressUpdate(index, total, upload.file_name))
                outcomes.append(await self.process_file(upload))
        else:
            semaphore = asyncio.Semaphore(self.max_concurrent)
            started = 0

            async def bounded(upload: UploadedFile) -> FileOutcome:
                nonlocal started
                async with semaphore:
                    started += 1
                    await self._notify(progress_callback, ProgressUpdate(started, total, upload.file_name))
                    return await self.process_file(upload)

            outcomes = list(await asyncio.gather(*(bounded(u) for u in uploads)))

        result = BatchResult(outcomes=outcomes)
        self.logger.info(
            f"Batch of {result.total}: {result.extracted_count} extracted, "
            f"{result.manual_entry_count} need manual entry, {result.skipped_count} skipped"
        )
        return result

    async def ingest_batch(
        self,
        patient_id: str,
        uploads: Sequence[UploadedFile],
        progress_callback: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """
        Process a batch and add every resulting report to the patient in one
        aggregate replacement, after the whole batch has settled.

        Raises:
            PatientNotFoundError: before any file is processed
        """
        if self.patient_service is None:
            raise RuntimeError("ReportPipeline was created without a PatientService")

        await self.patient_service.get_patient(patient_id)

        result = await self.process_batch(uploads, progress_callback)
        if result.reports:
            result.patient = await self.patient_service.add_reports(patient_id, result.reports)
        else:
            result.patient = await self.patient_service.get_patient(patient_id)
        return result

    async def _notify(self, callback: Optional[ProgressCallback], update: ProgressUpdate) -> None:
        if callback is None:
            return
        try:
            outcome = callback(update)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.logger.warning(f"Progress callback failed: {e}")
