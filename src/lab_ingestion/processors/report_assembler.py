# ============================================================================
# src/lab_ingestion/processors/report_assembler.py
# ============================================================================
"""
Report Assembler

Combines extracted text into exactly one Report per input file:

- at least one recognized parameter      -> full Report
- no usable text (ExtractionFailure)      -> sentinel Report
- text but zero parameters (ParseFailure) -> sentinel Report
- anything unexpected                     -> sentinel Report

The sentinel carries a single "manual_entry_required" reading and failure
metadata so the caller can prompt for manual entry.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from ..constants.report_patterns import (
    DEFAULT_REPORT_TYPE,
    FILE_NAME_DATE_PATTERNS,
    UNKNOWN_PATIENT,
)
from ..core.models.enums import ReadingStatus
from ..core.models.report import MANUAL_ENTRY_KEY, Reading, Report, ReportMetadata
from ..extractors.document_extractor import DocumentText
from ..extractors.parameter_extractor import ParameterExtractor, first_date
from ..utils.exceptions import ExtractionFailure, ParseFailure

logger = logging.getLogger(__name__)


def new_report_id() -> str:
    return uuid.uuid4().hex[:12]


class ReportAssembler:
    """Builds canonical or sentinel Reports. Never raises from assemble()."""

    def __init__(self, extractor: Optional[ParameterExtractor] = None):
        self.extractor = extractor or ParameterExtractor()
        self.logger = logging.getLogger(__name__)

    def assemble(
        self,
        document: Optional[DocumentText],
        file_name: str,
        mime_type: Optional[str] = None,
        file_size: Optional[int] = None,
        today: Optional[date] = None
    ) -> Report:
        today = today or date.today()
        try:
            if document is None or not document.success:
                reason = document.failure_reason if document is not None else "No text extracted"
                raise ExtractionFailure(reason or "No text extracted")

            fields = self.extractor.extract(document.text, today=today)
            if not fields.has_parameters:
                raise ParseFailure(
                    f"Text was recognized ({len(document.text.strip())} chars) "
                    f"but no lab parameters could be identified",
                    text_length=len(document.text),
                )

            report = Report(
                id=new_report_id(),
                patient_name=fields.patient_name,
                report_date=fields.report_date or today,
                upload_date=datetime.now(),
                report_type=fields.report_type,
                file_name=file_name,
                parameters=fields.parameters,
            )
            self.logger.info(
                f"{file_name}: {len(report.parameters)} parameters "
                f"({', '.join(report.parameters)})",
                extra={"file_name": file_name},
            )
            return report

        except (ExtractionFailure, ParseFailure) as e:
            self.logger.warning(f"{file_name}: {e.reason}; creating manual entry report",
                                extra={"file_name": file_name})
            return self.build_sentinel(file_name, e.reason, mime_type, file_size, today)
        except Exception as e:
            self.logger.exception(f"{file_name}: unexpected assembly error")
            return self.build_sentinel(
                file_name, f"Unexpected error: {e}", mime_type, file_size, today
            )

    def build_sentinel(
        self,
        file_name: str,
        reason: str,
        mime_type: Optional[str] = None,
        file_size: Optional[int] = None,
        today: Optional[date] = None
    ) -> Report:
        """Placeholder report flagging that human entry is required."""
        today = today or date.today()
        reading = Reading(
            value=0.0,
            unit="",
            reference_range="",
            status=ReadingStatus.MANUAL_ENTRY_NEEDED,
            insight=f"Automatic extraction failed: {reason}",
            recommendation="Enter the values from this report manually.",
        )
        return Report(
            id=new_report_id(),
            patient_name=UNKNOWN_PATIENT,
            report_date=self.sentinel_date(file_name, today),
            upload_date=datetime.now(),
            report_type=DEFAULT_REPORT_TYPE,
            file_name=file_name,
            parameters={MANUAL_ENTRY_KEY: reading},
            metadata=ReportMetadata(
                processing_failed=True,
                failure_reason=reason,
                requires_manual_entry=True,
                original_file_type=mime_type,
                file_size=file_size,
            ),
        )

    def sentinel_date(self, file_name: str, today: Optional[date] = None) -> date:
        """Date embedded in the file name, else yesterday."""
        today = today or date.today()
        found = first_date(file_name or "", FILE_NAME_DATE_PATTERNS, self.extractor.day_first)
        return found if found is not None else today - timedelta(days=1)
