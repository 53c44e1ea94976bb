# ============================================================================
# src/lab_ingestion/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the lab ingestion engine.
"""

from typing import Optional


class LabIngestionError(Exception):
    """Base exception for all lab ingestion errors."""
    pass


class DocumentProcessingError(LabIngestionError):
    """Error during document processing."""
    pass


class ExtractionFailure(DocumentProcessingError):
    """No OCR strategy or text layer produced usable text."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ParseFailure(DocumentProcessingError):
    """Text was recognized but no lab parameter matched."""

    def __init__(self, reason: str, text_length: int = 0):
        super().__init__(reason)
        self.reason = reason
        self.text_length = text_length


class UnsupportedFileType(DocumentProcessingError):
    """File type cannot be processed (rejected before any OCR attempt)."""

    def __init__(self, mime_type: Optional[str], file_name: str = ""):
        super().__init__(f"Unsupported file type '{mime_type}' for {file_name or 'upload'}")
        self.mime_type = mime_type
        self.file_name = file_name


class ValidationError(LabIngestionError):
    """Error during data validation."""
    pass


class MalformedRangeExpression(ValidationError):
    """Reference range expression does not match a supported grammar."""

    def __init__(self, expression: str):
        super().__init__(f"Malformed reference range: {expression!r}")
        self.expression = expression


class PatientNotFoundError(LabIngestionError):
    """Patient record does not exist in the store."""

    def __init__(self, patient_id: str):
        super().__init__(f"Patient not found: {patient_id}")
        self.patient_id = patient_id


class ReportNotFoundError(LabIngestionError):
    """Report id is not part of the patient's history."""

    def __init__(self, patient_id: str, report_id: str):
        super().__init__(f"Report {report_id} not found for patient {patient_id}")
        self.patient_id = patient_id
        self.report_id = report_id


class PersistenceError(LabIngestionError):
    """Patient aggregate could not be written to or read back from the store."""

    def __init__(self, patient_id: str, reason: Optional[str] = None):
        message = f"Failed to persist patient {patient_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.patient_id = patient_id
        self.reason = reason


class ModelError(LabIngestionError):
    """Error with an OCR model."""
    pass


class ModelLoadError(ModelError):
    """Error loading an OCR model."""
    pass


class OCRBackendUnavailable(ModelLoadError):
    """OCR backend could not be initialized (missing package or weights)."""

    def __init__(self, backend: str, reason: str):
        super().__init__(f"{backend} unavailable: {reason}")
        self.backend = backend
        self.reason = reason
