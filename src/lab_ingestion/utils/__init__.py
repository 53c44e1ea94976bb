"""
Utility modules for the lab ingestion engine.
"""

from .exceptions import (
    LabIngestionError,
    DocumentProcessingError,
    ExtractionFailure,
    ParseFailure,
    UnsupportedFileType,
    ValidationError,
    MalformedRangeExpression,
    PatientNotFoundError,
    ReportNotFoundError,
    PersistenceError,
    ModelError,
    ModelLoadError,
    OCRBackendUnavailable,
)

from .logging import (
    setup_logging,
    get_logger,
    JsonFormatter,
    log_performance,
)
