# src/lab_ingestion/extractors/__init__.py
"""
Text and Parameter Extraction

Provides:
- OCR backends (PaddleOCR, Tesseract, TrOCR, Ollama vision)
- Engine pool owned by the host process
- OCR fallback orchestration with per-attempt timeouts
- PDF text layer / rasterization routing
- Pattern-based parameter, date, name and report type extraction
"""

from .ocr_backends import (
    OCRBackend,
    PaddleOCRBackend,
    TesseractBackend,
    TrOCRBackend,
    OllamaVisionBackend,
    create_backend,
)
from .ocr_engine_pool import OCREnginePool, OCRStrategy
from .ocr_orchestrator import OCROrchestrator, RecognitionResult, OCRAttempt, AttemptOutcome
from .document_extractor import DocumentExtractor, DocumentText, PageText, SUPPORTED_MIME_TYPES
from .parameter_extractor import ParameterExtractor, ExtractedFields
