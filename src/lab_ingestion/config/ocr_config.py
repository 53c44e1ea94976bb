# ============================================================================
# src/lab_ingestion/config/ocr_config.py
# ============================================================================
"""
OCR & Preprocessing Settings
- Strategy order and per-attempt timeout
- Minimum usable text length
- PDF page cap and rasterization scale
- Model names for the OCR backends
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

KNOWN_STRATEGIES = ("paddleocr", "tesseract", "trocr", "ollama_vision")


class OCRSettings(BaseSettings):
    OCR_STRATEGIES: List[str] = Field(
        default=["paddleocr", "tesseract", "trocr"],
        description="Ordered OCR fallback chain; first usable result wins"
    )
    OCR_TIMEOUT_SECONDS: float = Field(
        default=20.0,
        gt=0.0, le=120.0,
        description="Per-attempt timeout; a timed out attempt advances to the next strategy"
    )
    OCR_MIN_TEXT_LENGTH: int = Field(
        default=10,
        ge=1,
        description="Recognized text shorter than this (stripped) counts as unusable"
    )
    OCR_MAX_IMAGE_DIMENSION: int = Field(
        default=2500,
        ge=256,
        description="Images larger than this are downscaled before OCR"
    )
    PDF_MAX_PAGES: int = Field(
        default=3,
        ge=1,
        description="Only the first N pages of a PDF are processed"
    )
    PDF_RENDER_SCALE: float = Field(
        default=2.0,
        gt=0.0, le=6.0,
        description="pypdfium2 render scale for pages without a text layer"
    )
    PDF_MIN_EMBEDDED_CHARS: int = Field(
        default=20,
        ge=0,
        description="Embedded page text below this many non-space chars is treated as scanned"
    )
    TROCR_MODEL: str = Field(
        default="microsoft/trocr-base-printed",
        description="HuggingFace model used by the TrOCR fallback"
    )
    OLLAMA_HOST: str = Field(
        default="http://localhost:11434",
        description="Ollama server for the optional vision strategy"
    )
    OLLAMA_VISION_MODEL: str = Field(
        default="minicpm-v",
        description="Ollama vision model for the optional vision strategy"
    )
    USE_GPU: bool = Field(
        default=False,
        description="Let OCR engines use the GPU when available"
    )

    @field_validator("OCR_STRATEGIES")
    @classmethod
    def _known_strategies(cls, value: List[str]) -> List[str]:
        unknown = [name for name in value if name not in KNOWN_STRATEGIES]
        if unknown:
            raise ValueError(f"Unknown OCR strategies: {unknown}")
        if not value:
            raise ValueError("At least one OCR strategy is required")
        return value

ocr_settings = OCRSettings()
