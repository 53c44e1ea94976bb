# ============================================================================
# src/lab_ingestion/extractors/document_extractor.py
# ============================================================================
"""
Document Text Extraction

Routes an uploaded file to the right text source:

    image/jpeg, image/png  -> enhance -> OCR fallback chain
    application/pdf        -> per page (first PDF_MAX_PAGES):
                                embedded text layer (pypdfium2), or
                                render -> enhance -> OCR fallback chain
                                when the page has no usable text layer
    anything else          -> UnsupportedFileType, before any OCR attempt

Unreadable bytes and exhausted OCR are reported through
DocumentText.failure_reason rather than raised.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import pypdfium2
from PIL import Image

from ..config.ocr_config import ocr_settings
from ..preprocessors.image_preprocessor import ImagePreprocessor
from ..utils.exceptions import ExtractionFailure, UnsupportedFileType
from ..utils.logging import log_performance
from .ocr_orchestrator import OCRAttempt, OCROrchestrator

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = ("image/jpeg", "image/png")
PDF_MIME_TYPE = "application/pdf"
SUPPORTED_MIME_TYPES = IMAGE_MIME_TYPES + (PDF_MIME_TYPE,)

PAGE_SEPARATOR = "\n\n"


def is_supported(mime_type: Optional[str]) -> bool:
    return (mime_type or "").lower() in SUPPORTED_MIME_TYPES


@dataclass
class PageText:
    page_number: int  # 1-based
    text: str
    method: str  # "text_layer" | "ocr" | "none"
    strategy: Optional[str] = None
    failure_reason: Optional[str] = None


@dataclass
class DocumentText:
    text: str
    method: str  # "text_layer" | "ocr" | "mixed" | "none"
    pages: List[PageText] = field(default_factory=list)
    failure_reason: Optional[str] = None
    ocr_attempts: List[OCRAttempt] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure_reason is None

    @classmethod
    def failed(cls, reason: str, pages: Optional[List[PageText]] = None,
               attempts: Optional[List[OCRAttempt]] = None) -> "DocumentText":
        return cls(text="", method="none", pages=pages or [], failure_reason=reason,
                   ocr_attempts=attempts or [])


class DocumentExtractor:
    """Produces raw text for one uploaded document. Holds no per-document state."""

    def __init__(
        self,
        orchestrator: OCROrchestrator,
        preprocessor: Optional[ImagePreprocessor] = None,
        max_pages: Optional[int] = None,
        render_scale: Optional[float] = None,
        min_embedded_chars: Optional[int] = None
    ):
        self.orchestrator = orchestrator
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.max_pages = max_pages or ocr_settings.PDF_MAX_PAGES
        self.render_scale = render_scale or ocr_settings.PDF_RENDER_SCALE
        self.min_embedded_chars = (
            min_embedded_chars if min_embedded_chars is not None
            else ocr_settings.PDF_MIN_EMBEDDED_CHARS
        )
        self.logger = logging.getLogger(__name__)

    @log_performance(logger, "Document text extraction")
    async def extract(self, content: bytes, mime_type: Optional[str], file_name: str = "") -> DocumentText:
        """
        Raises:
            UnsupportedFileType: for any MIME type other than JPEG, PNG or PDF
        """
        mime = (mime_type or "").lower()
        if mime not in SUPPORTED_MIME_TYPES:
            raise UnsupportedFileType(mime_type, file_name)

        if mime == PDF_MIME_TYPE:
            return await self._extract_pdf(content, file_name)
        return await self._extract_image(content, file_name)

    async def _extract_image(self, content: bytes, file_name: str) -> DocumentText:
        try:
            image = await asyncio.to_thread(self.preprocessor.prepare, content)
        except ExtractionFailure as e:
            self.logger.warning(f"{file_name}: {e.reason}", extra={"file_name": file_name})
            return DocumentText.failed(e.reason)

        result = await self.orchestrator.recognize(image)
        if not result.success:
            return DocumentText.failed(result.failure_reason, attempts=result.attempts)

        page = PageText(page_number=1, text=result.text, method="ocr", strategy=result.strategy)
        return DocumentText(text=result.text, method="ocr", pages=[page],
                            ocr_attempts=result.attempts)

    async def _extract_pdf(self, content: bytes, file_name: str) -> DocumentText:
        try:
            raw_pages = await asyncio.to_thread(self._read_pdf, content)
        except ExtractionFailure as e:
            self.logger.warning(f"{file_name}: {e.reason}", extra={"file_name": file_name})
            return DocumentText.failed(e.reason)

        pages: List[PageText] = []
        attempts: List[OCRAttempt] = []

        for page_number, embedded, rendered in raw_pages:
            if rendered is None:
                pages.append(PageText(page_number=page_number, text=embedded, method="text_layer"))
                continue

            enhanced = await asyncio.to_thread(self.preprocessor.enhance, rendered)
            result = await self.orchestrator.recognize(enhanced)
            attempts.extend(result.attempts)

            if result.success:
                pages.append(PageText(page_number=page_number, text=result.text,
                                      method="ocr", strategy=result.strategy))
            else:
                self.logger.warning(f"{file_name} page {page_number}: {result.failure_reason}",
                                    extra={"file_name": file_name})
                pages.append(PageText(page_number=page_number, text="", method="none",
                                      failure_reason=result.failure_reason))

        usable = [p for p in pages if p.text.strip()]
        if not usable:
            reasons = "; ".join(
                f"page {p.page_number}: {p.failure_reason or 'no text'}" for p in pages
            ) or "PDF has no pages"
            return DocumentText.failed(reasons, pages=pages, attempts=attempts)

        methods = {p.method for p in usable}
        method = methods.pop() if len(methods) == 1 else "mixed"
        text = PAGE_SEPARATOR.join(p.text.strip() for p in usable)

        self.logger.info(
            f"{file_name}: {len(usable)}/{len(pages)} pages with text ({method}), {len(text)} chars",
            extra={"file_name": file_name},
        )
        return DocumentText(text=text, method=method, pages=pages, ocr_attempts=attempts)

    def _read_pdf(self, content: bytes) -> List[Tuple[int, str, Optional[Image.Image]]]:
        """
        Read the first pages of a PDF.

        Returns (page_number, embedded_text, rendered_image) per page; the
        image is only rendered when the text layer is too thin to use.
        """
        try:
            pdf = pypdfium2.PdfDocument(content)
        except Exception as e:
            raise ExtractionFailure(f"Unreadable PDF: {e}") from e

        pages = []
        try:
            for index in range(min(len(pdf), self.max_pages)):
                page = pdf[index]
                textpage = page.get_textpage()
                embedded = textpage.get_text_range() or ""
                textpage.close()

                rendered = None
                if len("".join(embedded.split())) < self.min_embedded_chars:
                    rendered = page.render(scale=self.render_scale).to_pil()
                    embedded = ""

                page.close()
                pages.append((index + 1, embedded.replace("\r\n", "\n").replace("\r", "\n"), rendered))
        except Exception as e:
            raise ExtractionFailure(f"Failed to read PDF pages: {e}") from e
        finally:
            pdf.close()

        return pages
