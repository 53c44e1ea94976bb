# ============================================================================
# src/lab_ingestion/preprocessors/image_preprocessor.py
# ============================================================================
"""
Image preprocessing for OCR.

Provides:
- Decoding uploaded image bytes (EXIF orientation corrected)
- Downscaling oversized photos
- Grayscale + contrast enhancement
- PNG re-encoding for OCR backends that take bytes
"""

import logging
from io import BytesIO
from typing import Optional

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config.ocr_config import ocr_settings
from ..utils.exceptions import ExtractionFailure

logger = logging.getLogger(__name__)

# ITU-R 601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)

CONTRAST_PIVOT = 128.0
CONTRAST_GAIN = 1.5


class ImagePreprocessor:
    """
    Stateless image enhancement applied before every OCR attempt.

    enhance():  gray = 0.299R + 0.587G + 0.114B
                out  = clamp(0, 255, (gray - 128) * 1.5 + 128)
    """

    def __init__(self, max_dimension: Optional[int] = None):
        self.max_dimension = max_dimension or ocr_settings.OCR_MAX_IMAGE_DIMENSION
        self.logger = logging.getLogger(__name__)

    def load(self, data: bytes) -> Image.Image:
        """
        Decode image bytes with orientation and size corrections.

        Raises:
            ExtractionFailure: if the bytes are not a decodable image
        """
        try:
            image = Image.open(BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ExtractionFailure(f"Unreadable image: {e}") from e

        # Phone photos store rotation in EXIF; OCR needs upright pixels
        try:
            image = ImageOps.exif_transpose(image)
        except Exception as e:
            self.logger.warning(f"EXIF transpose failed (non-fatal): {e}")

        return self.downscale(image)

    def downscale(self, image: Image.Image) -> Image.Image:
        w, h = image.size
        if max(w, h) <= self.max_dimension:
            return image

        scale = self.max_dimension / max(w, h)
        new_w, new_h = int(w * scale), int(h * scale)
        self.logger.info(f"Resized {w}x{h} -> {new_w}x{new_h} for OCR")
        return image.resize((new_w, new_h), Image.LANCZOS)

    def enhance(self, image: Image.Image) -> Image.Image:
        """Grayscale and boost contrast around mid-gray."""
        rgb = np.asarray(image.convert("RGB"), dtype=np.float32)
        gray = rgb @ LUMA_WEIGHTS
        enhanced = np.clip((gray - CONTRAST_PIVOT) * CONTRAST_GAIN + CONTRAST_PIVOT, 0, 255)
        return Image.fromarray(enhanced.astype(np.uint8))

    def prepare(self, data: bytes) -> Image.Image:
        """Decode and enhance uploaded image bytes."""
        return self.enhance(self.load(data))

    def prepare_bytes(self, data: bytes) -> bytes:
        """Decode, enhance and re-encode as PNG."""
        return to_png_bytes(self.prepare(data))


def to_png_bytes(image: Image.Image) -> bytes:
    """Encode a PIL image as PNG (lossless, OCR-friendly)."""
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()
