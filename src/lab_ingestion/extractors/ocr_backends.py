# ============================================================================
# src/lab_ingestion/extractors/ocr_backends.py
# ============================================================================
"""
OCR Backends

One class per OCR engine. Each backend has two phases:

    load()        heavy construction (model weights, binaries, server check);
                  called once by the OCREnginePool at startup
    recognize()   image -> text; synchronous engines run in a worker thread
                  so the orchestrator can abandon them on timeout

Engines:
    PaddleOCRBackend     - PP-OCR, primary model
    TesseractBackend     - Tesseract via pytesseract, secondary model
    TrOCRBackend         - HuggingFace TrOCR (printed), minimal fallback
    OllamaVisionBackend  - local vision LLM through Ollama, optional

Installation:
    pip install "lab-ingestion-engine[paddle]"    # paddlepaddle + paddleocr
    pip install "lab-ingestion-engine[trocr]"     # transformers + torch
    apt install tesseract-ocr                      # tesseract binary
"""

import asyncio
import base64
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import aiohttp
import numpy as np
from PIL import Image

from ..config.ocr_config import ocr_settings
from ..preprocessors.image_preprocessor import to_png_bytes
from ..utils.exceptions import OCRBackendUnavailable

logger = logging.getLogger(__name__)


class OCRBackend(ABC):
    """Base class for OCR engines."""

    name: str = "base"

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.name}")
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """
        Construct the engine.

        Raises:
            OCRBackendUnavailable: missing package, binary, weights or server
        """
        if self._loaded:
            return
        try:
            await asyncio.to_thread(self._load_sync)
        except OCRBackendUnavailable:
            raise
        except ImportError as e:
            raise OCRBackendUnavailable(self.name, f"package not installed ({e})") from e
        except Exception as e:
            raise OCRBackendUnavailable(self.name, str(e)) from e
        self._loaded = True
        self.logger.info(f"{self.name} initialized")

    async def recognize(self, image: Image.Image) -> str:
        """Recognize text; runs the synchronous engine in a worker thread."""
        return await asyncio.to_thread(self._recognize_sync, image)

    async def close(self) -> None:
        """Release engine resources (optional)."""
        return None

    @abstractmethod
    def _load_sync(self) -> None:
        pass

    @abstractmethod
    def _recognize_sync(self, image: Image.Image) -> str:
        pass


class PaddleOCRBackend(OCRBackend):
    """
    PaddleOCR-based recognition.

    PaddleOCR 3.x predicts from file paths and returns dict-like results
    carrying 'rec_texts'.
    """

    name = "paddleocr"

    def __init__(self, lang: str = "en"):
        super().__init__()
        self.lang = lang
        self._ocr = None

    def _load_sync(self) -> None:
        from paddleocr import PaddleOCR

        # Orientation classification handles rotated phone photos
        self._ocr = PaddleOCR(
            use_doc_orientation_classify=True,
            use_doc_unwarping=False,
            use_textline_orientation=True,
            lang=self.lang,
        )

    def _recognize_sync(self, image: Image.Image) -> str:
        with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as f:
            image.save(f, format="PNG")
            temp_path = f.name

        try:
            result = self._ocr.predict(input=temp_path)
        finally:
            os.unlink(temp_path)

        lines: List[str] = []
        for res in result or []:
            rec_texts = res.get("rec_texts", []) if hasattr(res, "get") else getattr(res, "rec_texts", [])
            lines.extend(text.strip() for text in rec_texts or [] if text and text.strip())

        return "\n".join(lines)


class TesseractBackend(OCRBackend):
    """Tesseract recognition, rebuilt line by line from image_to_data output."""

    name = "tesseract"

    def __init__(self, lang: str = "eng"):
        super().__init__()
        self.lang = lang
        self._pytesseract = None

    def _load_sync(self) -> None:
        import pytesseract

        if shutil.which("tesseract") is None:
            raise OCRBackendUnavailable(self.name, "tesseract binary not found on PATH")
        self._pytesseract = pytesseract

    def _recognize_sync(self, image: Image.Image) -> str:
        data = self._pytesseract.image_to_data(
            image,
            lang=self.lang,
            output_type=self._pytesseract.Output.DICT,
        )

        # Group words by (block, paragraph, line) so label/value pairs stay on one line
        lines: dict = {}
        for i, text in enumerate(data["text"]):
            word = (text or "").strip()
            if not word or float(data["conf"][i]) < 0:
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word)

        return "\n".join(" ".join(words) for words in lines.values())


class TrOCRBackend(OCRBackend):
    """
    TrOCR (transformer OCR) fallback.

    TrOCR reads a single text line, so the page is cut into horizontal
    strips at blank rows before recognition.
    """

    name = "trocr"

    # Row is "ink" when its darkest pixel is below this gray level
    INK_THRESHOLD = 160
    MIN_LINE_HEIGHT = 8
    MAX_LINES = 120

    def __init__(self, model_name: Optional[str] = None, use_gpu: Optional[bool] = None):
        super().__init__()
        self.model_name = model_name or ocr_settings.TROCR_MODEL
        self.use_gpu = ocr_settings.USE_GPU if use_gpu is None else use_gpu
        self._processor = None
        self._model = None
        self._torch: Any = None

    def _load_sync(self) -> None:
        import torch
        from transformers import TrOCRProcessor, VisionEncoderDecoderModel

        self._processor = TrOCRProcessor.from_pretrained(self.model_name)
        self._model = VisionEncoderDecoderModel.from_pretrained(self.model_name)
        if self.use_gpu and torch.cuda.is_available():
            self._model = self._model.to("cuda")
        self._model.eval()
        self._torch = torch

    def _recognize_sync(self, image: Image.Image) -> str:
        gray = image.convert("L")
        texts = []

        for strip in self.split_lines(gray)[: self.MAX_LINES]:
            pixel_values = self._processor(strip.convert("RGB"), return_tensors="pt").pixel_values
            device = next(self._model.parameters()).device
            pixel_values = pixel_values.to(device)

            with self._torch.no_grad():
                generated_ids = self._model.generate(pixel_values, max_length=128)

            text = self._processor.batch_decode(generated_ids, skip_special_tokens=True)[0]
            if text.strip():
                texts.append(text.strip())

        return "\n".join(texts)

    @classmethod
    def split_lines(cls, gray: Image.Image) -> List[Image.Image]:
        """Cut a grayscale page into text-line strips using a row projection."""
        pixels = np.asarray(gray)
        if pixels.size == 0:
            return []

        ink_rows = pixels.min(axis=1) < cls.INK_THRESHOLD
        strips = []
        start = None
        for y, has_ink in enumerate(ink_rows):
            if has_ink and start is None:
                start = y
            elif not has_ink and start is not None:
                if y - start >= cls.MIN_LINE_HEIGHT:
                    strips.append((start, y))
                start = None
        if start is not None and len(ink_rows) - start >= cls.MIN_LINE_HEIGHT:
            strips.append((start, len(ink_rows)))

        width = gray.size[0]
        return [gray.crop((0, max(0, top - 2), width, min(len(ink_rows), bottom + 2)))
                for top, bottom in strips]


class OllamaVisionBackend(OCRBackend):
    """
    Vision LLM transcription through a local Ollama server.

    Fully async (aiohttp); no worker thread involved.
    """

    name = "ollama_vision"

    PROMPT = (
        "Transcribe all text visible in this laboratory report image exactly as written. "
        "Keep each test name on the same line as its value and unit. "
        "Output only the transcribed text."
    )

    # Vision models tile images; 1024px keeps requests fast and text legible
    MAX_IMAGE_DIM = 1024

    def __init__(self, host: Optional[str] = None, model: Optional[str] = None):
        super().__init__()
        self.host = (host or ocr_settings.OLLAMA_HOST).rstrip("/")
        self.model = model or ocr_settings.OLLAMA_VISION_MODEL
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            # Per-attempt timeout is enforced by the orchestrator
            self._session = aiohttp.ClientSession()
        return self._session

    async def load(self) -> None:
        if self._loaded:
            return
        try:
            await self._check_model(await self._get_session())
        except OCRBackendUnavailable:
            await self.close()
            raise

        self._loaded = True
        self.logger.info(f"{self.name} initialized: {self.host} / {self.model}")

    async def _check_model(self, session: aiohttp.ClientSession) -> None:
        try:
            async with session.get(
                f"{self.host}/api/tags",
                timeout=aiohttp.ClientTimeout(total=5),
            ) as response:
                if response.status != 200:
                    raise OCRBackendUnavailable(self.name, f"Ollama returned HTTP {response.status}")
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise OCRBackendUnavailable(self.name, f"Ollama not reachable at {self.host}: {e}") from e

        names = {m.get("name", "") for m in data.get("models", [])}
        if not any(n == self.model or n.startswith(f"{self.model}:") for n in names):
            raise OCRBackendUnavailable(self.name, f"model '{self.model}' not pulled")

    async def recognize(self, image: Image.Image) -> str:
        session = await self._get_session()

        image = image.copy()
        image.thumbnail((self.MAX_IMAGE_DIM, self.MAX_IMAGE_DIM))
        payload = {
            "model": self.model,
            "prompt": self.PROMPT,
            "images": [base64.b64encode(to_png_bytes(image)).decode("utf-8")],
            "stream": False,
            "options": {"temperature": 0.1, "num_predict": 4096},
        }

        async with session.post(f"{self.host}/api/generate", json=payload) as response:
            if response.status != 200:
                error = await response.text()
                raise RuntimeError(f"Ollama error {response.status}: {error[:200]}")
            data = await response.json()

        return (data.get("response") or "").strip()

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _load_sync(self) -> None:
        raise NotImplementedError("OllamaVisionBackend loads asynchronously")

    def _recognize_sync(self, image: Image.Image) -> str:
        raise NotImplementedError("OllamaVisionBackend recognizes asynchronously")


BACKEND_FACTORIES = {
    PaddleOCRBackend.name: PaddleOCRBackend,
    TesseractBackend.name: TesseractBackend,
    TrOCRBackend.name: TrOCRBackend,
    OllamaVisionBackend.name: OllamaVisionBackend,
}


def create_backend(name: str) -> OCRBackend:
    """Instantiate a backend by strategy name."""
    try:
        return BACKEND_FACTORIES[name]()
    except KeyError:
        raise OCRBackendUnavailable(name, "unknown OCR strategy") from None
