# ============================================================================
# src/lab_ingestion/extractors/ocr_orchestrator.py
# ============================================================================
"""
OCR Orchestrator

Ordered fallback over the engine pool's strategies:

    NOT_STARTED -> TRYING(0) -> SUCCEEDED
                             -> TRYING(1) -> ... -> EXHAUSTED

Each attempt is bounded by the strategy timeout. A timeout, an error,
an unavailable engine or too little text advances to the next strategy;
there are no retries within a strategy. Exhaustion is reported in the
result, never raised.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from PIL import Image

from ..config.ocr_config import ocr_settings
from .ocr_engine_pool import OCREnginePool, OCRStrategy

logger = logging.getLogger(__name__)


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"
    UNAVAILABLE = "unavailable"
    INSUFFICIENT_TEXT = "insufficient_text"


@dataclass(frozen=True)
class OCRAttempt:
    strategy: str
    outcome: AttemptOutcome
    detail: str = ""
    elapsed: float = 0.0
    text_length: int = 0

    def describe(self) -> str:
        return f"{self.strategy}: {self.outcome.value}" + (f" ({self.detail})" if self.detail else "")


@dataclass
class RecognitionResult:
    success: bool
    text: str = ""
    strategy: Optional[str] = None
    attempts: List[OCRAttempt] = field(default_factory=list)
    failure_reason: Optional[str] = None


class OCROrchestrator:
    """Runs the OCR fallback chain for one enhanced image."""

    def __init__(self, pool: OCREnginePool, min_text_length: Optional[int] = None):
        self.pool = pool
        self.min_text_length = (
            min_text_length if min_text_length is not None else ocr_settings.OCR_MIN_TEXT_LENGTH
        )
        self.logger = logging.getLogger(__name__)

    async def recognize(self, image: Image.Image) -> RecognitionResult:
        if not self.pool.initialized:
            await self.pool.initialize()

        attempts: List[OCRAttempt] = []

        for index, strategy in enumerate(self.pool.strategies()):
            self.logger.debug(f"OCR state TRYING({index}) strategy={strategy.name}")
            attempt, text = await self._attempt(strategy, image)
            attempts.append(attempt)

            if attempt.outcome == AttemptOutcome.SUCCESS:
                self.logger.info(
                    f"OCR succeeded with {strategy.name}: {attempt.text_length} chars "
                    f"in {attempt.elapsed:.2f}s",
                    extra={"strategy": strategy.name},
                )
                return RecognitionResult(
                    success=True,
                    text=text,
                    strategy=strategy.name,
                    attempts=attempts,
                )

            self.logger.warning(
                f"OCR strategy {attempt.describe()}; advancing",
                extra={"strategy": strategy.name},
            )

        reason = "All OCR strategies failed: " + "; ".join(a.describe() for a in attempts)
        if not attempts:
            reason = "No OCR strategies configured"
        self.logger.error(reason)
        return RecognitionResult(success=False, attempts=attempts, failure_reason=reason)

    async def _attempt(self, strategy: OCRStrategy, image: Image.Image):
        if not strategy.available:
            return OCRAttempt(
                strategy=strategy.name,
                outcome=AttemptOutcome.UNAVAILABLE,
                detail=strategy.unavailable_reason or "",
            ), ""

        start = time.perf_counter()
        try:
            # Sync engines run in a thread; on timeout the thread is abandoned, not awaited
            text = await asyncio.wait_for(strategy.backend.recognize(image), timeout=strategy.timeout)
        except asyncio.TimeoutError:
            return OCRAttempt(
                strategy=strategy.name,
                outcome=AttemptOutcome.TIMEOUT,
                detail=f"exceeded {strategy.timeout:g}s",
                elapsed=time.perf_counter() - start,
            ), ""
        except Exception as e:
            return OCRAttempt(
                strategy=strategy.name,
                outcome=AttemptOutcome.ERROR,
                detail=f"{type(e).__name__}: {e}",
                elapsed=time.perf_counter() - start,
            ), ""

        elapsed = time.perf_counter() - start
        text = text or ""
        stripped_length = len(text.strip())

        if stripped_length < self.min_text_length:
            return OCRAttempt(
                strategy=strategy.name,
                outcome=AttemptOutcome.INSUFFICIENT_TEXT,
                detail=f"{stripped_length} chars < {self.min_text_length}",
                elapsed=elapsed,
                text_length=stripped_length,
            ), ""

        return OCRAttempt(
            strategy=strategy.name,
            outcome=AttemptOutcome.SUCCESS,
            elapsed=elapsed,
            text_length=stripped_length,
        ), text
