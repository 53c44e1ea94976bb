# ============================================================================
# src/lab_ingestion/extractors/ocr_engine_pool.py
# ============================================================================
"""
OCR Engine Pool

Owns every configured OCR backend for the lifetime of the host process
(API lifespan, CLI run, test fixture). Engines are loaded exactly once;
concurrent initialize() calls wait on the same lock instead of loading
twice. Backends that fail to load are recorded with the reason and later
skipped by the orchestrator.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..config.ocr_config import ocr_settings
from ..utils.exceptions import OCRBackendUnavailable
from .ocr_backends import OCRBackend, create_backend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OCRStrategy:
    """One step of the fallback chain."""
    name: str
    backend: Optional[OCRBackend]
    timeout: float
    unavailable_reason: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.backend is not None and self.unavailable_reason is None


class OCREnginePool:
    """
    Explicitly owned set of OCR engines.

    Usage:
        pool = OCREnginePool()
        await pool.initialize()        # once, at startup
        orchestrator = OCROrchestrator(pool)
        ...
        await pool.close()
    """

    def __init__(
        self,
        strategy_names: Optional[Sequence[str]] = None,
        backends: Optional[Dict[str, OCRBackend]] = None,
        timeout: Optional[float] = None
    ):
        """
        Args:
            strategy_names: fallback order (default: OCR_STRATEGIES)
            backends: pre-built backends by name (tests, custom engines);
                      names without an entry are created from the registry
            timeout: per-attempt timeout in seconds (default: OCR_TIMEOUT_SECONDS)
        """
        self.logger = logging.getLogger(__name__)
        self.strategy_names: List[str] = list(strategy_names or ocr_settings.OCR_STRATEGIES)
        self.timeout = timeout if timeout is not None else ocr_settings.OCR_TIMEOUT_SECONDS

        self._provided = dict(backends or {})
        self._backends: Dict[str, OCRBackend] = {}
        self._unavailable: Dict[str, str] = {}
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def unavailable(self) -> Dict[str, str]:
        """Strategy name -> reason it could not be loaded."""
        return dict(self._unavailable)

    @property
    def available_names(self) -> List[str]:
        return [name for name in self.strategy_names if name in self._backends]

    async def initialize(self) -> "OCREnginePool":
        """Load every configured backend once."""
        async with self._lock:
            if self._initialized:
                return self

            for name in self.strategy_names:
                try:
                    backend = self._provided.get(name) or create_backend(name)
                    await backend.load()
                except OCRBackendUnavailable as e:
                    self._unavailable[name] = e.reason
                    self.logger.warning(f"OCR strategy '{name}' unavailable: {e.reason}")
                    continue
                self._backends[name] = backend

            self._initialized = True

            if self._backends:
                self.logger.info(f"OCR engines ready: {', '.join(self.available_names)}")
            else:
                self.logger.error("No OCR engine could be loaded; image OCR will always fall back")

        return self

    def strategies(self) -> List[OCRStrategy]:
        """The fallback chain in configured order, unavailable steps included."""
        return [
            OCRStrategy(
                name=name,
                backend=self._backends.get(name),
                timeout=self.timeout,
                unavailable_reason=None if name in self._backends else self._unavailable.get(
                    name, "not initialized"
                ),
            )
            for name in self.strategy_names
        ]

    def status(self) -> Dict[str, object]:
        """Summary for health endpoints."""
        return {
            "initialized": self._initialized,
            "strategies": list(self.strategy_names),
            "available": self.available_names,
            "unavailable": self.unavailable,
            "timeout_seconds": self.timeout,
        }

    async def close(self) -> None:
        for backend in self._backends.values():
            try:
                await backend.close()
            except Exception as e:
                self.logger.warning(f"Error closing OCR backend {backend.name}: {e}")
