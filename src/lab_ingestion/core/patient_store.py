# ============================================================================
# src/lab_ingestion/core/patient_store.py
# ============================================================================
"""
Patient Store

Persists one JSON document per patient (<patient_id>.json). Writes are
atomic: the document goes to a temp file in the same directory and is
then moved over the old one, so readers see either the old or the new
aggregate, never a partial one. File I/O runs off the event loop.
"""

import asyncio
import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from ..config.base_config import base_settings
from ..utils.exceptions import PersistenceError
from .models.patient import PatientData

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


def is_valid_patient_id(patient_id: str) -> bool:
    return bool(_SAFE_ID.match(patient_id or "")) and ".." not in patient_id


class PatientStore(ABC):
    """Load/save contract for the patient aggregate."""

    @abstractmethod
    async def load_patient_data(self, patient_id: str) -> Optional[PatientData]:
        """
        Return the stored aggregate, or None if the patient does not exist.

        Raises:
            PersistenceError: the stored document cannot be read or decoded
        """

    @abstractmethod
    async def save_patient_data(self, data: PatientData) -> bool:
        """Persist the whole aggregate. Returns False on failure."""

    @abstractmethod
    async def delete_patient_data(self, patient_id: str) -> bool:
        pass

    @abstractmethod
    async def list_patient_ids(self) -> List[str]:
        pass


class JsonPatientStore(PatientStore):
    """File-backed store: <data_dir>/<patient_id>.json."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir or base_settings.PATIENTS_DIR)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Patient store initialized: {self.data_dir}")

    def _path(self, patient_id: str) -> Path:
        if not is_valid_patient_id(patient_id):
            raise ValueError(f"Invalid patient id: {patient_id!r}")
        return self.data_dir / f"{patient_id}.json"

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    async def load_patient_data(self, patient_id: str) -> Optional[PatientData]:
        path = self._path(patient_id)
        try:
            raw = await asyncio.to_thread(self._read, path)
            if raw is None:
                return None
            return PatientData.from_dict(raw)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Failed to load patient {patient_id} from {path.name}: {e}",
                         extra={"patient_id": patient_id})
            raise PersistenceError(patient_id, f"stored document is unreadable ({e})") from e

    def _read(self, path: Path) -> Optional[Dict]:
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def list_patient_ids(self) -> List[str]:
        paths = await asyncio.to_thread(lambda: sorted(self.data_dir.glob("*.json")))
        return [p.stem for p in paths]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    async def save_patient_data(self, data: PatientData) -> bool:
        try:
            path = self._path(data.patient_id)
            await asyncio.to_thread(self._write_atomic, path, data.to_dict())
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to save patient {data.patient_id}: {e}",
                         extra={"patient_id": data.patient_id})
            return False

        logger.info(f"Saved patient {data.patient_id} ({len(data.reports)} reports)",
                    extra={"patient_id": data.patient_id})
        return True

    def _write_atomic(self, path: Path, document: Dict) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    async def delete_patient_data(self, patient_id: str) -> bool:
        path = self._path(patient_id)
        try:
            existed = await asyncio.to_thread(path.exists)
            if existed:
                await asyncio.to_thread(path.unlink)
        except OSError as e:
            logger.error(f"Failed to delete patient {patient_id}: {e}")
            return False
        return existed
