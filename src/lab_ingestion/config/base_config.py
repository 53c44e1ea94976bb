# ============================================================================
# src/lab_ingestion/config/base_config.py
# ============================================================================
"""
Base Configuration
- Project root
- Data directory and patient document store
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

class BaseSettingsConfig(BaseSettings):
    # Root project directory
    PROJECT_ROOT: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent.parent.parent,
        description="Root directory of the project"
    )

    DATA_DIR: Path = Field(
        default=Path("data"),
        description="Root directory for persisted data"
    )

    # One JSON document per patient
    PATIENTS_DIR: Path = Field(
        default=Path("data/patients"),
        description="Directory holding <patient_id>.json documents"
    )

    DEFAULT_PATIENT_ID: str = Field(
        default="default-patient",
        description="Patient id used by the CLI when none is given"
    )

    def create_directories(self):
        """Create all necessary directories if they don't exist"""
        for directory in (self.DATA_DIR, self.PATIENTS_DIR):
            directory.mkdir(parents=True, exist_ok=True)

# Global instance
base_settings = BaseSettingsConfig()
