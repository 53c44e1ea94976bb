# ============================================================================
# src/lab_ingestion/config/hardware_config.py
# ============================================================================
"""
Hardware & Performance Settings
- Concurrency
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class HardwareSettings(BaseSettings):
    MAX_CONCURRENT_DOCS: int = Field(
        default=1,
        ge=1, le=16,
        description="Files processed simultaneously within a batch (1 = sequential)"
    )

hardware_settings = HardwareSettings()
