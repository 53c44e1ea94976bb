# ============================================================================
# src/lab_ingestion/config/clinical_config.py
# ============================================================================
"""
Clinical Settings
- Default critical-tier multipliers
- Trend stability threshold
- Date parsing convention
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class ClinicalSettings(BaseSettings):
    CRITICAL_LOW_FACTOR: float = Field(
        default=0.7,
        gt=0.0, lt=1.0,
        description="Value below min x factor is critical (per-parameter override allowed)"
    )
    CRITICAL_HIGH_FACTOR: float = Field(
        default=1.3,
        gt=1.0,
        description="Value above max x factor is critical (per-parameter override allowed)"
    )
    TREND_STABLE_PERCENT: float = Field(
        default=5.0,
        ge=0.0,
        description="First-to-last change below this percentage is a stable trend"
    )
    DATE_DAY_FIRST: bool = Field(
        default=False,
        description="Read ambiguous dates like 03/04/2024 as day/month/year"
    )

clinical_settings = ClinicalSettings()
