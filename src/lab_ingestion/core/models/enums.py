# ============================================================================
# src/lab_ingestion/core/models/enums.py
# ============================================================================
"""
Model Enums
- Reading status tiers
- Trend directions
- Alert kinds
- Per-file processing outcomes
"""

from enum import Enum

class ReadingStatus(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    LOW = "low"
    CRITICAL = "critical"
    MANUAL_ENTRY_NEEDED = "manual_entry_needed"  # sentinel reading only

    @property
    def is_abnormal(self) -> bool:
        return self in (ReadingStatus.HIGH, ReadingStatus.LOW, ReadingStatus.CRITICAL)

class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    FLUCTUATING = "fluctuating"

class AlertKind(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    IMPROVEMENT = "improvement"

class OutcomeStatus(str, Enum):
    EXTRACTED = "extracted"          # real report
    MANUAL_ENTRY = "manual_entry"    # sentinel report
    SKIPPED = "skipped"              # unsupported file type, no report
