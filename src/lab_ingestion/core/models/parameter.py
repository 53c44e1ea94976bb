# ============================================================================
# src/lab_ingestion/core/models/parameter.py
# ============================================================================
"""
Static parameter definitions
- Ordered extraction patterns (first match wins)
- Canonical unit and reference range
- Critical-tier policy
- Per-status insight / recommendation text
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Pattern, Tuple


@dataclass(frozen=True)
class CriticalPolicy:
    """
    Multipliers that turn low/high into critical.

    A factor of None disables that critical tier. Open-ended ranges
    ("<max", ">min") only get a critical tier when apply_to_open_ranges is set.
    """
    low_factor: Optional[float] = 0.7
    high_factor: Optional[float] = 1.3
    apply_to_open_ranges: bool = False


@dataclass(frozen=True)
class StatusGuidance:
    """Insight and recommendation shown for an abnormal reading."""
    insight: str
    recommendation: str


@dataclass(frozen=True)
class ParameterDefinition:
    name: str
    label: str
    patterns: Tuple[Pattern[str], ...]
    unit: str
    reference_range: str
    critical_policy: CriticalPolicy = field(default_factory=CriticalPolicy)

    # Values above this are reported per unit volume and get divided by 1000
    count_scale_threshold: Optional[float] = None

    # Keyed by "low" / "high"
    guidance: Dict[str, StatusGuidance] = field(default_factory=dict)


def compile_patterns(*patterns: str) -> Tuple[Pattern[str], ...]:
    """Compile case-insensitive extraction patterns, keeping their order."""
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)
