# ============================================================================
# src/lab_ingestion/processors/status_classifier.py
# ============================================================================
"""
Status Classifier

Maps (value, reference range expression, critical policy) to a status tier.

Supported range grammar:
    "min-max"   bounded range (hyphen or en-dash, whitespace tolerated)
    "<max"      upper bound only (value must stay below max)
    ">min"      lower bound only (value must stay above min)

Malformed expressions never fail a reading: they are logged and the
reading is classified as normal.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..config.clinical_config import clinical_settings
from ..core.models.enums import ReadingStatus
from ..core.models.parameter import CriticalPolicy
from ..utils.exceptions import MalformedRangeExpression

logger = logging.getLogger(__name__)

_NUMBER = r"(\d+(?:\.\d+)?)"
_BOUNDED = re.compile(rf"^{_NUMBER}\s*[-–—]\s*{_NUMBER}$")
_UPPER = re.compile(rf"^<\s*{_NUMBER}$")
_LOWER = re.compile(rf"^>\s*{_NUMBER}$")

DEFAULT_CRITICAL_POLICY = CriticalPolicy(
    low_factor=clinical_settings.CRITICAL_LOW_FACTOR,
    high_factor=clinical_settings.CRITICAL_HIGH_FACTOR,
)


@dataclass(frozen=True)
class ReferenceRange:
    """Parsed reference range; a missing bound means the range is open on that side."""
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.minimum is None or self.maximum is None


def parse_range(expression: str) -> ReferenceRange:
    """
    Parse a reference range expression.

    Raises:
        MalformedRangeExpression: if the expression matches no supported form
    """
    text = (expression or "").strip()

    match = _BOUNDED.match(text)
    if match:
        low, high = float(match.group(1)), float(match.group(2))
        if low > high:
            raise MalformedRangeExpression(expression)
        return ReferenceRange(minimum=low, maximum=high)

    match = _UPPER.match(text)
    if match:
        return ReferenceRange(maximum=float(match.group(1)))

    match = _LOWER.match(text)
    if match:
        return ReferenceRange(minimum=float(match.group(1)))

    raise MalformedRangeExpression(expression)


def classify(
    value: float,
    expression: str,
    policy: CriticalPolicy = DEFAULT_CRITICAL_POLICY
) -> ReadingStatus:
    """
    Classify a value against a reference range.

    Deterministic and side-effect free apart from a debug log line
    for malformed expressions.
    """
    try:
        ref = parse_range(expression)
    except MalformedRangeExpression as e:
        logger.debug(f"{e}; classifying {value} as normal")
        return ReadingStatus.NORMAL

    critical_allowed = not ref.is_open or policy.apply_to_open_ranges

    if ref.minimum is not None and ref.maximum is not None:
        if ref.minimum <= value <= ref.maximum:
            return ReadingStatus.NORMAL
        if value < ref.minimum:
            return _low_or_critical(value, ref.minimum, policy, critical_allowed)
        return _high_or_critical(value, ref.maximum, policy, critical_allowed)

    if ref.maximum is not None:
        # "<max": reaching the bound is already high
        if value >= ref.maximum:
            return _high_or_critical(value, ref.maximum, policy, critical_allowed)
        return ReadingStatus.NORMAL

    # ">min": reaching the bound is already low
    if value <= ref.minimum:
        return _low_or_critical(value, ref.minimum, policy, critical_allowed)
    return ReadingStatus.NORMAL


def abnormal_direction(value: float, expression: str) -> Optional[str]:
    """
    Which side of the range a value falls on.

    Returns "high", "low", or None when the value is inside the range
    (or the expression is malformed).
    """
    try:
        ref = parse_range(expression)
    except MalformedRangeExpression:
        return None

    if ref.minimum is not None and ref.maximum is not None:
        if value < ref.minimum:
            return "low"
        if value > ref.maximum:
            return "high"
        return None
    if ref.maximum is not None:
        return "high" if value >= ref.maximum else None
    return "low" if value <= ref.minimum else None


def _low_or_critical(
    value: float,
    minimum: float,
    policy: CriticalPolicy,
    critical_allowed: bool
) -> ReadingStatus:
    if critical_allowed and policy.low_factor is not None and value < minimum * policy.low_factor:
        return ReadingStatus.CRITICAL
    return ReadingStatus.LOW


def _high_or_critical(
    value: float,
    maximum: float,
    policy: CriticalPolicy,
    critical_allowed: bool
) -> ReadingStatus:
    if critical_allowed and policy.high_factor is not None and value > maximum * policy.high_factor:
        return ReadingStatus.CRITICAL
    return ReadingStatus.HIGH
