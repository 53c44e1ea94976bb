# ============================================================================
# src/lab_ingestion/extractors/parameter_extractor.py
# ============================================================================
"""
Parameter Extractor

Turns raw OCR / text-layer output into classified readings plus the
ancillary report fields (date, patient name, report type).

Every field follows the same policy: ordered patterns, first usable
match wins, later patterns are not tried. Pure and idempotent, so it
can be exercised without any OCR engine.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Iterable, Optional, Sequence, Tuple

from ..config.clinical_config import clinical_settings
from ..constants.parameter_specs import PARAMETER_DEFINITIONS
from ..constants.report_patterns import (
    DATE_PATTERNS,
    DEFAULT_REPORT_TYPE,
    NAME_PATTERNS,
    NAME_STOPWORDS,
    REPORT_TYPE_PATTERNS,
    UNKNOWN_PATIENT,
)
from ..core.models.parameter import ParameterDefinition, StatusGuidance
from ..core.models.enums import ReadingStatus
from ..core.models.report import Reading, Report
from ..processors.status_classifier import DEFAULT_CRITICAL_POLICY, abnormal_direction, classify

logger = logging.getLogger(__name__)

_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")


@dataclass
class ExtractedFields:
    """Everything the extractor could recover from one document's text."""
    parameters: Dict[str, Reading] = field(default_factory=dict)
    report_date: Optional[date] = None
    patient_name: str = UNKNOWN_PATIENT
    report_type: str = DEFAULT_REPORT_TYPE

    @property
    def has_parameters(self) -> bool:
        return bool(self.parameters)


def parse_number(raw: str) -> Optional[float]:
    """Parse a matched number, dropping thousands separators ("250,000")."""
    try:
        value = float(raw.replace(",", ""))
    except (AttributeError, ValueError):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def normalize_value(definition: ParameterDefinition, value: float) -> float:
    """Scale per-microliter cell counts to thousands per microliter."""
    threshold = definition.count_scale_threshold
    if threshold is not None and value > threshold:
        return round(value / 1000.0, 3)
    return value


def build_reading(definition: ParameterDefinition, value: float) -> Reading:
    """Classify a canonical value and attach the matching guidance text."""
    status = classify(value, definition.reference_range, definition.critical_policy)

    insight = recommendation = None
    if status.is_abnormal:
        guidance = _guidance_for(definition, value)
        if guidance is not None:
            insight, recommendation = guidance.insight, guidance.recommendation

    return Reading(
        value=value,
        unit=definition.unit,
        reference_range=definition.reference_range,
        status=status,
        insight=insight,
        recommendation=recommendation,
    )


def reclassify_reading(name: str, reading: Reading) -> Reading:
    """
    Recompute a stored reading's status from its value and range.

    Used when readings come from outside the extractor (imported
    documents), where the recorded status cannot be trusted. Sentinel
    readings are returned unchanged.
    """
    if reading.status == ReadingStatus.MANUAL_ENTRY_NEEDED:
        return reading

    definition = PARAMETER_DEFINITIONS.get(name)
    if definition is not None and reading.reference_range in ("", definition.reference_range):
        return build_reading(definition, reading.value)

    expression = reading.reference_range or (definition.reference_range if definition else "")
    policy = definition.critical_policy if definition is not None else DEFAULT_CRITICAL_POLICY
    status = classify(reading.value, expression, policy)

    if not status.is_abnormal:
        return replace(reading, status=status, insight=None, recommendation=None)

    insight, recommendation = reading.insight, reading.recommendation
    if definition is not None:
        direction = abnormal_direction(reading.value, expression)
        guidance = definition.guidance.get(direction) if direction else None
        if guidance is not None:
            insight, recommendation = guidance.insight, guidance.recommendation
    return replace(reading, status=status, insight=insight, recommendation=recommendation)


def reclassify_report(report: Report) -> Report:
    parameters = {
        name: reclassify_reading(name, reading)
        for name, reading in report.parameters.items()
    }
    return replace(report, parameters=parameters)


def _guidance_for(definition: ParameterDefinition, value: float) -> Optional[StatusGuidance]:
    direction = abnormal_direction(value, definition.reference_range)
    if direction is None:
        return None
    return definition.guidance.get(direction)


def resolve_date(kind: str, groups: Sequence[str], day_first: bool) -> Optional[date]:
    """
    Build a date from a pattern match.

    Kinds:
        ymd        (year, month, day)
        numeric    (a, b, year) where a/b order is ambiguous
        month_day  (month name, day, year)
        day_month  (day, month name, year)

    Returns None for impossible dates.
    """
    try:
        if kind == "ymd":
            year, month, day = int(groups[0]), int(groups[1]), int(groups[2])
        elif kind == "numeric":
            first, second, year = int(groups[0]), int(groups[1]), int(groups[2])
            if first > 12:
                day, month = first, second
            elif second > 12:
                month, day = first, second
            elif day_first:
                day, month = first, second
            else:
                month, day = first, second
        elif kind == "month_day":
            month = _MONTHS.index(groups[0][:3].lower()) + 1
            day, year = int(groups[1]), int(groups[2])
        elif kind == "day_month":
            day = int(groups[0])
            month = _MONTHS.index(groups[1][:3].lower()) + 1
            year = int(groups[2])
        else:
            return None

        if not 1900 <= year <= 2100:
            return None
        return date(year, month, day)
    except ValueError:
        return None


def first_date(
    text: str,
    patterns: Iterable[Tuple[object, str]],
    day_first: bool
) -> Optional[date]:
    """First valid date found by the ordered patterns, or None."""
    for pattern, kind in patterns:
        for match in pattern.finditer(text):
            parsed = resolve_date(kind, match.groups(), day_first)
            if parsed is not None:
                return parsed
    return None


class ParameterExtractor:
    """
    Data-driven extractor over the parameter definition table.

    Unknown values are omitted from the result, never defaulted to zero.
    """

    def __init__(
        self,
        definitions: Optional[Dict[str, ParameterDefinition]] = None,
        day_first: Optional[bool] = None
    ):
        self.definitions = definitions if definitions is not None else PARAMETER_DEFINITIONS
        self.day_first = clinical_settings.DATE_DAY_FIRST if day_first is None else day_first
        self.logger = logging.getLogger(__name__)

    def extract(self, text: str, today: Optional[date] = None) -> ExtractedFields:
        """Extract parameters and ancillary fields from one document's text."""
        text = text or ""
        fields = ExtractedFields(
            parameters=self.extract_parameters(text),
            report_date=self.extract_date(text, today=today),
            patient_name=self.extract_patient_name(text),
            report_type=self.extract_report_type(text),
        )
        self.logger.debug(
            f"Extracted {len(fields.parameters)} parameters, date={fields.report_date}, "
            f"type={fields.report_type!r}"
        )
        return fields

    def extract_parameters(self, text: str) -> Dict[str, Reading]:
        readings: Dict[str, Reading] = {}

        for name, definition in self.definitions.items():
            value = self._first_value(definition, text)
            if value is None:
                continue
            readings[name] = build_reading(definition, normalize_value(definition, value))

        return readings

    def _first_value(self, definition: ParameterDefinition, text: str) -> Optional[float]:
        for pattern in definition.patterns:
            match = pattern.search(text)
            if not match:
                continue
            value = parse_number(match.group(1))
            if value is not None:
                self.logger.debug(f"{definition.name}: {value} via /{pattern.pattern}/")
                return value
        return None

    def extract_date(self, text: str, today: Optional[date] = None) -> date:
        """Report date from the text; falls back to today."""
        found = first_date(text or "", DATE_PATTERNS, self.day_first)
        if found is not None:
            return found
        return today or date.today()

    def extract_patient_name(self, text: str) -> str:
        for pattern in NAME_PATTERNS:
            for match in pattern.finditer(text or ""):
                name = " ".join(match.group(1).replace("\t", " ").split()).strip(" .,'")
                if 2 < len(name) < 50 and name.lower() not in NAME_STOPWORDS:
                    return name
        return UNKNOWN_PATIENT

    def extract_report_type(self, text: str) -> str:
        for pattern, label in REPORT_TYPE_PATTERNS:
            if pattern.search(text or ""):
                return label
        return DEFAULT_REPORT_TYPE
