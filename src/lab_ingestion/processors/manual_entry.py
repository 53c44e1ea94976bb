# ============================================================================
# src/lab_ingestion/processors/manual_entry.py
# ============================================================================
"""
Manual report entry.

Builds a classified Report from values typed in by a user, typically in
response to a sentinel "manual entry required" report. Values go through
the same normalization and classification as OCR-extracted values.
"""

import logging
import math
from datetime import date, datetime
from typing import Dict, Mapping, Optional, Union

from ..constants.parameter_specs import PARAMETER_DEFINITIONS
from ..constants.report_patterns import DEFAULT_REPORT_TYPE
from ..core.models.report import Reading, Report
from ..extractors.parameter_extractor import build_reading, normalize_value, parse_number
from ..utils.exceptions import ValidationError
from .report_assembler import new_report_id

logger = logging.getLogger(__name__)


def build_manual_report(
    patient_name: str,
    values: Mapping[str, Union[str, float, int, None]],
    report_date: Optional[date] = None,
    report_type: Optional[str] = None,
    file_name: str = "Manual Entry"
) -> Report:
    """
    Create a Report from manually entered values.

    Blank entries are ignored; unknown parameter names are rejected.

    Raises:
        ValidationError: empty patient name, unknown parameter, non-numeric
                         or negative value, or no values at all
    """
    name = " ".join((patient_name or "").split())
    if not name:
        raise ValidationError("Please enter patient name")

    readings: Dict[str, Reading] = {}
    for key, raw in values.items():
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue

        definition = PARAMETER_DEFINITIONS.get(key)
        if definition is None:
            raise ValidationError(f"Unknown parameter: {key}")

        if isinstance(raw, bool):
            value = None
        elif isinstance(raw, (int, float)):
            value = float(raw)
        else:
            value = parse_number(str(raw).strip())

        if value is None or not math.isfinite(value) or value < 0:
            raise ValidationError(f"Invalid value for {definition.label}: {raw!r}")

        readings[key] = build_reading(definition, normalize_value(definition, float(value)))

    if not readings:
        raise ValidationError("Please enter at least one blood parameter value")

    report = Report(
        id=new_report_id(),
        patient_name=name,
        report_date=report_date or date.today(),
        upload_date=datetime.now(),
        report_type=report_type or DEFAULT_REPORT_TYPE,
        file_name=file_name,
        parameters=readings,
    )
    logger.info(f"Manual report {report.id}: {len(readings)} parameters for {name}")
    return report
