# ============================================================================
# FILE: tests/unit/test_parameter_extractor.py
# ============================================================================
"""
Unit tests for parameter and report field extraction from raw text
"""

from datetime import date

import pytest

from lab_ingestion.constants import DEFAULT_REPORT_TYPE, UNKNOWN_PATIENT
from lab_ingestion.constants.parameter_specs import PARAMETER_DEFINITIONS
from lab_ingestion.core.models.enums import ReadingStatus
from lab_ingestion.core.models.report import MANUAL_ENTRY_KEY
from lab_ingestion.extractors.parameter_extractor import (
    ParameterExtractor,
    build_reading,
    normalize_value,
    parse_number,
    reclassify_reading,
    resolve_date,
)

TODAY = date(2024, 6, 15)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def extractor():
    return ParameterExtractor(day_first=False)


# ============================================================================
# NUMBERS
# ============================================================================

def test_parse_number():
    assert parse_number("13.2") == 13.2
    assert parse_number("250,000") == 250000.0
    assert parse_number("abc") is None
    assert parse_number("-4") is None


def test_normalize_cell_counts():
    wbc = PARAMETER_DEFINITIONS["wbc"]
    assert normalize_value(wbc, 7200) == 7.2
    assert normalize_value(wbc, 7.2) == 7.2
    # only above the threshold
    assert normalize_value(wbc, 1000) == 1000

    hemoglobin = PARAMETER_DEFINITIONS["hemoglobin"]
    assert normalize_value(hemoglobin, 5000) == 5000


def test_build_reading_attaches_guidance():
    reading = build_reading(PARAMETER_DEFINITIONS["hemoglobin"], 11.0)
    assert reading.status == ReadingStatus.LOW
    assert reading.unit == "g/dL"
    assert reading.reference_range == "12.0-15.5"
    assert "anemia" in reading.insight
    assert reading.recommendation

    normal = build_reading(PARAMETER_DEFINITIONS["hemoglobin"], 13.0)
    assert normal.insight is None
    assert normal.recommendation is None


def test_reclassify_reading_ignores_stored_status(reading_with_status):
    reading = reclassify_reading("hemoglobin", reading_with_status(5.0, ReadingStatus.NORMAL))
    assert reading.status == ReadingStatus.CRITICAL
    assert "anemia" in reading.insight

    # A stored range other than the table's is kept and used
    custom = reclassify_reading("hemoglobin", reading_with_status(13.0, ReadingStatus.HIGH, "13.5-17.5"))
    assert custom.reference_range == "13.5-17.5"
    assert custom.status == ReadingStatus.LOW

    cleared = reclassify_reading("hemoglobin", reading_with_status(13.0, ReadingStatus.LOW))
    assert cleared.status == ReadingStatus.NORMAL
    assert cleared.insight is None


def test_reclassify_reading_keeps_sentinel(reading_with_status):
    sentinel = reading_with_status(0.0, ReadingStatus.MANUAL_ENTRY_NEEDED, "")
    assert reclassify_reading(MANUAL_ENTRY_KEY, sentinel) is sentinel


# ============================================================================
# PARAMETERS
# ============================================================================

class TestExtractParameters:

    def test_sample_report(self, extractor, sample_lab_text):
        fields = extractor.extract(sample_lab_text, today=TODAY)
        params = fields.parameters

        assert params["hemoglobin"].value == 11.2
        assert params["hemoglobin"].status == ReadingStatus.LOW
        assert params["wbc"].value == 7.2
        assert params["wbc"].status == ReadingStatus.NORMAL
        assert params["platelets"].value == 250.0
        assert params["glucose"].value == 95.0
        assert params["cholesterol"].value == 240.0
        assert params["cholesterol"].status == ReadingStatus.HIGH
        assert params["hdl"].value == 38.0
        assert params["hdl"].status == ReadingStatus.LOW

        # not in the text: absent, never zero
        assert "creatinine" not in params
        assert "ldl" not in params

    def test_unit_and_range_come_from_definition(self, extractor):
        params = extractor.extract_parameters("Hemoglobin 13.5 g/dl")
        assert params["hemoglobin"].unit == "g/dL"
        assert params["hemoglobin"].reference_range == "12.0-15.5"

    def test_first_pattern_wins(self, extractor):
        # "Hb" with unit is preferred over a later bare "hemoglobin" value
        params = extractor.extract_parameters("Hb: 9.1 g/dL\nHemoglobin index 44")
        assert params["hemoglobin"].value == 9.1

    def test_first_occurrence_within_a_pattern(self, extractor):
        params = extractor.extract_parameters("Glucose: 88 mg/dL\nGlucose: 140 mg/dL")
        assert params["glucose"].value == 88.0

    def test_glucose_in_mmol_is_not_read_as_mg(self, extractor):
        assert "glucose" not in extractor.extract_parameters("Glucose: 5.5 mmol/L")
        assert "glucose" not in extractor.extract_parameters("Fasting Glucose 10.2 mmol/L")
        assert "glucose" not in extractor.extract_parameters("FBS: 6.1 mmol/L")

        params = extractor.extract_parameters("Glucose: 5.5 mmol/L\nGlucose: 99 mg/dL")
        assert params["glucose"].value == 99.0
        assert params["glucose"].status == ReadingStatus.NORMAL

    def test_hdl_ldl_do_not_count_as_total_cholesterol(self, extractor):
        params = extractor.extract_parameters("HDL Cholesterol: 50\nLDL Cholesterol: 90")
        assert "cholesterol" not in params
        assert params["hdl"].value == 50.0
        assert params["ldl"].value == 90.0

    def test_alternate_labels(self, extractor):
        text = "TLC 8,400\nPLT: 310000\nFBS 102\nSerum Creatinine: 1.4\nBUN: 18"
        params = extractor.extract_parameters(text)
        assert params["wbc"].value == 8.4
        assert params["platelets"].value == 310.0
        assert params["glucose"].value == 102.0
        assert params["glucose"].status == ReadingStatus.HIGH
        assert params["creatinine"].value == 1.4
        assert params["bun"].status == ReadingStatus.NORMAL

    def test_no_parameters(self, extractor):
        fields = extractor.extract("Thank you for visiting our clinic.", today=TODAY)
        assert not fields.has_parameters

    def test_idempotent(self, extractor, sample_lab_text):
        first = extractor.extract(sample_lab_text, today=TODAY)
        second = extractor.extract(sample_lab_text, today=TODAY)
        assert first == second


# ============================================================================
# ANCILLARY FIELDS
# ============================================================================

class TestReportFields:

    def test_sample_report_fields(self, extractor, sample_lab_text):
        fields = extractor.extract(sample_lab_text, today=TODAY)
        assert fields.report_date == date(2024, 3, 5)
        assert fields.patient_name == "Jane Doe"
        assert fields.report_type == "Complete Blood Count"

    def test_defaults(self, extractor):
        fields = extractor.extract("Hemoglobin: 13 g/dL", today=TODAY)
        assert fields.report_date == TODAY
        assert fields.patient_name == UNKNOWN_PATIENT
        assert fields.report_type == DEFAULT_REPORT_TYPE

    def test_labeled_date_preferred(self, extractor):
        text = "DOB: 1980-01-02\nCollected: 2024-02-10"
        assert extractor.extract_date(text, today=TODAY) == date(2024, 2, 10)

    def test_birth_date_is_not_the_report_date(self, extractor):
        text = "Patient: Jane Doe\nBirth Date: 12/01/1980\nCollection Date: 03/05/2024\nHb 13 g/dL"
        assert extractor.extract_date(text, today=TODAY) == date(2024, 3, 5)

    def test_generic_date_label_still_applies(self, extractor):
        assert extractor.extract_date("Date: 2024-04-09", today=TODAY) == date(2024, 4, 9)

    def test_month_name_dates(self, extractor):
        assert extractor.extract_date("Report Date: March 5, 2024") == date(2024, 3, 5)
        assert extractor.extract_date("Date: 5 Mar 2024") == date(2024, 3, 5)

    def test_name_variants(self, extractor):
        assert extractor.extract_patient_name("Patient: John Smith, 45Y") == "John Smith"
        assert extractor.extract_patient_name("Name: Priya Patel\nAge: 30") == "Priya Patel"
        assert extractor.extract_patient_name("Mr. Alan Turing") == "Alan Turing"

    def test_report_types(self, extractor):
        assert extractor.extract_report_type("LIPID PROFILE") == "Lipid Panel"
        assert extractor.extract_report_type("Renal Function Tests") == "Kidney Function Test"


class TestResolveDate:

    def test_ambiguous_numeric_uses_convention(self):
        assert resolve_date("numeric", ("03", "04", "2024"), day_first=False) == date(2024, 3, 4)
        assert resolve_date("numeric", ("03", "04", "2024"), day_first=True) == date(2024, 4, 3)

    def test_unambiguous_numeric(self):
        assert resolve_date("numeric", ("25", "04", "2024"), day_first=False) == date(2024, 4, 25)
        assert resolve_date("numeric", ("04", "25", "2024"), day_first=True) == date(2024, 4, 25)

    def test_invalid(self):
        assert resolve_date("ymd", ("2024", "13", "01"), day_first=False) is None
        assert resolve_date("ymd", ("1800", "01", "01"), day_first=False) is None
