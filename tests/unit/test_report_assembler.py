# ============================================================================
# FILE: tests/unit/test_report_assembler.py
# ============================================================================
"""
Unit tests for report assembly, manual-entry sentinels and manual reports
"""

from datetime import date

import pytest

from lab_ingestion.constants import DEFAULT_REPORT_TYPE, UNKNOWN_PATIENT
from lab_ingestion.core.models.enums import ReadingStatus
from lab_ingestion.core.models.report import MANUAL_ENTRY_KEY
from lab_ingestion.extractors.document_extractor import DocumentText
from lab_ingestion.extractors.parameter_extractor import ParameterExtractor
from lab_ingestion.processors.manual_entry import build_manual_report
from lab_ingestion.processors.report_assembler import ReportAssembler
from lab_ingestion.utils.exceptions import ValidationError

TODAY = date(2024, 6, 15)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def assembler():
    return ReportAssembler(ParameterExtractor(day_first=False))


def text_document(text):
    return DocumentText(text=text, method="ocr")


# ============================================================================
# ASSEMBLY
# ============================================================================

class TestAssemble:

    def test_full_report(self, assembler, sample_lab_text):
        report = assembler.assemble(text_document(sample_lab_text), "cbc.jpg", "image/jpeg", 1234,
                                    today=TODAY)

        assert not report.requires_manual_entry
        assert report.metadata is None
        assert report.patient_name == "Jane Doe"
        assert report.report_date == date(2024, 3, 5)
        assert report.report_type == "Complete Blood Count"
        assert report.file_name == "cbc.jpg"
        assert report.id
        assert MANUAL_ENTRY_KEY not in report.parameters
        assert report.parameters["hemoglobin"].status == ReadingStatus.LOW

    def test_unique_ids(self, assembler):
        doc = text_document("Hemoglobin: 13.0 g/dL")
        ids = {assembler.assemble(doc, "a.png", today=TODAY).id for _ in range(20)}
        assert len(ids) == 20

    def test_text_without_parameters_gives_sentinel(self, assembler):
        report = assembler.assemble(
            text_document("Thank you for choosing City Labs."), "receipt.png", "image/png", 99,
            today=TODAY,
        )

        assert report.requires_manual_entry
        assert "no lab parameters" in report.metadata.failure_reason
        assert report.metadata.original_file_type == "image/png"
        assert report.metadata.file_size == 99

    def test_failed_extraction_gives_sentinel(self, assembler):
        document = DocumentText.failed("All OCR strategies failed: a: timeout")
        report = assembler.assemble(document, "scan.jpg", "image/jpeg", 10, today=TODAY)

        assert report.requires_manual_entry
        assert report.metadata.failure_reason == "All OCR strategies failed: a: timeout"

    def test_missing_document_gives_sentinel(self, assembler):
        report = assembler.assemble(None, "scan.jpg", today=TODAY)
        assert report.requires_manual_entry

    def test_unexpected_error_gives_sentinel(self, assembler, monkeypatch):
        def explode(text, today=None):
            raise RuntimeError("regex engine on fire")

        monkeypatch.setattr(assembler.extractor, "extract", explode)
        report = assembler.assemble(text_document("Hemoglobin: 13"), "x.png", today=TODAY)

        assert report.requires_manual_entry
        assert "regex engine on fire" in report.metadata.failure_reason


# ============================================================================
# SENTINEL
# ============================================================================

class TestSentinel:

    def test_shape(self, assembler):
        report = assembler.build_sentinel("scan.jpg", "nothing readable", "image/jpeg", 2048,
                                          today=TODAY)

        assert list(report.parameters) == [MANUAL_ENTRY_KEY]
        reading = report.parameters[MANUAL_ENTRY_KEY]
        assert reading.value == 0.0
        assert reading.unit == ""
        assert reading.reference_range == ""
        assert reading.status == ReadingStatus.MANUAL_ENTRY_NEEDED
        assert "nothing readable" in reading.insight

        assert report.patient_name == UNKNOWN_PATIENT
        assert report.report_type == DEFAULT_REPORT_TYPE
        assert report.metadata.processing_failed
        assert report.metadata.requires_manual_entry
        assert report.metadata.file_size == 2048

    def test_date_defaults_to_yesterday(self, assembler):
        report = assembler.build_sentinel("scan.jpg", "x", today=TODAY)
        assert report.report_date == date(2024, 6, 14)

    @pytest.mark.parametrize("file_name,expected", [
        ("cbc_2024-03-05.pdf", date(2024, 3, 5)),
        ("scan_20240305.png", date(2024, 3, 5)),
        ("report.2023_12_31.jpg", date(2023, 12, 31)),
        ("25-04-2024.jpg", date(2024, 4, 25)),
    ])
    def test_date_from_file_name(self, assembler, file_name, expected):
        assert assembler.sentinel_date(file_name, today=TODAY) == expected

    def test_invalid_file_name_date_falls_back(self, assembler):
        assert assembler.sentinel_date("scan_2024-13-45.png", today=TODAY) == date(2024, 6, 14)


# ============================================================================
# MANUAL ENTRY
# ============================================================================

class TestManualEntry:

    def test_build(self):
        report = build_manual_report(
            "  Jane   Doe ",
            {"hemoglobin": "11.0", "wbc": 7200, "glucose": "", "ldl": None},
            report_date=date(2024, 5, 1),
            report_type="Complete Blood Count",
        )

        assert report.patient_name == "Jane Doe"
        assert report.report_date == date(2024, 5, 1)
        assert report.report_type == "Complete Blood Count"
        assert report.file_name == "Manual Entry"
        assert set(report.parameters) == {"hemoglobin", "wbc"}
        assert report.parameters["hemoglobin"].status == ReadingStatus.LOW
        assert report.parameters["wbc"].value == 7.2
        assert not report.requires_manual_entry

    def test_defaults(self):
        report = build_manual_report("Jane", {"glucose": 90})
        assert report.report_date == date.today()
        assert report.report_type == DEFAULT_REPORT_TYPE

    def test_name_required(self):
        with pytest.raises(ValidationError, match="patient name"):
            build_manual_report("   ", {"glucose": 90})

    def test_at_least_one_value(self):
        with pytest.raises(ValidationError, match="at least one"):
            build_manual_report("Jane", {"glucose": "", "hdl": None})

    @pytest.mark.parametrize("values", [
        {"glucose": "abc"},
        {"glucose": -5},
        {"glucose": True},
        {"glucose": float("nan")},
        {"vitamin_z": 3},
    ])
    def test_rejects_bad_values(self, values):
        with pytest.raises(ValidationError):
            build_manual_report("Jane", values)
