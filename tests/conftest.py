# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import asyncio
from datetime import date, datetime
from io import BytesIO
from typing import Optional

import pytest
from PIL import Image, ImageDraw

from lab_ingestion.core.models.enums import ReadingStatus
from lab_ingestion.core.models.report import Reading, Report
from lab_ingestion.core.patient_service import PatientService
from lab_ingestion.core.patient_store import JsonPatientStore
from lab_ingestion.extractors.ocr_backends import OCRBackend
from lab_ingestion.extractors.ocr_engine_pool import OCREnginePool
from lab_ingestion.utils.exceptions import OCRBackendUnavailable


class FakeOCRBackend(OCRBackend):
    """OCR backend with scripted output, errors, delays or load failures."""

    def __init__(
        self,
        name: str,
        text: str = "",
        error: Optional[Exception] = None,
        delay: float = 0.0,
        load_error: Optional[str] = None
    ):
        self.name = name
        super().__init__()
        self.text = text
        self.error = error
        self.delay = delay
        self.load_error = load_error
        self.calls = 0
        self.load_calls = 0
        self.closed = False

    async def load(self) -> None:
        self.load_calls += 1
        if self.load_error:
            raise OCRBackendUnavailable(self.name, self.load_error)
        self._loaded = True

    async def recognize(self, image) -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text

    async def close(self) -> None:
        self.closed = True

    def _load_sync(self) -> None:
        pass

    def _recognize_sync(self, image) -> str:
        return self.text


@pytest.fixture
def fake_backend():
    """Factory for scripted OCR backends."""
    return FakeOCRBackend


@pytest.fixture
def sample_lab_text():
    """Sample blood report text as it comes out of OCR"""
    return """
    City Diagnostics Laboratory
    Patient Name: Jane Doe    Age: 42
    Collected: 2024-03-05

    COMPLETE BLOOD COUNT (CBC)

    Test                Result      Reference Range
    ------------------------------------------------
    Hemoglobin: 11.2 g/dL           12.0-15.5
    WBC: 7,200 /uL                  4500-11000
    Platelets: 250,000 /uL          150000-450000
    Glucose: 95 mg/dL               70-100
    Total Cholesterol: 240 mg/dL    <200
    HDL Cholesterol: 38 mg/dL       >40
    """


@pytest.fixture
def make_report():
    """Factory for classified reports with given values."""
    from lab_ingestion.constants.parameter_specs import PARAMETER_DEFINITIONS
    from lab_ingestion.extractors.parameter_extractor import build_reading

    def _make(report_date: date, report_id: Optional[str] = None, **values) -> Report:
        return Report(
            id=report_id or f"r-{report_date.isoformat()}",
            patient_name="Jane Doe",
            report_date=report_date,
            upload_date=datetime(2024, 6, 1, 12, 0, 0),
            report_type="Complete Blood Count",
            file_name=f"{report_date.isoformat()}.pdf",
            parameters={
                name: build_reading(PARAMETER_DEFINITIONS[name], float(value))
                for name, value in values.items()
            },
        )

    return _make


@pytest.fixture
def reading_with_status():
    """Reading with an explicit status (bypasses classification)."""
    def _make(value: float, status: ReadingStatus, reference_range: str = "12.0-15.5") -> Reading:
        return Reading(value=value, unit="g/dL", reference_range=reference_range, status=status)
    return _make


def _pdf_bytes(pages):
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfgen import canvas

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    for lines in pages:
        y = 750
        for line in lines:
            if line:
                c.drawString(72, y, line)
            y -= 20
        c.showPage()
    c.save()
    return buffer.getvalue()


@pytest.fixture
def make_pdf():
    """Build a PDF (bytes) with a text layer; one list of lines per page."""
    return _pdf_bytes


@pytest.fixture
def lab_pdf_bytes():
    return _pdf_bytes([[
        "Sample Lab Report",
        "Patient Name: John Smith",
        "Report Date: 2024-02-10",
        "Lipid Panel",
        "Total Cholesterol: 185 mg/dL",
        "Triglycerides: 160 mg/dL",
        "HDL Cholesterol: 52 mg/dL",
        "LDL Cholesterol: 110 mg/dL",
    ]])


@pytest.fixture
def blank_pdf_bytes():
    """PDF whose only page has no text layer."""
    return _pdf_bytes([[]])


@pytest.fixture
def png_bytes():
    image = Image.new("RGB", (400, 200), "white")
    draw = ImageDraw.Draw(image)
    draw.text((20, 40), "Hemoglobin: 13.2 g/dL", fill="black")
    draw.text((20, 80), "Glucose: 92 mg/dL", fill="black")
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes():
    image = Image.new("RGB", (300, 150), (230, 230, 230))
    buffer = BytesIO()
    image.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def ocr_pool(fake_backend):
    """Pool whose primary engine returns a usable blood report."""
    backend = fake_backend(
        "primary",
        text="Patient Name: Jane Doe\nDate: 2024-03-05\nHemoglobin: 13.2 g/dL\nGlucose: 92 mg/dL",
    )
    return OCREnginePool(strategy_names=["primary"], backends={"primary": backend}, timeout=1.0)


@pytest.fixture
def patient_store(tmp_path):
    return JsonPatientStore(tmp_path / "patients")


@pytest.fixture
def patient_service(patient_store):
    return PatientService(patient_store)
