# ============================================================================
# TEST: Configuration and Setup
# ============================================================================

import pytest
from pydantic import ValidationError


def test_configuration():
    """Test that configuration loads correctly"""
    print("=" * 70)
    print("TEST: Configuration Loading")
    print("=" * 70)

    from lab_ingestion.config import (
        base_settings,
        clinical_settings,
        hardware_settings,
        logging_settings,
        ocr_settings,
    )

    print(f"✓ Configuration loaded successfully")
    print(f"  - Patients dir: {base_settings.PATIENTS_DIR}")
    print(f"  - OCR strategies: {ocr_settings.OCR_STRATEGIES}")
    print(f"  - OCR timeout: {ocr_settings.OCR_TIMEOUT_SECONDS}s")
    print(f"  - Critical factors: {clinical_settings.CRITICAL_LOW_FACTOR} / "
          f"{clinical_settings.CRITICAL_HIGH_FACTOR}")
    print(f"  - Max concurrent docs: {hardware_settings.MAX_CONCURRENT_DOCS}")
    print(f"  - Log level: {logging_settings.LOG_LEVEL}")

    assert ocr_settings.OCR_STRATEGIES
    assert 0 < clinical_settings.CRITICAL_LOW_FACTOR < 1 < clinical_settings.CRITICAL_HIGH_FACTOR
    assert hardware_settings.MAX_CONCURRENT_DOCS >= 1

    print("\n✅ Configuration test PASSED\n")


def test_create_directories(tmp_path):
    from lab_ingestion.config.base_config import BaseSettingsConfig

    settings = BaseSettingsConfig(DATA_DIR=tmp_path / "data", PATIENTS_DIR=tmp_path / "data" / "patients")
    settings.create_directories()

    assert (tmp_path / "data" / "patients").is_dir()
    print(f"✓ Created necessary directories")


def test_environment_override(monkeypatch):
    from lab_ingestion.config.ocr_config import OCRSettings

    monkeypatch.setenv("OCR_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("OCR_STRATEGIES", '["tesseract", "ollama_vision"]')

    settings = OCRSettings()
    assert settings.OCR_TIMEOUT_SECONDS == 5.0
    assert settings.OCR_STRATEGIES == ["tesseract", "ollama_vision"]


def test_validators():
    from lab_ingestion.config.clinical_config import ClinicalSettings
    from lab_ingestion.config.ocr_config import OCRSettings

    with pytest.raises(ValidationError):
        OCRSettings(OCR_STRATEGIES=["paddleocr", "magic"])
    with pytest.raises(ValidationError):
        OCRSettings(OCR_STRATEGIES=[])
    with pytest.raises(ValidationError):
        OCRSettings(OCR_TIMEOUT_SECONDS=0)
    with pytest.raises(ValidationError):
        ClinicalSettings(CRITICAL_HIGH_FACTOR=0.9)

    print(f"✓ Configuration validators working")
