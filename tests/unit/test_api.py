# ============================================================================
# FILE: tests/unit/test_api.py
# ============================================================================
"""
Unit tests for the REST API (FastAPI TestClient, fake OCR engine, temp store)
"""

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from lab_ingestion.config import base_settings


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def client(ocr_pool, patient_store, tmp_path, monkeypatch):
    monkeypatch.setattr(base_settings, "DATA_DIR", tmp_path / "data")
    monkeypatch.setattr(base_settings, "PATIENTS_DIR", tmp_path / "data" / "patients")

    with TestClient(create_app(pool=ocr_pool, store=patient_store)) as test_client:
        yield test_client


@pytest.fixture
def jane(client):
    response = client.post("/api/patients", json={"patient_id": "jane", "name": "Jane Doe", "age": 42})
    assert response.status_code == 201
    return response.json()


# ============================================================================
# HEALTH & PROCESSING
# ============================================================================

def test_health(client):
    assert client.get("/").json()["status"] == "ok"

    body = client.get("/api/health").json()
    assert body["status"] == "healthy"
    assert body["ocr"]["initialized"] is True
    assert body["ocr"]["available"] == ["primary"]


def test_process_without_saving(client, png_bytes, patient_store):
    response = client.post(
        "/api/process",
        files=[
            ("files", ("photo.png", png_bytes, "image/png")),
            ("files", ("notes.txt", b"hello", "text/plain")),
        ],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["extracted"] == 1
    assert body["skipped"] == 1
    assert body["outcomes"][0]["report"]["parameters"]["hemoglobin"]["value"] == 13.2
    assert client.get("/api/patients").json() == {"patients": []}


# ============================================================================
# PATIENTS
# ============================================================================

def test_patient_crud(client, jane):
    assert jane["patientId"] == "jane"
    assert client.get("/api/patients").json() == {"patients": ["jane"]}
    assert client.get("/api/patients/jane").json()["name"] == "Jane Doe"

    duplicate = client.post("/api/patients", json={"patient_id": "jane", "name": "Jane"})
    assert duplicate.status_code == 422

    assert client.delete("/api/patients/jane").json() == {"deleted": "jane"}
    assert client.get("/api/patients/jane").status_code == 404


def test_unknown_patient(client):
    response = client.get("/api/patients/ghost/summary")
    assert response.status_code == 404
    assert "ghost" in response.json()["detail"]


def test_export_import(client, jane):
    exported = client.get("/api/patients/jane/export")
    assert exported.status_code == 200
    assert "attachment" in exported.headers["content-disposition"]

    document = exported.json()
    client.delete("/api/patients/jane")

    imported = client.post("/api/patients/import", json={"document": document})
    assert imported.status_code == 201
    assert imported.json()["name"] == "Jane Doe"


# ============================================================================
# REPORTS
# ============================================================================

def test_upload_reports(client, jane, lab_pdf_bytes):
    response = client.post(
        "/api/patients/jane/reports",
        files=[
            ("files", ("lipids.pdf", lab_pdf_bytes, "application/pdf")),
            ("files", ("scan_2024-01-20.jpg", b"broken", "image/jpeg")),
        ],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["extracted"] == 1
    assert body["manualEntry"] == 1
    assert body["patient"]["metadata"]["totalReports"] == 2
    assert "ldl" in body["patient"]["trends"]["parameterTrends"]


def test_manual_report_and_trends(client, jane):
    for day, value in (("2024-01-01", "12.0"), ("2024-03-01", "13.5")):
        response = client.post("/api/patients/jane/reports/manual", json={
            "patient_name": "Jane Doe",
            "report_date": day,
            "values": {"hemoglobin": value},
        })
        assert response.status_code == 201

    trend = client.get("/api/patients/jane/trends/hemoglobin").json()
    assert [p["value"] for p in trend["data"]] == [12.0, 13.5]
    assert trend["trendDirection"] == "increasing"
    assert trend["changeRate"] == 12.5

    assert client.get("/api/patients/jane/trends/ldl").status_code == 404

    summary = client.get("/api/patients/jane/summary").json()
    assert summary["totalReports"] == 2
    assert summary["healthScore"] == 100

    comparison = client.get("/api/patients/jane/compare").json()
    assert comparison["timeframe"] == "2 months"
    assert comparison["parameters"][0]["significance"] == "Moderate"


def test_manual_report_validation(client, jane):
    response = client.post("/api/patients/jane/reports/manual", json={
        "patient_name": "Jane Doe",
        "values": {"hemoglobin": ""},
    })
    assert response.status_code == 422
    assert "at least one" in response.json()["detail"]


def test_compare_needs_two_reports(client, jane):
    assert client.get("/api/patients/jane/compare").status_code == 400


def test_override_name_and_clear(client, jane):
    report = client.post("/api/patients/jane/reports/manual", json={
        "patient_name": "J. Doe",
        "values": {"glucose": 95},
    }).json()

    renamed = client.patch(
        f"/api/patients/jane/reports/{report['id']}/patient-name",
        json={"patient_name": "Jane Doe"},
    )
    assert renamed.status_code == 200
    assert renamed.json()["patientName"] == "Jane Doe"

    missing = client.patch("/api/patients/jane/reports/nope/patient-name",
                           json={"patient_name": "Jane"})
    assert missing.status_code == 404

    cleared = client.delete("/api/patients/jane/reports").json()
    assert cleared["reports"] == []
    assert cleared["trends"]["parameterTrends"] == {}


def test_unreadable_patient_document(client, patient_store):
    (patient_store.data_dir / "broken.json").write_text("{truncated", encoding="utf-8")

    response = client.get("/api/patients/broken/summary")
    assert response.status_code == 500
    assert "broken" in response.json()["detail"]
