# ============================================================================
# FILE: tests/unit/test_patient_service.py
# ============================================================================
"""
Unit tests for the JSON patient store and the patient aggregate service
"""

import asyncio
import json
from datetime import date

import pytest
import pytest_asyncio

from lab_ingestion.core.models.enums import AlertKind, ReadingStatus
from lab_ingestion.core.patient_service import PatientService
from lab_ingestion.core.patient_store import JsonPatientStore, is_valid_patient_id
from lab_ingestion.processors.report_assembler import ReportAssembler
from lab_ingestion.utils.exceptions import (
    PatientNotFoundError,
    PersistenceError,
    ReportNotFoundError,
    ValidationError,
)


# ============================================================================
# FIXTURES
# ============================================================================

class FailingStore(JsonPatientStore):
    """Store whose writes always fail."""

    async def save_patient_data(self, data):
        return False


@pytest_asyncio.fixture
async def jane(patient_service):
    return await patient_service.create_patient("jane", "Jane Doe", age=42)


# ============================================================================
# STORE
# ============================================================================

class TestJsonPatientStore:

    @pytest.mark.parametrize("patient_id,valid", [
        ("jane", True),
        ("patient_01.a-b", True),
        ("", False),
        ("../etc/passwd", False),
        ("a/b", False),
        (".hidden", False),
    ])
    def test_patient_id_validation(self, patient_id, valid):
        assert is_valid_patient_id(patient_id) is valid

    @pytest.mark.asyncio
    async def test_missing_patient_is_none(self, patient_store):
        assert await patient_store.load_patient_data("nobody") is None

    @pytest.mark.asyncio
    async def test_unreadable_document_raises_persistence_error(self, patient_store, patient_service):
        (patient_store.data_dir / "bad.json").write_text("{truncated", encoding="utf-8")
        (patient_store.data_dir / "listed.json").write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(PersistenceError, match="bad"):
            await patient_store.load_patient_data("bad")
        with pytest.raises(PersistenceError, match="listed"):
            await patient_service.get_patient("listed")

    @pytest.mark.asyncio
    async def test_save_is_whole_document(self, patient_store, patient_service, jane):
        path = patient_store.data_dir / "jane.json"
        document = json.loads(path.read_text(encoding="utf-8"))

        assert document["patientId"] == "jane"
        assert document["reports"] == []
        assert set(document) >= {"reports", "trends", "metadata"}
        # no temp files left behind
        assert [p.name for p in patient_store.data_dir.iterdir()] == ["jane.json"]

    @pytest.mark.asyncio
    async def test_list_and_delete(self, patient_store, patient_service, jane):
        await patient_service.create_patient("john", "John Roe")
        assert await patient_store.list_patient_ids() == ["jane", "john"]

        assert await patient_store.delete_patient_data("john")
        assert not await patient_store.delete_patient_data("john")
        assert await patient_store.list_patient_ids() == ["jane"]


# ============================================================================
# SERVICE
# ============================================================================

class TestPatientService:

    @pytest.mark.asyncio
    async def test_create_and_get(self, patient_service, jane):
        loaded = await patient_service.get_patient("jane")
        assert loaded == jane
        assert loaded.age == 42
        assert loaded.metadata.total_reports == 0

    @pytest.mark.asyncio
    async def test_create_rejects_duplicates_and_bad_input(self, patient_service, jane):
        with pytest.raises(ValidationError, match="already exists"):
            await patient_service.create_patient("jane", "Jane Again")
        with pytest.raises(ValidationError):
            await patient_service.create_patient("new", "   ")
        with pytest.raises(ValidationError):
            await patient_service.create_patient("../x", "X")

    @pytest.mark.asyncio
    async def test_get_missing(self, patient_service):
        with pytest.raises(PatientNotFoundError):
            await patient_service.get_patient("ghost")

    @pytest.mark.asyncio
    async def test_get_or_create(self, patient_service):
        created = await patient_service.get_or_create_patient("sam")
        assert created.name == "sam"
        again = await patient_service.get_or_create_patient("sam", "Other")
        assert again.name == "sam"

    @pytest.mark.asyncio
    async def test_add_reports_recomputes_trends(self, patient_service, jane, make_report):
        await patient_service.add_reports("jane", [make_report(date(2024, 1, 1), hemoglobin=12.0)])
        data = await patient_service.add_reports(
            "jane", [make_report(date(2024, 3, 1), hemoglobin=13.5)]
        )

        assert data.metadata.total_reports == 2
        assert data.metadata.created == jane.metadata.created
        trend = data.trends.parameter_trends["hemoglobin"]
        assert [p.value for p in trend.values] == [12.0, 13.5]
        assert trend.change_rate == 12.5

        # persisted exactly as returned
        assert await patient_service.get_patient("jane") == data

    @pytest.mark.asyncio
    async def test_add_reports_missing_patient(self, patient_service, make_report):
        with pytest.raises(PatientNotFoundError):
            await patient_service.add_reports("ghost", [make_report(date(2024, 1, 1), glucose=90)])

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_serialized(self, patient_service, jane, make_report):
        batches = [
            [make_report(date(2024, 1, d), report_id=f"r{d}", glucose=90 + d)]
            for d in range(1, 9)
        ]
        await asyncio.gather(*(patient_service.add_reports("jane", b) for b in batches))

        data = await patient_service.get_patient("jane")
        assert len(data.reports) == 8
        assert len(data.trends.parameter_trends["glucose"].values) == 8

    @pytest.mark.asyncio
    async def test_sentinel_stored_but_not_trended(self, patient_service, jane, make_report):
        sentinel = ReportAssembler().build_sentinel("scan.jpg", "unreadable")
        data = await patient_service.add_reports(
            "jane", [make_report(date(2024, 1, 1), glucose=90), sentinel]
        )

        assert len(data.reports) == 2
        assert set(data.trends.parameter_trends) == {"glucose"}

    @pytest.mark.asyncio
    async def test_override_patient_name(self, patient_service, jane, make_report):
        report = make_report(date(2024, 1, 1), report_id="r1", glucose=90)
        await patient_service.add_reports("jane", [report])

        renamed = await patient_service.override_patient_name("jane", "r1", "  Jane   Q. Doe ")
        assert renamed.patient_name == "Jane Q. Doe"

        stored = (await patient_service.get_patient("jane")).find_report("r1")
        assert stored.patient_name == "Jane Q. Doe"
        assert stored.parameters == report.parameters

    @pytest.mark.asyncio
    async def test_override_errors(self, patient_service, jane):
        with pytest.raises(ReportNotFoundError):
            await patient_service.override_patient_name("jane", "nope", "Name")
        with pytest.raises(ValidationError):
            await patient_service.override_patient_name("jane", "nope", "  ")

    @pytest.mark.asyncio
    async def test_clear_reports(self, patient_service, jane, make_report):
        await patient_service.add_reports("jane", [make_report(date(2024, 1, 1), glucose=90)])
        cleared = await patient_service.clear_reports("jane")

        assert cleared.reports == []
        assert cleared.trends.parameter_trends == {}
        assert cleared.name == "Jane Doe"

    @pytest.mark.asyncio
    async def test_delete_patient(self, patient_service, jane):
        assert await patient_service.delete_patient("jane")
        with pytest.raises(PatientNotFoundError):
            await patient_service.delete_patient("jane")

    @pytest.mark.asyncio
    async def test_export_import(self, patient_service, jane, make_report):
        await patient_service.add_reports("jane", [
            make_report(date(2024, 1, 1), hemoglobin=11.0),
            make_report(date(2024, 2, 1), hemoglobin=13.0),
        ])
        document = await patient_service.export_patient("jane")
        original = await patient_service.get_patient("jane")

        with pytest.raises(ValidationError, match="already exists"):
            await patient_service.import_patient(document)

        await patient_service.delete_patient("jane")
        imported = await patient_service.import_patient(document)

        assert imported.reports == original.reports
        assert imported.trends.parameter_trends == original.trends.parameter_trends

    @pytest.mark.asyncio
    async def test_import_recomputes_trends(self, patient_service, jane, make_report):
        await patient_service.add_reports("jane", [make_report(date(2024, 1, 1), glucose=90)])
        document = json.loads(await patient_service.export_patient("jane"))
        document["trends"] = {"lastUpdated": None, "parameterTrends": {}}

        imported = await patient_service.import_patient(json.dumps(document), overwrite=True)
        assert set(imported.trends.parameter_trends) == {"glucose"}

    @pytest.mark.asyncio
    async def test_import_reclassifies_readings(self, patient_service, jane, make_report):
        await patient_service.add_reports("jane", [
            make_report(date(2024, 1, 1), hemoglobin=13.0),
            make_report(date(2024, 2, 1), hemoglobin=13.0),
        ])
        document = json.loads(await patient_service.export_patient("jane"))
        reading = document["reports"][1]["parameters"]["hemoglobin"]
        reading["value"] = 5.0
        reading["status"] = "normal"

        imported = await patient_service.import_patient(json.dumps(document), overwrite=True)

        stored = imported.reports[1].parameters["hemoglobin"]
        assert stored.status == ReadingStatus.CRITICAL
        assert stored.insight is not None
        trend = imported.trends.parameter_trends["hemoglobin"]
        assert [a.kind for a in trend.alerts] == [AlertKind.CRITICAL]

    @pytest.mark.asyncio
    async def test_import_invalid_document(self, patient_service):
        with pytest.raises(ValidationError):
            await patient_service.import_patient("{not json")
        with pytest.raises(ValidationError):
            await patient_service.import_patient(json.dumps({"name": "no id"}))

    @pytest.mark.asyncio
    async def test_failed_save_raises(self, tmp_path, make_report):
        service = PatientService(FailingStore(tmp_path))
        with pytest.raises(PersistenceError):
            await service.create_patient("jane", "Jane Doe")
