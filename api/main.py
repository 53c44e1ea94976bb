# ============================================================================
# api/main.py
# ============================================================================
"""
FastAPI Backend for the Lab Ingestion Engine

Provides REST API for lab report uploads, patient histories and trends.
The OCR engine pool is loaded once at startup and shared by every request.

Run:
    uvicorn api.main:app --port 8000
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from lab_ingestion import __version__
from lab_ingestion.config import base_settings, logging_settings
from lab_ingestion.core.patient_service import PatientService
from lab_ingestion.core.patient_store import JsonPatientStore, PatientStore
from lab_ingestion.core.pipeline import ReportPipeline, UploadedFile
from lab_ingestion.extractors.ocr_engine_pool import OCREnginePool
from lab_ingestion.processors.manual_entry import build_manual_report
from lab_ingestion.temporal.summary import (
    compare_reports,
    health_score,
    health_verdict,
    summarize_patient,
    trend_series,
)
from lab_ingestion.utils.exceptions import (
    PatientNotFoundError,
    PersistenceError,
    ReportNotFoundError,
    ValidationError,
)
from lab_ingestion.utils.logging import setup_logging

logger = logging.getLogger(__name__)


# ============================================================================
# Models
# ============================================================================

class PatientCreate(BaseModel):
    patient_id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1)
    age: Optional[int] = Field(default=None, ge=0, le=150)
    gender: Optional[str] = None
    relationship: Optional[str] = None


class ManualReportRequest(BaseModel):
    patient_name: str
    report_date: Optional[date] = None
    report_type: Optional[str] = None
    values: Dict[str, Any]


class PatientNameOverride(BaseModel):
    patient_name: str = Field(..., min_length=1)


class ImportRequest(BaseModel):
    document: Dict[str, Any]
    overwrite: bool = False


# ============================================================================
# App factory
# ============================================================================

def create_app(
    pool: Optional[OCREnginePool] = None,
    store: Optional[PatientStore] = None
) -> FastAPI:
    """
    Build the API.

    Args:
        pool: OCR engine pool (default: configured strategies)
        store: patient store (default: JSON files under PATIENTS_DIR)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load OCR engines at startup so the first upload is fast."""
        setup_logging(
            level=logging_settings.LOG_LEVEL,
            log_file=logging_settings.LOG_FILE,
            format_json=logging_settings.LOG_JSON,
        )
        base_settings.create_directories()

        engine_pool = pool or OCREnginePool()
        logger.info("Pre-loading OCR engines...")
        await engine_pool.initialize()

        service = PatientService(store or JsonPatientStore())
        app.state.pool = engine_pool
        app.state.service = service
        app.state.pipeline = ReportPipeline.from_pool(engine_pool, patient_service=service)
        try:
            yield
        finally:
            await engine_pool.close()

    app = FastAPI(
        title="Lab Ingestion Engine API",
        description="Blood report extraction, classification and trend tracking",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PatientNotFoundError)
    async def patient_not_found(request: Request, exc: PatientNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ReportNotFoundError)
    async def report_not_found(request: Request, exc: ReportNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def validation_failed(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(PersistenceError)
    async def persistence_failed(request: Request, exc: PersistenceError):
        logger.error(f"Persistence failure: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc)})


async def _read_uploads(files: List[UploadFile]) -> List[UploadedFile]:
    uploads = []
    for f in files:
        uploads.append(UploadedFile(
            file_name=f.filename or "upload",
            content=await f.read(),
            mime_type=f.content_type,
        ))
    return uploads


# ============================================================================
# Endpoints
# ============================================================================

def _register_routes(app: FastAPI) -> None:

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "ok", "service": "Lab Ingestion Engine API"}

    @app.get("/api/health")
    async def health(request: Request):
        """Health check with OCR engine availability."""
        return {"status": "healthy", "ocr": request.app.state.pool.status()}

    # ------------------------------------------------------------------
    # Processing without persistence
    # ------------------------------------------------------------------
    @app.post("/api/process")
    async def process_files(request: Request, files: List[UploadFile] = File(...)):
        """Extract reports from uploaded files without saving them."""
        uploads = await _read_uploads(files)
        result = await request.app.state.pipeline.process_batch(uploads)
        return result.to_dict()

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------
    @app.get("/api/patients")
    async def list_patients(request: Request):
        return {"patients": await request.app.state.service.list_patients()}

    @app.post("/api/patients", status_code=201)
    async def create_patient(request: Request, body: PatientCreate):
        data = await request.app.state.service.create_patient(
            body.patient_id, body.name, age=body.age, gender=body.gender,
            relationship=body.relationship,
        )
        return data.to_dict()

    @app.get("/api/patients/{patient_id}")
    async def get_patient(request: Request, patient_id: str):
        data = await request.app.state.service.get_patient(patient_id)
        return data.to_dict()

    @app.delete("/api/patients/{patient_id}")
    async def delete_patient(request: Request, patient_id: str):
        await request.app.state.service.delete_patient(patient_id)
        return {"deleted": patient_id}

    @app.get("/api/patients/{patient_id}/export")
    async def export_patient(request: Request, patient_id: str):
        document = await request.app.state.service.export_patient(patient_id)
        return Response(
            content=document,
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{patient_id}.json"'},
        )

    @app.post("/api/patients/import", status_code=201)
    async def import_patient(request: Request, body: ImportRequest):
        data = await request.app.state.service.import_patient(
            json.dumps(body.document), overwrite=body.overwrite
        )
        return data.to_dict()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    @app.post("/api/patients/{patient_id}/reports")
    async def upload_reports(request: Request, patient_id: str, files: List[UploadFile] = File(...)):
        """Process a batch of report files and add them to the patient's history."""
        uploads = await _read_uploads(files)
        result = await request.app.state.pipeline.ingest_batch(patient_id, uploads)
        response = result.to_dict()
        response["patient"] = result.patient.to_dict() if result.patient else None
        return response

    @app.post("/api/patients/{patient_id}/reports/manual", status_code=201)
    async def add_manual_report(request: Request, patient_id: str, body: ManualReportRequest):
        report = build_manual_report(
            body.patient_name,
            body.values,
            report_date=body.report_date,
            report_type=body.report_type,
        )
        await request.app.state.service.add_reports(patient_id, [report])
        return report.to_dict()

    @app.patch("/api/patients/{patient_id}/reports/{report_id}/patient-name")
    async def override_patient_name(
        request: Request, patient_id: str, report_id: str, body: PatientNameOverride
    ):
        report = await request.app.state.service.override_patient_name(
            patient_id, report_id, body.patient_name
        )
        return report.to_dict()

    @app.delete("/api/patients/{patient_id}/reports")
    async def clear_reports(request: Request, patient_id: str):
        """Remove every report for the patient (explicit clear-all)."""
        data = await request.app.state.service.clear_reports(patient_id)
        return data.to_dict()

    # ------------------------------------------------------------------
    # Trends & summaries
    # ------------------------------------------------------------------
    @app.get("/api/patients/{patient_id}/trends/{parameter}")
    async def get_trend(request: Request, patient_id: str, parameter: str):
        data = await request.app.state.service.get_patient(patient_id)
        series = trend_series(data, parameter)
        if series is None:
            raise HTTPException(status_code=404, detail=f"No trend for parameter '{parameter}'")
        return series

    @app.get("/api/patients/{patient_id}/summary")
    async def get_summary(request: Request, patient_id: str):
        data = await request.app.state.service.get_patient(patient_id)
        summary = summarize_patient(data).to_dict()

        real_reports = sorted(
            (r for r in data.reports if not r.requires_manual_entry),
            key=lambda r: r.report_date,
        )
        if real_reports:
            score = health_score(real_reports[-1])
            summary["healthScore"] = score
            summary["healthVerdict"] = health_verdict(score)
        return summary

    @app.get("/api/patients/{patient_id}/compare")
    async def compare_latest(request: Request, patient_id: str):
        """Compare the two most recent reports with extracted values."""
        data = await request.app.state.service.get_patient(patient_id)
        real_reports = sorted(
            (r for r in data.reports if not r.requires_manual_entry),
            key=lambda r: r.report_date,
        )
        if len(real_reports) < 2:
            raise HTTPException(status_code=400, detail="At least two reports are needed to compare")
        return compare_reports(real_reports[-1], real_reports[-2]).to_dict()


app = create_app()
