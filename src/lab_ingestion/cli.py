# ============================================================================
# src/lab_ingestion/cli.py
# ============================================================================
"""
Command line interface.

Usage:
    lab-ingest process report1.pdf scan.jpg       # print extracted reports as JSON
    lab-ingest ingest PATIENT_ID report1.pdf ...  # add reports to a patient's history
    lab-ingest trends PATIENT_ID                  # print trends and summary
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from .config import base_settings, logging_settings
from .core.patient_service import PatientService
from .core.patient_store import JsonPatientStore
from .core.pipeline import ProgressUpdate, ReportPipeline, UploadedFile
from .extractors.ocr_engine_pool import OCREnginePool
from .temporal.summary import summarize_patient
from .utils.exceptions import LabIngestionError
from .utils.logging import setup_logging


def _print_progress(update: ProgressUpdate) -> None:
    print(f"[{update.current}/{update.total}] {update.current_file}", file=sys.stderr)


def _load_uploads(paths: List[str]) -> List[UploadedFile]:
    uploads = []
    for raw in paths:
        path = Path(raw)
        if not path.is_file():
            raise LabIngestionError(f"File not found: {path}")
        uploads.append(UploadedFile.from_path(path))
    return uploads


def _service(data_dir: Optional[str]) -> PatientService:
    return PatientService(JsonPatientStore(Path(data_dir) if data_dir else None))


async def _run_process(args: argparse.Namespace) -> int:
    uploads = _load_uploads(args.files)
    pool = OCREnginePool()
    await pool.initialize()
    try:
        pipeline = ReportPipeline.from_pool(pool)
        result = await pipeline.process_batch(uploads, progress_callback=_print_progress)
    finally:
        await pool.close()

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0 if result.extracted_count else 1


async def _run_ingest(args: argparse.Namespace) -> int:
    uploads = _load_uploads(args.files)
    service = _service(args.data_dir)
    await service.get_or_create_patient(args.patient_id, args.name)

    pool = OCREnginePool()
    await pool.initialize()
    try:
        pipeline = ReportPipeline.from_pool(pool, patient_service=service)
        result = await pipeline.ingest_batch(args.patient_id, uploads, progress_callback=_print_progress)
    finally:
        await pool.close()

    print(f"\n{'='*60}")
    print(f"Ingested {result.total} files for {args.patient_id}")
    print(f"{'='*60}")
    print(f"  Extracted:            {result.extracted_count}")
    print(f"  Needs manual entry:   {result.manual_entry_count}")
    print(f"  Skipped (unsupported): {result.skipped_count}")
    for outcome in result.outcomes:
        detail = f" - {outcome.reason}" if outcome.reason else ""
        print(f"  {outcome.status.value:>12}  {outcome.file_name}{detail}")
    print(f"{'='*60}\n")
    return 0


async def _run_trends(args: argparse.Namespace) -> int:
    service = _service(args.data_dir)
    patient = await service.get_patient(args.patient_id)
    output = {
        "patientId": patient.patient_id,
        "summary": summarize_patient(patient).to_dict(),
        "trends": patient.trends.to_dict(),
    }
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lab-ingest",
        description="Extract blood test values from lab reports and track trends",
    )
    parser.add_argument("--log-level", default=logging_settings.LOG_LEVEL,
                        help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--data-dir", default=None,
                        help=f"Patient store directory (default: {base_settings.PATIENTS_DIR})")

    sub = parser.add_subparsers(dest="command", required=True)

    process = sub.add_parser("process", help="Extract reports and print them as JSON")
    process.add_argument("files", nargs="+", help="Report files (PDF, JPEG, PNG)")

    ingest = sub.add_parser("ingest", help="Add reports to a patient's history")
    ingest.add_argument("patient_id")
    ingest.add_argument("files", nargs="+", help="Report files (PDF, JPEG, PNG)")
    ingest.add_argument("--name", default=None, help="Patient name when creating a new patient")

    trends = sub.add_parser("trends", help="Print a patient's trends and summary")
    trends.add_argument("patient_id", nargs="?", default=base_settings.DEFAULT_PATIENT_ID)

    return parser


COMMANDS = {
    "process": _run_process,
    "ingest": _run_ingest,
    "trends": _run_trends,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        level=args.log_level,
        log_file=logging_settings.LOG_FILE,
        format_json=logging_settings.LOG_JSON,
    )

    try:
        return asyncio.run(COMMANDS[args.command](args))
    except LabIngestionError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
