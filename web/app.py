"""Recon web interface — upload two extracts, get the report, download exports.

Usage:
    uvicorn web.app:app --reload
    # or: python -m web.app
"""

import io
import logging
import shutil
import sys
import tempfile
import threading
import uuid
import zipfile
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, Response

# Ensure project root is on path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
load_dotenv(PROJECT_ROOT / ".env")

from recon.config import ParameterError, load_settings, parse_days, parse_threshold
from recon.export import write_outputs
from recon.ledger import SUPPORTED_FILE_EXTENSIONS, load_ledger
from recon.matcher import ReconResult, reconcile
from recon.posting import CREDIT, DEBIT
from recon.report import build_report
from recon.statement import clean_statement, write_rows_csv

log = logging.getLogger(__name__)

# --- Run state ---

# Each run gets a unique ID. Stores: {run_id: {"run_dir", "export_dir", ...}}
_runs: dict[str, dict[str, Any]] = {}

INDEX_HTML = """\
<!doctype html>
<html>
<head><title>Recon</title></head>
<body>
  <h1>Reconcile credits and debits</h1>
  <form action="/upload" method="post" enctype="multipart/form-data">
    <p>Credits: <input type="file" name="creditFile" required></p>
    <p>Debits: <input type="file" name="debitFile" required></p>
    <p>Days: <input type="number" name="days" min="0" value="{days}"></p>
    <p>Threshold: <input type="text" name="threshold" value="{threshold}"></p>
    <p><button type="submit">Reconcile</button></p>
  </form>
  <h2>Clean a statement workbook</h2>
  <form action="/api/clean" method="post" enctype="multipart/form-data">
    <p><input type="file" name="file" accept=".xlsx" required></p>
    <p><button type="submit">Clean</button></p>
  </form>
</body>
</html>
"""

# --- App ---

app = FastAPI(title="Recon", docs_url=None, redoc_url=None)


@app.get("/", response_class=HTMLResponse)
async def index():
    settings = load_settings()
    return INDEX_HTML.format(days=settings.days, threshold=settings.threshold)


class _ListHandler(logging.Handler):
    """Logging handler that appends one thread's records to a list.

    Requests run in a worker thread each, so records from other threads
    belong to other requests.
    """

    def __init__(self, lines: list[str]):
        super().__init__(level=logging.WARNING)
        self.lines = lines
        self.thread_id = threading.get_ident()

    def emit(self, record: logging.LogRecord) -> None:
        if record.thread == self.thread_id:
            self.lines.append(self.format(record))


def _save_upload(upload: UploadFile, dest_dir: Path, fallback_name: str) -> Path:
    """Copy an upload into dest_dir, keeping only its base name.

    A file name without an extension is read as CSV.
    """
    name = Path(upload.filename or fallback_name).name
    suffix = Path(name).suffix.lower() or ".csv"
    if suffix not in SUPPORTED_FILE_EXTENSIONS:
        raise HTTPException(400, f"Unsupported file extension: {suffix}")
    dest = dest_dir / f"{fallback_name}{suffix}"
    with open(dest, "wb") as out:
        shutil.copyfileobj(upload.file, out)
    return dest


def _resolve_params(days: str, threshold: str) -> tuple[int, Any]:
    """Form values win over configured defaults; blanks fall back."""
    settings = load_settings()
    try:
        d = parse_days(days) if days.strip() else settings.days
    except ParameterError:
        raise HTTPException(400, "Invalid days value")
    try:
        t = parse_threshold(threshold) if threshold.strip() else settings.threshold
    except ParameterError:
        raise HTTPException(400, "Invalid threshold value")
    return d, t


def _reconcile_uploads(
    run_dir: Path,
    credit_file: UploadFile,
    debit_file: UploadFile,
    days: str,
    threshold: str,
) -> tuple[ReconResult, list[str]]:
    """Load both uploads, reconcile, and return (result, captured warnings)."""
    d, t = _resolve_params(days, threshold)
    upload_dir = run_dir / "uploads"
    upload_dir.mkdir(parents=True, exist_ok=True)
    credits_path = _save_upload(credit_file, upload_dir, "credits")
    debits_path = _save_upload(debit_file, upload_dir, "debits")

    warnings: list[str] = []
    handler = _ListHandler(warnings)
    handler.setFormatter(logging.Formatter("%(message)s"))
    recon_logger = logging.getLogger("recon")
    recon_logger.addHandler(handler)
    try:
        date_format = load_settings().date_format
        try:
            credits = load_ledger(credits_path, CREDIT, date_format)
            debits = load_ledger(debits_path, DEBIT, date_format)
        except (OSError, ValueError) as e:
            log.exception("Failed to load uploads in %s", run_dir)
            raise HTTPException(500, f"Error parsing uploaded files: {e}")
        result = reconcile(credits, debits, d, t)
    finally:
        recon_logger.removeHandler(handler)
    return result, warnings


@app.post("/upload", response_class=PlainTextResponse)
async def upload(
    creditFile: UploadFile = File(...),
    debitFile: UploadFile = File(...),
    days: str = Form(default=""),
    threshold: str = Form(default=""),
):
    """Reconcile two uploaded extracts and return the text report."""
    run_dir = Path(tempfile.mkdtemp(prefix="recon_upload_"))
    try:
        result, _ = await run_in_threadpool(
            _reconcile_uploads, run_dir, creditFile, debitFile, days, threshold
        )
    finally:
        shutil.rmtree(run_dir, ignore_errors=True)
    return build_report(
        result.match_groups, result.unmatched_credits, result.unmatched_debits
    )


@app.post("/api/run")
async def start_run(
    creditFile: UploadFile = File(...),
    debitFile: UploadFile = File(...),
    days: str = Form(default=""),
    threshold: str = Form(default=""),
):
    """Reconcile and keep the CSV exports for download under a run_id."""
    run_id = str(uuid.uuid4())[:8]
    run_dir = Path(tempfile.mkdtemp(prefix=f"recon_{run_id}_"))
    export_dir = run_dir / "exports"
    try:
        result, warnings = await run_in_threadpool(
            _reconcile_uploads, run_dir, creditFile, debitFile, days, threshold
        )
        await run_in_threadpool(write_outputs, export_dir, result)
    except Exception:
        shutil.rmtree(run_dir, ignore_errors=True)
        raise

    _runs[run_id] = {
        "run_dir": str(run_dir),
        "export_dir": str(export_dir),
        "summary": result.summary(),
    }

    return {
        "run_id": run_id,
        "report": build_report(
            result.match_groups, result.unmatched_credits, result.unmatched_debits
        ),
        "summary": result.summary(),
        "warnings": warnings,
    }


@app.get("/api/run/{run_id}/exports")
async def list_exports(run_id: str) -> list[dict[str, str]]:
    """List exported files for a run."""
    if run_id not in _runs:
        raise HTTPException(404, "Run not found")
    export_dir = Path(_runs[run_id]["export_dir"])
    if not export_dir.exists():
        return []
    return [{"name": f.name} for f in sorted(export_dir.iterdir()) if f.is_file()]


@app.get("/api/run/{run_id}/download/export/{filename}")
async def download_export(run_id: str, filename: str):
    """Download an exported file."""
    if run_id not in _runs:
        raise HTTPException(404, "Run not found")
    export_dir = Path(_runs[run_id]["export_dir"])
    file_path = export_dir / filename
    if not file_path.exists() or not file_path.resolve().is_relative_to(
        export_dir.resolve()
    ):
        raise HTTPException(404, "File not found")
    return FileResponse(file_path, filename=filename, media_type="text/csv")


def _clean_to_zip(upload: UploadFile) -> bytes:
    """Clean an uploaded statement workbook into a zip of both sides."""
    tmp_dir = Path(tempfile.mkdtemp(prefix="recon_clean_"))
    try:
        workbook_path = tmp_dir / "statement.xlsx"
        with open(workbook_path, "wb") as out:
            shutil.copyfileobj(upload.file, out)
        try:
            sides = clean_statement(workbook_path)
        except ValueError as e:
            raise HTTPException(400, f"Error processing file: {e}")

        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            for side, filename in ((CREDIT, "credits.csv"), (DEBIT, "debits.csv")):
                zf.write(write_rows_csv(sides[side], tmp_dir / filename), filename)
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)
    return buf.getvalue()


@app.post("/api/clean")
async def clean(file: UploadFile = File(...)):
    """Split a statement workbook into credits.csv and debits.csv (zipped)."""
    content = await run_in_threadpool(_clean_to_zip, file)
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": 'attachment; filename="cleaned.zip"'},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web.app:app", host="0.0.0.0", port=8000, reload=True)
