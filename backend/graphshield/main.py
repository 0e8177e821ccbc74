"""
main.py – FastAPI application entry point.

Endpoints
---------
GET  /                              – service banner
GET  /health                        – liveness / readiness probe with version info
POST /analyze                       – upload CSV, run the detection core, return JSON
GET  /results/{session_id}          – fetch a stored result
GET  /results/{session_id}/download – stored report as a JSON attachment
GET  /stats                         – totals across analyses in this process

Uploads are size-checked before parsing, and every response carries an
X-Request-ID header (echoed from the request when the caller sends one).
Results live in an in-process ResultStore keyed by session id, so they do not
survive a restart.  CORS origins come from CORS_ORIGINS.
"""
from __future__ import annotations

import logging
import os
import time
import uuid

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, UploadFile, File, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import MAX_FILE_SIZE_BYTES
from .formatter import download_payload, format_output
from .models import AnalysisResult
from .parser import parse_csv, to_transactions
from .pipeline import analyze_transactions
from .store import ResultStore

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s │ %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
log = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()
store = ResultStore()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("GraphShield v%s starting up", __version__)
    yield
    log.info("GraphShield shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
ALLOWED_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

app = FastAPI(
    title="GraphShield",
    description="Detect money-muling rings through transaction graph analysis",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request-ID middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "service": "GraphShield", "version": __version__}


@app.get("/health")
def health():
    """Liveness / readiness probe."""
    return {
        "status": "healthy",
        "version": __version__,
        "uptime_seconds": round(time.monotonic() - _STARTED_AT, 1),
        "max_file_size_mb": MAX_FILE_SIZE_BYTES // (1024 * 1024),
    }


@app.post("/analyze", response_model=AnalysisResult)
async def analyze(file: UploadFile = File(...), detail: bool = False):
    """
    Upload a CSV of financial transactions and receive a forensic analysis.

    Expected CSV columns (or known aliases):
    transaction_id, sender_id, receiver_id, amount, timestamp
    """
    # ---- basic validation ----
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are accepted.")

    file_bytes = await file.read()

    if len(file_bytes) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_FILE_SIZE_BYTES // (1024*1024)} MB.",
        )

    start_time = time.perf_counter()

    # ---- 1. Parse ----
    try:
        df, parse_stats = parse_csv(file_bytes)
        transactions = to_transactions(df)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    if parse_stats.get("warnings"):
        log.warning("Parse warnings for %s: %s", file.filename, parse_stats["warnings"])

    # ---- 2. Graph, detectors, scoring ----
    try:
        report = analyze_transactions(transactions, started_at=start_time)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    # ---- 3. Format, store & return ----
    session_id = str(uuid.uuid4())
    result = format_output(report, session_id, parse_stats, detail=detail)
    store.save(session_id, result, transaction_count=len(transactions))

    log.info(
        "Analysis complete for %s in %.2fs: %d rings, %d flagged accounts",
        file.filename,
        result["summary"]["processing_time_seconds"],
        result["summary"]["fraud_rings_detected"],
        result["summary"]["suspicious_accounts_flagged"],
    )
    return result


def _stored_result(session_id: str) -> dict:
    result = store.get(session_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Detection result not found.")
    return result


@app.get("/results/{session_id}", response_model=AnalysisResult)
def get_result(session_id: str):
    """Return a previously computed result."""
    return _stored_result(session_id)


@app.get("/results/{session_id}/download")
def download_result(session_id: str):
    """Return suspicious_accounts, fraud_rings and summary as a JSON attachment."""
    payload = download_payload(_stored_result(session_id))
    return JSONResponse(
        content=payload,
        headers={
            "Content-Disposition": f"attachment; filename=graphshield-result-{session_id}.json",
        },
    )


@app.get("/stats")
def stats():
    """Totals across every analysis run by this process."""
    return store.stats()
