# =============================
# ========== api.py ==========
# =============================
"""
FastAPI application for the quality-record API.
- GET  /api/data                    : records by lot list (lotId) or shift day range (startDate/endDate)
- GET  /api/unique-article-numbers  : distinct article numbers matching q (autocomplete, cached per query)
- GET  /api/data-by-article         : records by comma list of article numbers
- POST /api/restart                 : proxy a Render service restart
- GET  /health
Missing/malformed filters are not errors: they yield [].
Store failures map to 500 {"error": "Database query failed"}.
"""
from contextlib import asynccontextmanager
from typing import Optional, List
import logging
import os

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from qc_api.config import SETTINGS
from qc_api import db
from qc_api.db import StoreError
from qc_api.queries import fetch_records, unique_article_numbers, records_by_articles
from qc_api.restart import trigger_restart, RestartError
from qc_api.schemas import QualityRecord, ErrorBody, RestartResult, Health
from qc_api.utils import now_local, to_local_str

# --------------------------------------------------------------
# Logging
# --------------------------------------------------------------
def _setup_logging() -> None:
    log_fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    handlers = []
    if SETTINGS.LOG_FILE:
        from logging.handlers import RotatingFileHandler
        handlers.append(RotatingFileHandler(SETTINGS.LOG_FILE, maxBytes=2_000_000, backupCount=3))
    else:
        handlers.append(logging.StreamHandler())
    logging.basicConfig(level=getattr(logging, SETTINGS.LOG_LEVEL, logging.INFO),
                        format=log_fmt, handlers=handlers)

_setup_logging()
logger = logging.getLogger("qc.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    SETTINGS.validate()
    logger.info("QC API starting | backend=%s table=%s", SETTINGS.BACKEND, SETTINGS.TABLE)
    yield
    db.dispose()


app = FastAPI(
    title="Quality Records Service",
    version="1.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Records", "description": "Read-only queries over quality-control records."},
        {"name": "Ops", "description": "Health check and deployment restart."},
    ],
)

# --------------------------------------------------------------
# CORS (open by default; restrict with CORS_ALLOW_ALL=0 + CORS_ALLOW_ORIGINS)
# --------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STORE_ERROR = {500: {"model": ErrorBody, "description": "Database query failed"}}


@app.exception_handler(StoreError)
async def _store_error(request: Request, exc: StoreError):
    logger.error("Store error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Database query failed"})


@app.get("/health", response_model=Health, tags=["Ops"])
def health():
    """Simple health check."""
    return {"status": "ok", "time": to_local_str(now_local()), "backend": SETTINGS.BACKEND}


@app.get(
    "/api/data",
    response_model=List[QualityRecord],
    responses=_STORE_ERROR,
    summary="Records by lot list, or by shift start day range.",
    tags=["Records"],
)
async def get_data(
    lot_id: Optional[str] = Query(
        None, alias="lotId",
        description="Comma list of lot IDs. Wins over the date range.",
        openapi_examples={"two": {"summary": "Two lots", "value": "L1,L2"}},
    ),
    start_date: Optional[str] = Query(
        None, alias="startDate",
        description="'YYYY-MM-DD', inclusive from 00:00:00.",
        openapi_examples={"start": {"summary": "Range start", "value": "2025-09-01"}},
    ),
    end_date: Optional[str] = Query(
        None, alias="endDate",
        description="'YYYY-MM-DD', inclusive to 23:59:59.",
        openapi_examples={"end": {"summary": "Range end", "value": "2025-09-30"}},
    ),
):
    """
    Examples:
    - /api/data?lotId=L1,L2
    - /api/data?startDate=2025-09-01&endDate=2025-09-30
    """
    rows = await run_in_threadpool(fetch_records, lot_id, start_date, end_date)
    logger.info("/api/data | lotId=%r startDate=%r endDate=%r -> %s rows", lot_id, start_date, end_date, len(rows))
    return JSONResponse(rows)


@app.get(
    "/api/unique-article-numbers",
    response_model=List[str],
    responses=_STORE_ERROR,
    summary="Distinct article numbers containing q (case/space-insensitive).",
    tags=["Records"],
)
async def get_unique_article_numbers(
    q: Optional[str] = Query(
        None, description="Substring to search for.",
        openapi_examples={"ab": {"summary": "Contains 'ab'", "value": "ab"}},
    ),
):
    values = await run_in_threadpool(unique_article_numbers, q)
    logger.info("/api/unique-article-numbers | q=%r -> %s values", q, len(values))
    return JSONResponse(values)


@app.get(
    "/api/data-by-article",
    response_model=List[QualityRecord],
    responses=_STORE_ERROR,
    summary="Records for a comma list of article numbers (case/space-insensitive).",
    tags=["Records"],
)
async def get_data_by_article(
    articles: Optional[str] = Query(
        None, description="Comma list of article numbers.",
        openapi_examples={"two": {"summary": "Two articles", "value": "AB 1200-7,cd900"}},
    ),
):
    rows = await run_in_threadpool(records_by_articles, articles)
    logger.info("/api/data-by-article | articles=%r -> %s rows", articles, len(rows))
    return JSONResponse(rows)


@app.post(
    "/api/restart",
    response_model=RestartResult,
    responses={
        500: {"model": ErrorBody, "description": "Upstream unreachable or timed out"},
        503: {"model": ErrorBody, "description": "Restart credentials not configured"},
    },
    summary="Trigger a restart of the Render service.",
    tags=["Ops"],
)
async def post_restart():
    """Upstream non-2xx statuses are relayed with the upstream body as details."""
    try:
        result = await trigger_restart()
    except RestartError as e:
        return JSONResponse(status_code=e.status_code, content=e.payload())
    return JSONResponse(result)


def main() -> None:
    import uvicorn
    SETTINGS.validate()
    uvicorn.run("qc_api.api:app", host=os.getenv("HOST", "0.0.0.0"), port=SETTINGS.PORT, reload=False, workers=1)


if __name__ == "__main__":
    main()
