"""FastAPI application for the candidate screening service.

Provides REST API endpoints for submitting evaluations, checking job status
and results, and monitoring system health.

Usage:
    uvicorn src.api.app:app --reload          # Development
    uvicorn src.api.app:app --host 0.0.0.0    # Production (behind reverse proxy)
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware

from src.api.dependencies import (
    check_rate_limit,
    get_retriever,
    get_scheduler,
    get_store,
    init_dependencies,
    reset_dependencies,
)
from src.api.metrics import (
    get_metrics_text,
    record_job_finished,
    record_job_submitted,
    set_active_workers,
    set_queue_depth,
)
from src.api.queue import JobScheduler, SchedulerClosedError
from src.api.rate_limiter import RateLimiter
from src.api.schemas import (
    ErrorResponse,
    EvaluateRequest,
    EvaluationAcceptedResponse,
    HealthResponse,
    JobListResponse,
    JobStatusResponse,
)
from src.config import get_screening_settings, get_settings
from src.logging_config import setup_logging
from src.schemas.jobs import JobStatus
from src.services import build_services

logger = structlog.get_logger(__name__)


def _on_job_finished(job_id: str, status: JobStatus | None) -> None:
    record_job_finished(status.value if status else "unknown")


# ---------------------------------------------------------------------------
# App lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize shared resources on startup, clean up on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level, json_output=os.environ.get("LOG_FORMAT") == "json")

    services = build_services(settings, on_finished=_on_job_finished)
    rate_limit = get_screening_settings().rate_limit
    rate_limiter = (
        RateLimiter(
            requests_per_minute=rate_limit.requests_per_minute,
            requests_per_day=rate_limit.requests_per_day,
        )
        if rate_limit.enabled
        else None
    )
    init_dependencies(services.scheduler, services.store, services.retriever, rate_limiter)
    logger.info(
        "api_started",
        max_concurrent=services.scheduler.max_concurrent,
        rate_limit_rpm=rate_limit.requests_per_minute if rate_limit.enabled else None,
    )

    yield

    await services.aclose()
    reset_dependencies()
    logger.info("api_shutdown")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Candidate Screening Evaluation API",
    description=(
        "REST API for submitting candidate evaluations (CV + project report) "
        "and polling their progress and results."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

# CORS is configurable via the SCREENING_CORS_ORIGINS env var
cors_origins = os.environ.get("SCREENING_CORS_ORIGINS", "").split(",")
cors_origins = [o.strip() for o in cors_origins if o.strip()]
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post(
    "/api/v1/evaluate",
    response_model=EvaluationAcceptedResponse,
    status_code=202,
    responses={
        422: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    dependencies=[Depends(check_rate_limit)],
)
async def evaluate(
    request: EvaluateRequest,
    scheduler: JobScheduler = Depends(get_scheduler),
):
    """Queue an evaluation of a CV and project report for a job title.

    The evaluation runs asynchronously; poll GET /jobs/{id} for progress.
    """
    try:
        job = await scheduler.submit(
            request.job_title, request.cv_document_id, request.project_report_id
        )
    except SchedulerClosedError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    record_job_submitted()
    set_queue_depth(scheduler.pending_count)
    set_active_workers(scheduler.active_count)

    return EvaluationAcceptedResponse(job_id=job.id)


@app.get(
    "/api/v1/jobs/{job_id}",
    response_model=JobStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_job(
    job_id: str,
    scheduler: JobScheduler = Depends(get_scheduler),
):
    """Get the status, progress and (partial) result of a job."""
    job = scheduler.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found.")
    return JobStatusResponse.from_job(job)


@app.get("/api/v1/jobs", response_model=JobListResponse)
async def list_jobs(
    status: JobStatus | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    scheduler: JobScheduler = Depends(get_scheduler),
):
    """List jobs newest first (paginated), optionally filtered by status."""
    jobs, total = scheduler.list_jobs(status=status, page=page, page_size=page_size)
    return JobListResponse(
        jobs=[JobStatusResponse.from_job(job) for job in jobs],
        total=total,
        page=page,
        page_size=page_size,
    )


# ---------------------------------------------------------------------------
# Health & Metrics
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint for load balancers and monitoring."""
    scheduler = get_scheduler()
    store = get_store()
    retriever = get_retriever()

    db_connected = store.ping() if hasattr(store, "ping") else True
    retrieval_connected = await retriever.ping() if hasattr(retriever, "ping") else None

    return HealthResponse(
        status="healthy" if db_connected else "degraded",
        queue_depth=scheduler.pending_count,
        active_workers=scheduler.active_count,
        max_concurrent=scheduler.max_concurrent,
        admission_paused=scheduler.is_paused,
        db_connected=db_connected,
        retrieval_connected=retrieval_connected,
    )


@app.get("/api/v1/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    scheduler = get_scheduler()
    set_queue_depth(scheduler.pending_count)
    set_active_workers(scheduler.active_count)
    return Response(
        content=get_metrics_text(),
        media_type="text/plain; charset=utf-8",
    )
