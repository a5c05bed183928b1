"""Request/response Pydantic models for the API layer."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.schemas.evaluation import EvaluationResult
from src.schemas.jobs import Job


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class EvaluateRequest(BaseModel):
    """Request body for starting an evaluation."""

    model_config = ConfigDict(populate_by_name=True)

    job_title: str = Field(..., min_length=1, max_length=200, alias="jobTitle")
    cv_document_id: str = Field(..., min_length=1, max_length=200, alias="cvDocumentId")
    project_report_id: str = Field(
        ..., min_length=1, max_length=200, alias="projectReportId"
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class JobStatusResponse(BaseModel):
    """Response for job status queries."""

    job_id: str
    title: str
    status: str = Field(description="queued | processing | completed | failed")
    progress: int = 0
    cv_document_id: str
    project_report_id: str
    result: EvaluationResult | None = None
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job) -> JobStatusResponse:
        return cls(
            job_id=job.id,
            title=job.title,
            status=job.status.value,
            progress=job.progress,
            cv_document_id=job.cv_document_id,
            project_report_id=job.project_report_id,
            result=job.result,
            error=job.error,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class JobListResponse(BaseModel):
    """Paginated list of jobs."""

    jobs: list[JobStatusResponse]
    total: int
    page: int
    page_size: int


class EvaluationAcceptedResponse(BaseModel):
    """Response after successfully submitting an evaluation."""

    job_id: str
    status: str = "queued"
    message: str = "Evaluation queued. Use job_id to track progress."


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    queue_depth: int = 0
    active_workers: int = 0
    max_concurrent: int = 3
    admission_paused: bool = False
    db_connected: bool = True
    retrieval_connected: bool | None = None
    version: str = "0.1.0"


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str | None = None
