"""Job lifecycle models shared by the scheduler, pipeline and store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field

from src.schemas.evaluation import EvaluationResult


class JobStatus(StrEnum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Legal lifecycle moves. Terminal states have no outgoing edges.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset(
        {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class DocumentType(StrEnum):
    """Tags attached to indexed passages."""

    CV = "cv"
    PROJECT_REPORT = "project_report"
    JOB_DESCRIPTION = "job_description"
    CASE_STUDY = "case_study"
    SCORING_RUBRIC = "scoring_rubric"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    """One evaluation request tracked from submission to a terminal state."""

    id: str
    title: str
    cv_document_id: str
    project_report_id: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    result: EvaluationResult | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class QueueStats:
    """Snapshot of job counts per status plus live scheduler numbers."""

    total: int = 0
    queued: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    running: int = 0
    waiting: int = 0
