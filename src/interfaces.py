"""Collaborator contracts consumed by the evaluation core.

Concrete adapters live in src.persistence, src.retrieval and src.models;
tests substitute in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from src.schemas.evaluation import EvaluationResult
from src.schemas.jobs import Job, JobStatus


@dataclass(frozen=True)
class RetrievalScope:
    """Restricts a query to one document or, with no id, to the reference corpus."""

    document_type: str
    document_id: str | None = None

    @property
    def is_reference(self) -> bool:
        return not self.document_id


@dataclass(frozen=True)
class RetrievalQuery:
    document_id: str | None
    text: str
    document_type: str
    top_n: int = 5

    @property
    def scope(self) -> RetrievalScope:
        return RetrievalScope(document_type=self.document_type, document_id=self.document_id)


class JobStore(Protocol):
    def create_job(
        self, job_id: str, title: str, cv_document_id: str, project_report_id: str
    ) -> Job: ...

    def get_job(self, job_id: str) -> Job | None: ...

    def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        progress: int | None = None,
        result: EvaluationResult | None = None,
        error: str | None = None,
    ) -> None: ...

    def list_jobs(self, status: JobStatus | None = None) -> list[Job]: ...


class ContextRetriever(Protocol):
    async def query(self, scope: RetrievalScope, text: str, top_n: int) -> list[str]: ...


class TextCompletionService(Protocol):
    async def generate(
        self, prompt: str, temperature: float, max_output_tokens: int
    ) -> str: ...
