"""Job scheduler: admission control for evaluation pipeline runs.

Tier 1: In-process asyncio tasks with a FIFO ready queue and a fixed
concurrency bound. Jobs are admitted when a slot frees, without polling.

For Tier 2 (distributed), swap to a task broker behind the same
JobScheduler interface.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from collections.abc import Callable
from typing import Protocol

import structlog

from src.interfaces import JobStore
from src.schemas.evaluation import EvaluationResult
from src.schemas.jobs import Job, JobStatus, QueueStats

logger = structlog.get_logger(__name__)

SHUTDOWN_ERROR = "Evaluation interrupted by shutdown"


class Pipeline(Protocol):
    async def process(self, job: Job) -> EvaluationResult: ...


class SchedulerClosedError(RuntimeError):
    """Raised when submitting to a scheduler that has been shut down."""


class JobScheduler:
    """Bounded-concurrency scheduler for evaluation jobs.

    Manages pipeline runs as asyncio tasks with:
    - At most ``max_concurrent`` jobs executing at once
    - FIFO admission among queued jobs
    - Immediate admission of the next job when one finishes
    - Each job admitted at most once (only ``queued`` jobs are started)
    - Admission can be paused and resumed without touching running jobs

    Admission (``_admit``) and release (``_on_task_done``) run on the event
    loop without awaiting, so each is one critical section and the bound is
    exact even under concurrent submissions.

    Args:
        pipeline: Object whose ``process(job)`` runs one evaluation.
        store: Job store used to create and read jobs.
        max_concurrent: Maximum concurrent pipeline executions.
        on_finished: Optional callback invoked with (job_id, final status).
    """

    def __init__(
        self,
        pipeline: Pipeline,
        store: JobStore,
        max_concurrent: int = 3,
        on_finished: Callable[[str, JobStatus | None], None] | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._pipeline = pipeline
        self._store = store
        self._max_concurrent = max_concurrent
        self._on_finished = on_finished
        self._ready: deque[str] = deque()
        self._running: dict[str, asyncio.Task] = {}
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self._paused = False

    # ------------------------------------------------------------------
    # Submission and admission
    # ------------------------------------------------------------------

    async def submit(self, title: str, cv_document_id: str, project_report_id: str) -> Job:
        """Create a queued job and return it immediately.

        The evaluation runs in the background once a slot is free.
        """
        if self._closed:
            raise SchedulerClosedError("Scheduler is shut down")

        job_id = str(uuid.uuid4())
        job = self._store.create_job(job_id, title, cv_document_id, project_report_id)
        self._ready.append(job_id)
        self._idle.clear()

        logger.info(
            "job_submitted",
            job_id=job_id,
            title=title,
            queued=len(self._ready),
            running=len(self._running),
        )
        self._admit()
        return job

    def _admit(self) -> None:
        """Start queued jobs while capacity remains and admission is not paused."""
        while (
            not self._closed
            and not self._paused
            and self._ready
            and len(self._running) < self._max_concurrent
        ):
            job_id = self._ready.popleft()
            job = self._store.get_job(job_id)
            if job is None or job.status is not JobStatus.QUEUED:
                logger.warning(
                    "job_admission_skipped",
                    job_id=job_id,
                    status=job.status.value if job else None,
                )
                continue

            task = asyncio.create_task(self._execute(job), name=f"evaluation-{job_id}")
            self._running[job_id] = task
            task.add_done_callback(lambda t, job_id=job_id: self._on_task_done(job_id, t))
            logger.info("job_admitted", job_id=job_id, running=len(self._running))

        if not self._running and not self._ready:
            self._idle.set()

    async def _execute(self, job: Job) -> None:
        """Run one job; the pipeline records success or failure itself."""
        try:
            await self._pipeline.process(job)
        except asyncio.CancelledError:
            logger.info("job_cancelled", job_id=job.id)
            self._fail_unfinished(job.id)
            raise
        except Exception as exc:
            logger.warning("job_execution_failed", job_id=job.id, error=str(exc))

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        """Release the slot and admit the next queued job."""
        self._running.pop(job_id, None)
        try:
            if self._on_finished is not None:
                job = self._store.get_job(job_id)
                self._on_finished(job_id, job.status if job else None)
        except Exception:
            logger.warning("job_finished_callback_failed", job_id=job_id, exc_info=True)
        finally:
            self._admit()

    # ------------------------------------------------------------------
    # Admission control
    # ------------------------------------------------------------------

    def pause(self) -> None:
        """Hold queued jobs; running jobs are left to finish."""
        if not self._paused:
            self._paused = True
            logger.info("scheduler_paused", queued=len(self._ready), running=len(self._running))

    def resume(self) -> None:
        """Resume admission and start queued jobs up to the concurrency bound."""
        if self._paused:
            self._paused = False
            logger.info("scheduler_resumed", queued=len(self._ready))
            self._admit()

    @property
    def is_paused(self) -> bool:
        return self._paused

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> Job | None:
        """Get a job by ID."""
        return self._store.get_job(job_id)

    def list_jobs(
        self,
        status: JobStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Job], int]:
        """List jobs newest first, optionally filtered by status. Returns (jobs, total)."""
        jobs = self._store.list_jobs(status)
        total = len(jobs)
        start = (page - 1) * page_size
        return jobs[start : start + page_size], total

    def stats(self) -> QueueStats:
        jobs = self._store.list_jobs()
        counts = {status: 0 for status in JobStatus}
        for job in jobs:
            counts[job.status] += 1
        return QueueStats(
            total=len(jobs),
            queued=counts[JobStatus.QUEUED],
            processing=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            failed=counts[JobStatus.FAILED],
            running=self.active_count,
            waiting=self.pending_count,
        )

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def pending_count(self) -> int:
        """Number of jobs waiting for a slot."""
        return len(self._ready)

    @property
    def active_count(self) -> int:
        """Number of currently executing jobs."""
        return len(self._running)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def join(self) -> None:
        """Wait until no job is queued or running."""
        await self._idle.wait()

    async def shutdown(self) -> None:
        """Stop admitting and cancel running jobs.

        Jobs cancelled mid-run are failed. Jobs still waiting for a slot are
        left ``queued`` in the store.
        """
        self._closed = True
        waiting = list(self._ready)
        self._ready.clear()
        running = list(self._running.items())
        for _, task in running:
            task.cancel()
        await asyncio.gather(*(task for _, task in running), return_exceptions=True)

        for job_id, _ in running:
            self._fail_unfinished(job_id)
        self._idle.set()
        logger.info("scheduler_shutdown", cancelled=len(running), left_queued=len(waiting))

    def _fail_unfinished(self, job_id: str) -> None:
        job = self._store.get_job(job_id)
        if job is not None and job.status is JobStatus.PROCESSING:
            self._store.update_job_status(job_id, JobStatus.FAILED, error=SHUTDOWN_ERROR)
