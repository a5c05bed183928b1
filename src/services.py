"""Wiring of the evaluation core with its concrete adapters.

Shared by the API lifespan and the CLI so both run the same stack.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from src.api.queue import JobScheduler
from src.config import ScreeningSettings, Settings, get_screening_settings, get_settings
from src.interfaces import ContextRetriever, JobStore, TextCompletionService
from src.models import ChatCompletionService
from src.persistence.repository import SQLiteJobStore
from src.pipeline.context import ContextAssembler
from src.pipeline.evaluation import EvaluationPipeline
from src.pipeline.invoker import RetryableInvoker
from src.retrieval.qdrant_store import QdrantRetriever
from src.schemas.jobs import JobStatus

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    store: SQLiteJobStore
    retriever: QdrantRetriever
    pipeline: EvaluationPipeline
    scheduler: JobScheduler

    async def aclose(self) -> None:
        await self.scheduler.shutdown()
        await self.retriever.close()
        self.store.close()


def build_pipeline(
    store: JobStore,
    retriever: ContextRetriever,
    completion: TextCompletionService,
    screening: ScreeningSettings | None = None,
) -> EvaluationPipeline:
    screening = screening or get_screening_settings()
    invoker = RetryableInvoker(
        completion,
        retry=screening.retry,
        max_output_tokens=screening.defaults.max_output_tokens,
        timeout=screening.defaults.timeout,
    )
    assembler = ContextAssembler(
        retriever,
        top_n=screening.retrieval.top_n,
        timeout=screening.retrieval.timeout,
    )
    return EvaluationPipeline(store, assembler, invoker, settings=screening)


def build_services(
    settings: Settings | None = None,
    on_finished: Callable[[str, JobStatus | None], None] | None = None,
) -> Services:
    """Open the job store and retriever and assemble pipeline and scheduler."""
    settings = settings or get_settings()
    screening = get_screening_settings()

    store = SQLiteJobStore.open(settings.database_path)
    retriever = QdrantRetriever.from_settings(settings)
    pipeline = build_pipeline(store, retriever, ChatCompletionService(settings=settings), screening)

    max_concurrent = settings.screening_max_concurrent or screening.queue.max_concurrent
    scheduler = JobScheduler(pipeline, store, max_concurrent=max_concurrent, on_finished=on_finished)

    logger.info(
        "services_ready",
        database=settings.database_path,
        qdrant_url=settings.qdrant_url,
        model=screening.defaults.model,
        max_concurrent=max_concurrent,
    )
    return Services(store=store, retriever=retriever, pipeline=pipeline, scheduler=scheduler)
