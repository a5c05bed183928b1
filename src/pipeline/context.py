"""Context assembly for evaluation prompts.

Retrieval is best-effort: when the candidate's own document has no matching
passages the reference corpus is queried instead, and when the retrieval
service is unavailable a canned per-type text is returned. A retrieval outage
lowers context quality but never fails a job.
"""

from __future__ import annotations

import asyncio
from textwrap import dedent

import structlog

from src.interfaces import ContextRetriever, RetrievalQuery
from src.schemas.jobs import DocumentType

logger = structlog.get_logger(__name__)

PASSAGE_SEPARATOR = "\n\n"

FALLBACK_CONTEXT: dict[str, str] = {
    DocumentType.CV: "CV content available for analysis",
    DocumentType.PROJECT_REPORT: "Project report content available for analysis",
    DocumentType.JOB_DESCRIPTION: dedent(
        """\
        JOB REQUIREMENTS: Product Engineer (Backend)
        - Building new product features using Agile methodology
        - Writing clean, efficient code for product codebase
        - Designing and fine-tuning AI prompts
        - Building LLM chaining flows and RAG systems
        - Handling async background workers and job orchestration
        - Implementing safeguards for 3rd party API failures
        - Experience with backend development, databases, APIs
        """
    ),
    DocumentType.CASE_STUDY: dedent(
        """\
        CASE STUDY: Backend service that screens job applications
        - RESTful endpoints for upload, evaluation and result retrieval
        - Asynchronous evaluation pipeline with a job queue
        - Retrieval-augmented LLM chaining for CV and project scoring
        - Retries, timeouts and graceful degradation for API failures
        """
    ),
    DocumentType.SCORING_RUBRIC: dedent(
        """\
        EVALUATION CRITERIA:
        Technical Skills: 1-5 scale, assess coding ability, tech stack knowledge
        Experience Level: 1-5 scale, assess relevant industry experience
        Achievements: 1-5 scale, assess notable accomplishments and impact
        Quality: 1-5 scale, assess code quality, best practices, documentation
        Correctness: 1-5 scale, assess implementation accuracy and bug-free code
        """
    ),
}

GENERIC_FALLBACK = "Content available for evaluation"


def fallback_context(document_type: str) -> str:
    return FALLBACK_CONTEXT.get(document_type, GENERIC_FALLBACK)


class ContextAssembler:
    """Builds prompt context from the retrieval service.

    Args:
        retriever: Semantic search collaborator.
        top_n: Default number of passages per query.
        timeout: Upper bound per retrieval call, in seconds.
    """

    def __init__(self, retriever: ContextRetriever, top_n: int = 5, timeout: float = 30.0) -> None:
        self._retriever = retriever
        self._top_n = top_n
        self._timeout = timeout

    async def _run(self, query: RetrievalQuery, text: str) -> list[str]:
        return await asyncio.wait_for(
            self._retriever.query(query.scope, text, query.top_n),
            timeout=self._timeout,
        )

    async def retrieve_context(
        self,
        document_id: str | None,
        query_text: str,
        document_type: str,
        top_n: int | None = None,
    ) -> str:
        """Return joined passages for one evaluation facet. Never raises."""
        top_n = self._top_n if top_n is None else top_n
        try:
            if document_id:
                primary = RetrievalQuery(document_id, query_text, document_type, top_n)
                passages = await self._run(primary, f"{document_type} {query_text}")
                if passages:
                    return PASSAGE_SEPARATOR.join(passages[:top_n])

            reference = RetrievalQuery(None, query_text, document_type, top_n)
            passages = await self._run(reference, query_text)
            if not passages:
                logger.info(
                    "context_empty", document_id=document_id, document_type=document_type
                )
            return PASSAGE_SEPARATOR.join(passages[:top_n])
        except Exception:
            logger.warning(
                "context_retrieval_unavailable",
                document_id=document_id,
                document_type=document_type,
                exc_info=True,
            )
            return fallback_context(document_type)
