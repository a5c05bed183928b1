"""Evaluation pipeline: the per-job stage graph.

Stages run as nodes of a linear langgraph ``StateGraph``, strictly in order,
each writing its progress checkpoint before the next begins:

    10  started
    20  CV evaluation (context → scoring call → decode)
    50  partial result with the CV evaluation persisted
    60  project evaluation
    80  summary generation
    100 final result persisted, job completed

Malformed model output and a failed summary degrade to defaults. A scoring
call that cannot get any response, or any unexpected error, fails the job.
"""

from __future__ import annotations

import json
import re

import structlog
from langchain_core.utils.json import parse_json_markdown
from langgraph.constants import END, START
from langgraph.graph import StateGraph
from langgraph.graph.state import CompiledStateGraph

from src.config import ScreeningSettings, get_screening_settings
from src.errors import EvaluationStageError
from src.interfaces import JobStore
from src.pipeline.context import ContextAssembler
from src.pipeline.invoker import RetryableInvoker
from src.pipeline.scoring import compute_final_score
from src.prompts.templates import (
    CASE_STUDY_QUERY,
    CV_EVALUATION_TASK,
    CV_FACETS_QUERY,
    CV_RUBRIC_QUERY,
    JOB_REQUIREMENTS_QUERY,
    PROJECT_EVALUATION_TASK,
    PROJECT_FACETS_QUERY,
    PROJECT_RUBRIC_QUERY,
    SUMMARY_TASK,
    SUMMARY_UNAVAILABLE,
)
from src.schemas.evaluation import (
    CVEvaluation,
    EvaluationResult,
    ProjectEvaluation,
    RubricEvaluation,
)
from src.schemas.jobs import DocumentType, Job, JobStatus
from src.schemas.stages import STAGE_PROGRESS, Stage
from src.schemas.state import PipelineState

logger = structlog.get_logger(__name__)


def decode_evaluation(text: str, schema: type[RubricEvaluation]) -> RubricEvaluation:
    """Strictly decode a model response into ``schema``.

    Surrounding code fences are stripped. Anything that is not a JSON object
    yields the schema's neutral evaluation instead of an error.
    """
    try:
        data = parse_json_markdown(text, parser=json.loads)
        return schema.model_validate(data)
    except ValueError:
        logger.warning(
            "evaluation_parse_failed", schema=schema.__name__, raw_response=text[:500]
        )
        return schema.neutral()


def criterion_label(name: str) -> str:
    words = re.sub(r"(?<!^)(?=[A-Z])", " ", name)
    return words[:1].upper() + words[1:]


def format_criteria(evaluation: RubricEvaluation) -> str:
    return "\n".join(
        f"- {criterion_label(name)}: {c.score}/5 - {c.details}"
        for name, c in evaluation.criteria().items()
    )


class EvaluationPipeline:
    """Drives one job through the evaluation stages.

    Args:
        store: Job store; the pipeline is the only writer for a running job.
        assembler: Context assembler for retrieval-grounded prompts.
        invoker: Retryable invoker for model calls.
        settings: Stage temperatures and attempt budgets.
    """

    def __init__(
        self,
        store: JobStore,
        assembler: ContextAssembler,
        invoker: RetryableInvoker,
        settings: ScreeningSettings | None = None,
    ) -> None:
        self._store = store
        self._assembler = assembler
        self._invoker = invoker
        self._settings = settings or get_screening_settings()
        self._graph = self._build_graph()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def evaluate_cv(self, cv_document_id: str, job_title: str) -> CVEvaluation:
        cv_context = await self._assembler.retrieve_context(
            cv_document_id, CV_FACETS_QUERY, DocumentType.CV
        )
        job_context = await self._assembler.retrieve_context(
            None, JOB_REQUIREMENTS_QUERY, DocumentType.JOB_DESCRIPTION
        )
        rubric_context = await self._assembler.retrieve_context(
            None, CV_RUBRIC_QUERY, DocumentType.SCORING_RUBRIC
        )
        prompt = CV_EVALUATION_TASK.format(
            job_title=job_title,
            cv_context=cv_context,
            job_context=job_context,
            rubric_context=rubric_context,
        )
        stage = self._settings.stages.cv
        response = await self._invoker.invoke(prompt, stage.max_attempts, stage.temperature)
        if not response.succeeded:
            raise EvaluationStageError("CV evaluation", response.error or "unknown error")
        return decode_evaluation(response.text, CVEvaluation)  # type: ignore[return-value]

    async def evaluate_project(self, project_report_id: str) -> ProjectEvaluation:
        project_context = await self._assembler.retrieve_context(
            project_report_id, PROJECT_FACETS_QUERY, DocumentType.PROJECT_REPORT
        )
        case_study_context = await self._assembler.retrieve_context(
            None, CASE_STUDY_QUERY, DocumentType.CASE_STUDY
        )
        rubric_context = await self._assembler.retrieve_context(
            None, PROJECT_RUBRIC_QUERY, DocumentType.SCORING_RUBRIC
        )
        prompt = PROJECT_EVALUATION_TASK.format(
            project_context=project_context,
            case_study_context=case_study_context,
            rubric_context=rubric_context,
        )
        stage = self._settings.stages.project
        response = await self._invoker.invoke(prompt, stage.max_attempts, stage.temperature)
        if not response.succeeded:
            raise EvaluationStageError("Project evaluation", response.error or "unknown error")
        return decode_evaluation(response.text, ProjectEvaluation)  # type: ignore[return-value]

    async def generate_summary(
        self, job_title: str, cv: CVEvaluation, project: ProjectEvaluation
    ) -> str:
        prompt = SUMMARY_TASK.format(
            job_title=job_title,
            cv_results=format_criteria(cv),
            project_results=format_criteria(project),
        )
        stage = self._settings.stages.summary
        response = await self._invoker.invoke(prompt, stage.max_attempts, stage.temperature)
        if not response.succeeded:
            logger.warning("summary_unavailable", error=response.error)
            return SUMMARY_UNAVAILABLE
        return response.text

    # ------------------------------------------------------------------
    # Graph nodes
    # ------------------------------------------------------------------

    def _checkpoint(
        self, job_id: str, stage: Stage, result: EvaluationResult | None = None
    ) -> None:
        progress = STAGE_PROGRESS[stage]
        status = JobStatus.COMPLETED if stage is Stage.FINALIZED else JobStatus.PROCESSING
        self._store.update_job_status(job_id, status, progress=progress, result=result)
        logger.info(
            "checkpoint_written",
            job_id=job_id,
            stage=stage.value,
            progress=progress,
            status=status.value,
        )

    async def _start_node(self, state: PipelineState) -> dict:
        self._checkpoint(state["job"].id, Stage.STARTED)
        return {}

    async def _cv_node(self, state: PipelineState) -> dict:
        job = state["job"]
        self._checkpoint(job.id, Stage.CV_EVALUATION)
        return {"cv_evaluation": await self.evaluate_cv(job.cv_document_id, job.title)}

    async def _cv_checkpoint_node(self, state: PipelineState) -> dict:
        partial = EvaluationResult(cv_evaluation=state["cv_evaluation"])
        self._checkpoint(state["job"].id, Stage.CV_CHECKPOINT, result=partial)
        return {}

    async def _project_node(self, state: PipelineState) -> dict:
        job = state["job"]
        self._checkpoint(job.id, Stage.PROJECT_EVALUATION)
        project_evaluation = await self.evaluate_project(job.project_report_id)
        return {
            "project_evaluation": project_evaluation,
            "final_score": compute_final_score(state["cv_evaluation"], project_evaluation),
        }

    async def _summary_node(self, state: PipelineState) -> dict:
        job = state["job"]
        self._checkpoint(job.id, Stage.SUMMARY)
        summary = await self.generate_summary(
            job.title, state["cv_evaluation"], state["project_evaluation"]
        )
        return {"summary": summary}

    async def _finalize_node(self, state: PipelineState) -> dict:
        result = EvaluationResult(
            cv_evaluation=state["cv_evaluation"],
            project_evaluation=state["project_evaluation"],
            overall_summary=state["summary"],
            final_score=state["final_score"],
        )
        self._checkpoint(state["job"].id, Stage.FINALIZED, result=result)
        return {"result": result}

    def _build_graph(self) -> CompiledStateGraph:
        """Linear stage graph; model-call retries live in the invoker."""
        builder = StateGraph(PipelineState)

        # ---- Nodes ----
        builder.add_node("start", self._start_node)
        builder.add_node("cv", self._cv_node)
        builder.add_node("cv_checkpoint", self._cv_checkpoint_node)
        builder.add_node("project", self._project_node)
        builder.add_node("summary", self._summary_node)
        builder.add_node("finalize", self._finalize_node)

        # ---- Edges ----
        builder.add_edge(START, "start")
        builder.add_edge("start", "cv")
        builder.add_edge("cv", "cv_checkpoint")
        builder.add_edge("cv_checkpoint", "project")
        builder.add_edge("project", "summary")
        builder.add_edge("summary", "finalize")
        builder.add_edge("finalize", END)

        return builder.compile()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def _mark_failed(self, job_id: str, message: str) -> None:
        try:
            self._store.update_job_status(job_id, JobStatus.FAILED, error=message)
        except Exception:
            logger.error("job_fail_write_failed", job_id=job_id, exc_info=True)

    async def process(self, job: Job) -> EvaluationResult:
        """Run every stage for ``job`` and return the final result.

        On any error the job is recorded as failed and the error re-raised.
        """
        logger.info("job_processing_started", job_id=job.id, title=job.title)
        try:
            state = await self._graph.ainvoke({"job": job})
            result: EvaluationResult = state["result"]
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error("job_failed", job_id=job.id, error=message, exc_info=True)
            self._mark_failed(job.id, message)
            raise

        logger.info(
            "job_completed",
            job_id=job.id,
            overall_score=result.final_score.overall_score,
        )
        return result
