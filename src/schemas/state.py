"""Graph state definitions using TypedDict.

InvocationState: one model call (prompt in, text out) with its retry policy.
PipelineState: one job moving through the evaluation stages.
"""

from __future__ import annotations

from typing import TypedDict

from src.schemas.evaluation import (
    CVEvaluation,
    EvaluationResult,
    FinalScore,
    ProjectEvaluation,
)
from src.schemas.jobs import Job


class InvocationState(TypedDict, total=False):
    """State for the single-node model-call graph."""

    prompt: str
    temperature: float

    # Stripped, non-empty completion text
    text: str


class PipelineState(TypedDict, total=False):
    """State for the evaluation pipeline graph.

    Flows: start → cv → cv_checkpoint → project → summary → finalize
    """

    # ----- Input -----
    job: Job

    # ----- Stage outputs -----
    cv_evaluation: CVEvaluation
    project_evaluation: ProjectEvaluation
    final_score: FinalScore
    summary: str

    # ----- Output -----
    result: EvaluationResult
