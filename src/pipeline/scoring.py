"""Deterministic weighted scoring for rubric evaluations.

Model output only supplies per-criterion ratings; the aggregate scores are
computed here so they are reproducible.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from src.schemas.evaluation import (
    CV_WEIGHTS,
    PROJECT_WEIGHTS,
    CVEvaluation,
    FinalScore,
    ProjectEvaluation,
    coerce_score,
)


def _raw_score(entry: Any) -> Any:
    if entry is None:
        return None
    if isinstance(entry, Mapping):
        return entry.get("score")
    return getattr(entry, "score", entry)


def weighted_score(evaluation: Mapping[str, Any], weights: Mapping[str, float]) -> float:
    """Weighted mean of criterion scores clamped to the rubric range.

    Every criterion in ``weights`` contributes; a criterion missing from
    ``evaluation`` (or with an unparseable score) counts as the neutral 3.
    Returns 0.0 when the weights sum to zero.
    """
    total_weight = sum(weights.values())
    if total_weight <= 0:
        return 0.0
    weighted = sum(
        coerce_score(_raw_score(evaluation.get(name))) * weight
        for name, weight in weights.items()
    )
    return weighted / total_weight


def compute_final_score(cv: CVEvaluation, project: ProjectEvaluation) -> FinalScore:
    """CV, project and overall scores, each rounded to 2 decimals."""
    cv_score = weighted_score(cv.criteria(), CV_WEIGHTS)
    project_score = weighted_score(project.criteria(), PROJECT_WEIGHTS)
    overall = (cv_score + project_score) / 2
    return FinalScore(
        cv_score=round(cv_score, 2),
        project_score=round(project_score, 2),
        overall_score=round(overall, 2),
    )
