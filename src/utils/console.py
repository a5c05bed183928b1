"""Rich console output for the screening CLI.

Shows the startup banner, stage progress while a job runs, and the final
evaluation as per-criterion tables with the weighted scores.
"""

from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from src.config import ScreeningSettings
from src.pipeline.evaluation import criterion_label
from src.schemas.evaluation import CV_WEIGHTS, PROJECT_WEIGHTS, EvaluationResult, RubricEvaluation
from src.schemas.jobs import Job, JobStatus
from src.schemas.stages import STAGE_PROGRESS

console = Console()

STAGE_LABELS = {
    "started": "Started",
    "cv_evaluation": "CV Evaluation",
    "cv_checkpoint": "CV Result Saved",
    "project_evaluation": "Project Evaluation",
    "summary": "Summary",
    "finalized": "Finalized",
}

_STAGE_BY_PROGRESS = {progress: stage for stage, progress in STAGE_PROGRESS.items()}

STATUS_STYLES = {
    JobStatus.QUEUED: "dim",
    JobStatus.PROCESSING: "bright_yellow",
    JobStatus.COMPLETED: "bold green",
    JobStatus.FAILED: "bold red",
}


def score_style(score: float) -> str:
    if score >= 4:
        return "green"
    if score >= 3:
        return "yellow"
    return "red"


def print_header(title: str, settings: ScreeningSettings, max_concurrent: int) -> None:
    """Print the startup banner with model and retry settings."""
    stages = settings.stages
    retry_text = (
        f"cv={stages.cv.max_attempts}, project={stages.project.max_attempts}, "
        f"summary={stages.summary.max_attempts} attempts "
        f"(first backoff {settings.retry.initial_interval}s)"
    )

    console.print()
    console.print(
        Panel(
            f"[bold]Candidate Screening Evaluation[/bold]\n\n"
            f"  Job Title: [cyan]{title}[/cyan]\n"
            f"  Model: [cyan]{settings.defaults.model}[/cyan]\n"
            f"  Max Concurrent Jobs: [cyan]{max_concurrent}[/cyan]\n"
            f"  Retry: [cyan]{retry_text}[/cyan]",
            border_style="bright_blue",
            padding=(1, 2),
        )
    )
    console.print()


def print_job_progress(job: Job) -> None:
    """Print a stage transition indicator for a job."""
    stage = _STAGE_BY_PROGRESS.get(job.progress)
    label = STAGE_LABELS.get(stage or "", f"{job.progress}%")
    style = STATUS_STYLES.get(job.status, "white")
    console.print(
        f"  [{style}]→ {job.status.value}[/{style}] "
        f"[bold bright_yellow]{label}[/bold bright_yellow] [dim]({job.progress}%)[/dim]"
    )


def _criteria_table(title: str, evaluation: RubricEvaluation, weights: dict[str, float]) -> Table:
    table = Table(title=title, show_lines=True, expand=True)
    table.add_column("Criterion", style="bold")
    table.add_column("Weight", justify="right")
    table.add_column("Score", justify="center")
    table.add_column("Details")
    for name, criterion in evaluation.criteria().items():
        style = score_style(criterion.score)
        table.add_row(
            criterion_label(name),
            f"{weights.get(name, 0):.0%}",
            f"[{style}]{criterion.score}/5[/{style}]",
            criterion.details,
        )
    return table


def print_evaluation_result(result: EvaluationResult) -> None:
    """Print the CV and project tables, the scores and the summary."""
    console.print()
    console.print(_criteria_table("CV Evaluation", result.cv_evaluation, CV_WEIGHTS))
    if result.project_evaluation is not None:
        console.print(
            _criteria_table("Project Evaluation", result.project_evaluation, PROJECT_WEIGHTS)
        )

    score = result.final_score
    console.print(
        Panel(
            f"  CV Score: [{score_style(score.cv_score)}]{score.cv_score:.2f}[/]\n"
            f"  Project Score: [{score_style(score.project_score)}]{score.project_score:.2f}[/]\n"
            f"  Overall Score: [bold {score_style(score.overall_score)}]"
            f"{score.overall_score:.2f}[/]",
            title="[bold green]Final Score[/bold green]",
            border_style="green",
            padding=(1, 2),
        )
    )
    if result.overall_summary:
        console.print(
            Panel(
                Markdown(result.overall_summary),
                title="[bold]Overall Summary[/bold]",
                border_style="bright_white",
                padding=(1, 2),
            )
        )
    console.print()


def print_info(message: str) -> None:
    """Print an informational message."""
    console.print(f"  [dim]{message}[/dim]")


def print_error(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
