"""CLI entry point for the candidate screening service.

Usage:
    python run.py --seed-reference                           # Index the reference corpus
    python run.py --index-file cv cv-001 data/cv.txt         # Index a candidate document
    python run.py --cv cv-001 --project proj-001             # Evaluate (title: Backend Engineer)
    python run.py --title "Product Engineer" --cv cv-001 --project proj-001
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from src.config import get_screening_settings, get_settings
from src.logging_config import setup_logging
from src.retrieval.reference_corpus import seed_reference_corpus
from src.schemas.jobs import DocumentType, JobStatus
from src.services import Services, build_services
from src.utils.console import (
    console,
    print_error,
    print_evaluation_result,
    print_header,
    print_info,
    print_job_progress,
)

POLL_INTERVAL = 0.5


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Candidate screening: evaluate a CV and project report against a job.",
    )
    parser.add_argument(
        "--title",
        default="Backend Engineer",
        help="Job title the candidate is evaluated for (default: Backend Engineer).",
    )
    parser.add_argument("--cv", dest="cv_document_id", help="Indexed CV document id.")
    parser.add_argument(
        "--project", dest="project_report_id", help="Indexed project report document id."
    )
    parser.add_argument(
        "--seed-reference",
        action="store_true",
        default=False,
        help="Index the job description, case study brief and scoring rubrics.",
    )
    parser.add_argument(
        "--index-file",
        nargs=3,
        action="append",
        metavar=("TYPE", "ID", "PATH"),
        default=[],
        help=(
            "Index a UTF-8 text file as a candidate document "
            f"(TYPE: {DocumentType.CV.value} or {DocumentType.PROJECT_REPORT.value}). "
            "May be repeated."
        ),
    )
    args = parser.parse_args(argv)

    if bool(args.cv_document_id) != bool(args.project_report_id):
        parser.error("--cv and --project must be given together")
    if not (args.cv_document_id or args.seed_reference or args.index_file):
        parser.error("nothing to do: pass --cv/--project, --seed-reference or --index-file")
    for doc_type, _, _ in args.index_file:
        if doc_type not in (DocumentType.CV, DocumentType.PROJECT_REPORT):
            parser.error(f"--index-file TYPE must be cv or project_report, got {doc_type!r}")
    return args


async def index_files(services: Services, files: list[list[str]]) -> None:
    for doc_type, document_id, path in files:
        text = Path(path).read_text(encoding="utf-8")
        chunks = await services.retriever.index_document(document_id, text, doc_type)
        print_info(f"Indexed {path} as {doc_type} '{document_id}' ({chunks} chunks)")


async def evaluate(services: Services, title: str, cv_document_id: str, project_report_id: str) -> bool:
    """Submit one evaluation, follow its progress and print the result."""
    scheduler = services.scheduler
    job = await scheduler.submit(title, cv_document_id, project_report_id)
    print_info(f"Job {job.id} queued")

    last_seen = (job.status, job.progress)
    while not job.is_terminal:
        await asyncio.sleep(POLL_INTERVAL)
        job = scheduler.get_job(job.id) or job
        if (job.status, job.progress) != last_seen:
            print_job_progress(job)
            last_seen = (job.status, job.progress)

    if job.status is JobStatus.FAILED:
        print_error(job.error or "Evaluation failed")
        return False

    if job.result is not None:
        print_evaluation_result(job.result)
    return True


async def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)
    screening = get_screening_settings()

    services = build_services(settings)
    try:
        if args.seed_reference:
            chunks = await seed_reference_corpus(services.retriever)
            print_info(f"Reference corpus indexed ({chunks} chunks)")

        if args.index_file:
            await index_files(services, args.index_file)

        if args.cv_document_id:
            print_header(args.title, screening, services.scheduler.max_concurrent)
            ok = await evaluate(
                services, args.title, args.cv_document_id, args.project_report_id
            )
            return 0 if ok else 1
        return 0
    except OSError as exc:
        console.print()
        print_error(str(exc))
        return 2
    finally:
        await services.aclose()


def main() -> None:
    raise SystemExit(asyncio.run(run()))


if __name__ == "__main__":
    main()
