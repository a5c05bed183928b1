"""Reference documents every evaluation is grounded on.

The job description, case study brief and the two scoring rubrics are
indexed once into the reference collection and queried by document type.
"""

from __future__ import annotations

from dataclasses import dataclass
from textwrap import dedent

import structlog

from src.schemas.jobs import DocumentType

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReferenceDocument:
    key: str
    document_type: DocumentType
    text: str


JOB_DESCRIPTION = dedent(
    """\
    JOB DESCRIPTION: Product Engineer (Backend)

    We're looking for dedicated engineers who write code they're proud of and
    who are eager to keep scaling and improving complex systems, including
    those powered by AI.

    KEY RESPONSIBILITIES:
    - Building new product features alongside frontend engineers and product managers using Agile methodology
    - Addressing issues to ensure apps are robust and the codebase is clean
    - Designing and fine-tuning AI prompts that align with product requirements
    - Building LLM chaining flows where output from one model is passed to another
    - Implementing Retrieval-Augmented Generation (RAG) with vector databases
    - Handling long-running AI processes with job orchestration and async background workers
    - Designing safeguards for managing failures from 3rd party APIs
    - Writing reusable, testable, and efficient code
    - Strengthening test coverage

    REQUIRED SKILLS:
    - Backend languages and frameworks (Node.js, Django, Rails)
    - Database management (MySQL, PostgreSQL, MongoDB)
    - RESTful APIs
    - Security compliance
    - Cloud technologies (AWS, Google Cloud, Azure)
    - User authentication and authorization
    - Scalable application design principles
    - Creating database schemas
    - Implementing automated testing platforms
    - Familiarity with LLM APIs, embeddings, vector databases and prompt design
    """
)

CASE_STUDY_BRIEF = dedent(
    """\
    CASE STUDY BRIEF: Backend Developer Evaluation System

    OBJECTIVE:
    Build a backend service that automates the initial screening of a job
    application. The service receives a candidate's CV and a project report,
    evaluates them against a job description and case study brief, and
    produces a structured, AI-generated evaluation report.

    CORE REQUIREMENTS:
    1. Backend service with RESTful API endpoints
    2. File upload handling for CV and project report (PDF)
    3. Asynchronous AI evaluation pipeline
    4. RAG (context retrieval) implementation
    5. LLM chaining for CV and project evaluation
    6. Job queue system for long-running processes
    7. Error handling and resilience mechanisms
    8. Standardized scoring parameters

    TECHNICAL EVALUATION CRITERIA:
    - Correctness (prompt design, chaining, RAG, error handling)
    - Code Quality (clean, modular, testable)
    - Resilience (handles failures, retries)
    - Documentation (clear README, explanation of trade-offs)
    - Creativity / Bonus (optional improvements)
    """
)

CV_SCORING_RUBRIC = dedent(
    """\
    CV MATCH EVALUATION RUBRIC (1-5 scale)

    1. TECHNICAL SKILLS MATCH (Weight: 40%)
    - Alignment with job requirements (backend, databases, APIs, cloud, AI/LLM)
    - 1 = Irrelevant skills, 2 = Few overlaps, 3 = Partial match,
      4 = Strong match, 5 = Excellent match + AI/LLM exposure

    2. EXPERIENCE LEVEL (Weight: 25%)
    - Years of experience and project complexity
    - 1 = <1 yr / trivial projects, 2 = 1-2 yrs, 3 = 2-3 yrs with mid-scale projects,
      4 = 3-4 yrs solid track record, 5 = 5+ yrs / high-impact projects

    3. RELEVANT ACHIEVEMENTS (Weight: 20%)
    - Impact of past work (scaling, performance, adoption)
    - 1 = No clear achievements, 2 = Minimal improvements, 3 = Some measurable outcomes,
      4 = Significant contributions, 5 = Major measurable impact

    4. CULTURAL / COLLABORATION FIT (Weight: 15%)
    - Communication, learning mindset, teamwork/leadership
    - 1 = Not demonstrated, 2 = Minimal, 3 = Average, 4 = Good,
      5 = Excellent and well-demonstrated
    """
)

PROJECT_SCORING_RUBRIC = dedent(
    """\
    PROJECT DELIVERABLE EVALUATION RUBRIC (1-5 scale)

    1. CORRECTNESS - PROMPT & CHAINING (Weight: 30%)
    - Implements prompt design, LLM chaining, RAG context injection
    - 1 = Not implemented, 2 = Minimal attempt, 3 = Works partially,
      4 = Works correctly, 5 = Fully correct + thoughtful

    2. CODE QUALITY & STRUCTURE (Weight: 25%)
    - Clean, modular, reusable, tested
    - 1 = Poor, 2 = Some structure, 3 = Decent modularity,
      4 = Good structure + some tests, 5 = Excellent quality + strong tests

    3. RESILIENCE & ERROR HANDLING (Weight: 20%)
    - Handles long jobs, retries, randomness, API failures
    - 1 = Missing, 2 = Minimal, 3 = Partial handling,
      4 = Solid handling, 5 = Robust, production-ready

    4. DOCUMENTATION & EXPLANATION (Weight: 15%)
    - README clarity, setup instructions, trade-off explanations
    - 1 = Missing, 2 = Minimal, 3 = Adequate, 4 = Clear, 5 = Excellent + insightful

    5. CREATIVITY / BONUS (Weight: 10%)
    - Extra features beyond requirements
    - 1 = None, 2 = Very basic, 3 = Useful extras,
      4 = Strong enhancements, 5 = Outstanding creativity
    """
)

REFERENCE_DOCUMENTS: tuple[ReferenceDocument, ...] = (
    ReferenceDocument("ref-job-description", DocumentType.JOB_DESCRIPTION, JOB_DESCRIPTION),
    ReferenceDocument("ref-case-study", DocumentType.CASE_STUDY, CASE_STUDY_BRIEF),
    ReferenceDocument("ref-cv-rubric", DocumentType.SCORING_RUBRIC, CV_SCORING_RUBRIC),
    ReferenceDocument("ref-project-rubric", DocumentType.SCORING_RUBRIC, PROJECT_SCORING_RUBRIC),
)


async def seed_reference_corpus(retriever) -> int:  # noqa: ANN001
    """Index every reference document. Returns the total chunk count.

    ``retriever`` needs an ``index_document(document_id, text, document_type, key=...)``
    coroutine, as QdrantRetriever provides. Point ids are derived from each
    document's key, so seeding twice overwrites rather than duplicates.
    """
    total = 0
    for doc in REFERENCE_DOCUMENTS:
        total += await retriever.index_document(None, doc.text, doc.document_type, key=doc.key)
    logger.info("reference_corpus_seeded", documents=len(REFERENCE_DOCUMENTS), chunks=total)
    return total
