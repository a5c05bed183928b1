"""Prompt templates for each LLM stage of the evaluation pipeline.

Scoring prompts ask for a fixed JSON shape whose keys are the rubric
criterion names; scores are re-validated in code after decoding.
"""

# ---------------------------------------------------------------------------
# CV evaluation
# ---------------------------------------------------------------------------

CV_EVALUATION_TASK = """\
You are an expert technical recruiter evaluating a candidate's CV for a {job_title} position.

CANDIDATE CV CONTENT:
{cv_context}

JOB REQUIREMENTS:
{job_context}

EVALUATION CRITERIA:
{rubric_context}

Evaluate the CV on a scale of 1-5 for each parameter and provide detailed reasoning.
Return your response in this exact JSON format:

{{
  "technicalSkillsMatch": {{"score": <number 1-5>, "details": "<explanation of the score>"}},
  "experienceLevel": {{"score": <number 1-5>, "details": "<explanation of the score>"}},
  "relevantAchievements": {{"score": <number 1-5>, "details": "<explanation of the score>"}},
  "culturalFit": {{"score": <number 1-5>, "details": "<explanation of the score>"}}
}}

Be objective and base your evaluation strictly on the provided information.
Do not make assumptions beyond what's stated in the CV.
Return ONLY valid JSON.
"""


# ---------------------------------------------------------------------------
# Project report evaluation
# ---------------------------------------------------------------------------

PROJECT_EVALUATION_TASK = """\
You are an expert software engineer evaluating a backend developer's project report for a case study.

PROJECT REPORT CONTENT:
{project_context}

CASE STUDY REQUIREMENTS:
{case_study_context}

EVALUATION CRITERIA:
{rubric_context}

Evaluate the project on a scale of 1-5 for each parameter and provide detailed reasoning.
Return your response in this exact JSON format:

{{
  "correctness": {{"score": <number 1-5>, "details": "<explanation of the score>"}},
  "codeQuality": {{"score": <number 1-5>, "details": "<explanation of the score>"}},
  "resilience": {{"score": <number 1-5>, "details": "<explanation of the score>"}},
  "documentation": {{"score": <number 1-5>, "details": "<explanation of the score>"}},
  "creativity": {{"score": <number 1-5>, "details": "<explanation of the score>"}}
}}

Be objective and base your evaluation strictly on the provided information.
Focus on technical implementation, architecture decisions, and problem-solving approach.
Return ONLY valid JSON.
"""


# ---------------------------------------------------------------------------
# Final summary
# ---------------------------------------------------------------------------

SUMMARY_TASK = """\
You are summarizing the evaluation of a candidate for a {job_title} position.

CV EVALUATION RESULTS:
{cv_results}

PROJECT EVALUATION RESULTS:
{project_results}

Provide a concise overall summary (3-5 sentences) highlighting:
1. Key strengths of the candidate
2. Areas for improvement or concerns
3. Overall recommendation

Be specific and constructive. Return plain text, not JSON.
"""

SUMMARY_UNAVAILABLE = "Summary unavailable due to a technical issue."


# ---------------------------------------------------------------------------
# Retrieval queries per evaluation facet
# ---------------------------------------------------------------------------

CV_FACETS_QUERY = "skills experience achievements projects"
JOB_REQUIREMENTS_QUERY = "backend developer requirements skills experience"
CV_RUBRIC_QUERY = "CV evaluation scoring rubric technical skills experience"
PROJECT_FACETS_QUERY = "implementation design architecture code"
CASE_STUDY_QUERY = "case study requirements objectives deliverables"
PROJECT_RUBRIC_QUERY = "project evaluation scoring rubric correctness quality"
