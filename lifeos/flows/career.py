"""
Career flows: job ideas from a resume, application emails, tailored resumes
and resume parsing.
"""

from __future__ import annotations

import re

from lifeos.appdata.models import Education, Project, ResumeData, WorkExperience
from lifeos.flows.context import to_prompt_json
from lifeos.flows.schemas import (
    ApplicationEmailInput,
    ApplicationEmailOutput,
    JobSpecificResumeInput,
    JobSpecificResumeOutput,
    JobSuggestionsInput,
    JobSuggestionsOutput,
    ParsedResume,
    ParseResumeInput,
)
from lifeos.llm.client import LLMError, generate_structured
from lifeos.llm.errors import FlowInputError, execute_flow
from lifeos.llm.prompts import render_prompt
from lifeos.observability.logging import get_logger

logger = get_logger(__name__)

_RANGE_SEPARATOR = re.compile(r"\s*(?:-|–|—|\bto\b)\s*", re.IGNORECASE)
_CURRENT_WORDS = {"present", "current", "now", "ongoing"}


def split_date_range(dates: str | None) -> tuple[str | None, str | None, bool]:
    """
    Split "Oct 2021 - Present" into (start, end, is_current).

    Missing parts are None, as the resume builder stores them. A single
    date is treated as the start. An end of Present/Current/Now becomes a
    None end with ``is_current`` set.
    """
    parts = [p.strip() for p in _RANGE_SEPARATOR.split((dates or "").strip(), maxsplit=1) if p.strip()]
    if not parts:
        return None, None, False
    start = parts[0]
    end = parts[1] if len(parts) > 1 else None
    if end is not None and end.lower() in _CURRENT_WORDS:
        return start, None, True
    return start, end, False


def to_resume_data(parsed: ParsedResume) -> ResumeData:
    work = []
    for item in parsed.work_experience:
        start, end, current = split_date_range(item.dates)
        work.append(
            WorkExperience(
                company=item.company,
                location=item.location,
                role=item.role,
                start_date=start,
                end_date=end,
                is_current=current,
                description_points=item.description_points,
            )
        )

    projects = []
    for item in parsed.projects:
        start, end, current = split_date_range(item.dates)
        projects.append(
            Project(
                name=item.name,
                description=item.description,
                start_date=start,
                end_date=end,
                is_current=current,
            )
        )

    education = [
        Education(
            institution=item.institution,
            degree=item.degree,
            location=item.location,
            gpa=item.gpa,
            end_date=item.date or None,
        )
        for item in parsed.education
    ]

    return ResumeData(
        contact_info=parsed.contact_info,
        summary=parsed.summary,
        skills=parsed.skills,
        work_experience=work,
        projects=projects,
        education=education,
    )


def generate_job_suggestions(data: JobSuggestionsInput, user_id: str | None = None) -> JobSuggestionsOutput:
    """
    Raises:
        FlowInputError: If no resume is given
        AIFlowError: If generation fails
    """
    if data.resume is None:
        raise FlowInputError("Resume data is required to generate job suggestions.")

    def run() -> JobSuggestionsOutput:
        prompt = render_prompt("job_suggestions", resume=to_prompt_json(data.resume))
        result = generate_structured("job_suggestions", prompt, JobSuggestionsOutput, user_id=user_id)
        if result is None:
            raise LLMError(
                "The AI model failed to generate valid job suggestions. This may be a temporary issue."
            )
        return result

    return execute_flow(run, "job suggestions")


def generate_application_email(
    data: ApplicationEmailInput, user_id: str | None = None
) -> ApplicationEmailOutput:
    def run() -> ApplicationEmailOutput:
        job = data.job_application
        prompt = render_prompt(
            "application_email",
            company=job.company,
            role=job.role,
            candidate_name=data.resume.contact_info.name or "the applicant",
            resume=to_prompt_json(data.resume),
            job_application=to_prompt_json(job),
        )
        result = generate_structured("application_email", prompt, ApplicationEmailOutput, user_id=user_id)
        if result is None:
            raise LLMError("The AI model failed to generate a valid email. This may be a temporary issue.")
        return result

    return execute_flow(run, "application email")


def generate_job_specific_resume(
    data: JobSpecificResumeInput, user_id: str | None = None
) -> ResumeData:
    """
    Tailor the base resume to one job without naming the target company.

    The result always carries the four fixed skill groups. When the model
    returns nothing the base resume comes back unchanged.
    """

    def run() -> ResumeData:
        job = data.job_application
        logger.info("Generating job-specific resume for %s", job.company or "unknown company")
        prompt = render_prompt(
            "job_specific_resume",
            base_resume=to_prompt_json(data.base_resume),
            job_application=to_prompt_json(job),
            job_description=job.additional_description or "No additional job description provided",
        )
        result = generate_structured(
            "job_specific_resume", prompt, JobSpecificResumeOutput, user_id=user_id
        )
        if result is None:
            logger.warning("Empty tailored resume for %s, returning base resume", job.company)
            return data.base_resume
        return ResumeData.model_validate(result.model_dump(by_alias=True))

    return execute_flow(run, "job-specific resume generation")


def parse_resume(data: ParseResumeInput, user_id: str | None = None) -> ResumeData:
    """Structure pasted resume text; date ranges are split into start/end fields."""

    def run() -> ResumeData:
        prompt = render_prompt("parse_resume", resume_text=data.resume_text)
        parsed = generate_structured("parse_resume", prompt, ParsedResume, user_id=user_id)
        if parsed is None:
            raise LLMError(
                "The AI model failed to parse the resume. Please check the content and try again."
            )
        return to_resume_data(parsed)

    return execute_flow(run, "resume parsing")
