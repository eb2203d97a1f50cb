"""Living advisor flows: country recommendations and a per-country roadmap."""

from __future__ import annotations

from lifeos.flows.context import to_prompt_json
from lifeos.flows.schemas import (
    RelocationAdviceInput,
    RelocationAdviceOutput,
    RelocationRoadmapInput,
    RelocationRoadmapOutput,
)
from lifeos.llm.client import LLMError, generate_structured
from lifeos.llm.errors import execute_flow
from lifeos.llm.prompts import render_prompt

CAREER_SECTION = {
    "Jobs": (
        'Career & Job Search (use this title): job search strategies for the user\'s profession '
        'in the local market, career milestones with rough timelines such as "0-3 Months: '
        'Network and apply", and resources like local job boards or professional networks.'
    ),
    "Study": (
        'University & Study Plan (use this title): top universities for their field in this '
        'country and milestones such as "6-9 Months Out: Prepare for entrance exams", '
        '"3-6 Months Out: Submit applications", "0-3 Months Out: Arrange student visa and '
        'accommodation", plus ranking and application portals.'
    ),
}


def generate_relocation_advice(
    data: RelocationAdviceInput, user_id: str | None = None
) -> RelocationAdviceOutput:
    """Countries that suit the user, best suitability score first."""

    def run() -> RelocationAdviceOutput:
        resume_block = (
            "\nUser's resume (primary source for profession, skills and current country):\n"
            f"```json\n{to_prompt_json(data.resume)}\n```\n"
            if data.resume is not None
            else ""
        )
        prompt = render_prompt(
            "relocation_advice",
            reason=data.questionnaire.reason_for_relocation,
            questionnaire=to_prompt_json(data.questionnaire),
            resume_block=resume_block,
        )
        result = generate_structured("relocation_advice", prompt, RelocationAdviceOutput, user_id=user_id)
        if result is None:
            raise LLMError(
                "The AI model failed to generate relocation advice. This may be a temporary issue."
            )
        result.recommendations.sort(key=lambda rec: rec.suitability_score, reverse=True)
        return result

    return execute_flow(run, "relocation advice")


def generate_relocation_roadmap(
    data: RelocationRoadmapInput, user_id: str | None = None
) -> RelocationRoadmapOutput:
    def run() -> RelocationRoadmapOutput:
        reason = data.profile.questionnaire.reason_for_relocation
        prompt = render_prompt(
            "relocation_roadmap",
            reason=reason,
            country=data.country,
            profile=to_prompt_json(data.profile),
            career_section=CAREER_SECTION[reason],
        )
        result = generate_structured(
            "relocation_roadmap", prompt, RelocationRoadmapOutput, user_id=user_id
        )
        if result is None:
            raise LLMError("The AI model failed to generate a relocation roadmap.")
        return result

    return execute_flow(run, "relocation roadmap")
