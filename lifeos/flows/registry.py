"""
Name -> flow lookup used by the API.

Each entry pairs the request model with the function that runs the flow, so
one route can validate and dispatch any of them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from lifeos.flows import career, goals, planning, relocation, travel
from lifeos.flows.schemas import (
    ApplicationEmailInput,
    ContextInput,
    GoalStepSuggestionsInput,
    GoalTipsInput,
    JobSpecificResumeInput,
    JobSuggestionsInput,
    ModuleSuggestionsInput,
    ParseResumeInput,
    RelocationAdviceInput,
    RelocationRoadmapInput,
    TravelImageInput,
    TravelItineraryInput,
    TravelSuggestionInput,
)


@dataclass(frozen=True)
class FlowSpec:
    name: str
    input_model: type[BaseModel]
    handler: Callable[..., BaseModel]

    def run(self, payload: dict[str, Any], user_id: str | None = None) -> dict[str, Any]:
        """
        Validate ``payload`` and run the flow.

        Raises:
            pydantic.ValidationError: If the payload does not fit input_model
            FlowInputError, AIFlowError, BudgetExceededError: From the flow
        """
        data = self.input_model.model_validate(payload)
        result = self.handler(data, user_id=user_id)
        return result.model_dump(by_alias=True, mode="json")


FLOWS: dict[str, FlowSpec] = {
    spec.name: spec
    for spec in (
        FlowSpec("goal-tips", GoalTipsInput, goals.generate_goal_tips),
        FlowSpec("goal-suggestions", ContextInput, goals.generate_goal_suggestions),
        FlowSpec("goal-step-suggestions", GoalStepSuggestionsInput, goals.generate_goal_step_suggestions),
        FlowSpec("critical-steps", ContextInput, goals.generate_critical_steps),
        FlowSpec("task-suggestions", ContextInput, planning.generate_task_suggestions),
        FlowSpec("monthly-plan-suggestions", ContextInput, planning.generate_monthly_plan_suggestions),
        FlowSpec("module-suggestions", ModuleSuggestionsInput, planning.generate_module_suggestions),
        FlowSpec("job-suggestions", JobSuggestionsInput, career.generate_job_suggestions),
        FlowSpec("application-email", ApplicationEmailInput, career.generate_application_email),
        FlowSpec("job-specific-resume", JobSpecificResumeInput, career.generate_job_specific_resume),
        FlowSpec("parse-resume", ParseResumeInput, career.parse_resume),
        FlowSpec("travel-suggestion", TravelSuggestionInput, travel.generate_travel_suggestion),
        FlowSpec("travel-itinerary", TravelItineraryInput, travel.generate_travel_itinerary),
        FlowSpec("travel-image", TravelImageInput, travel.generate_travel_image),
        FlowSpec("relocation-advice", RelocationAdviceInput, relocation.generate_relocation_advice),
        FlowSpec("relocation-roadmap", RelocationRoadmapInput, relocation.generate_relocation_roadmap),
    )
}


def get_flow(name: str) -> FlowSpec | None:
    return FLOWS.get(name)


def flow_names() -> list[str]:
    return sorted(FLOWS)
