"""
Goal flows: tips for an obstacle, new goal ideas, next steps for a goal and
the three critical steps shown on the dashboard.
"""

from __future__ import annotations

from datetime import datetime

from lifeos.appdata.insights import cached_critical_steps, critical_data_hash
from lifeos.appdata.models import AppData, CriticalStepsSnapshot
from lifeos.flows.context import current_date, to_prompt_json
from lifeos.flows.schemas import (
    ContextInput,
    CriticalStepsOutput,
    GoalStepSuggestionsInput,
    GoalStepSuggestionsOutput,
    GoalSuggestionsOutput,
    GoalTipsInput,
    GoalTipsOutput,
)
from lifeos.llm.client import LLMError, generate_structured
from lifeos.llm.errors import execute_flow
from lifeos.llm.prompts import render_prompt
from lifeos.observability.telemetry import counter, log_event
from lifeos.utils.dates import to_timestamp

CRITICAL_STEPS_COUNT = 3


def generate_goal_tips(data: GoalTipsInput, user_id: str | None = None) -> GoalTipsOutput:
    def run() -> GoalTipsOutput:
        prompt = render_prompt("goal_tips", goal=data.goal, obstacle=data.obstacle)
        result = generate_structured("goal_tips", prompt, GoalTipsOutput, user_id=user_id)
        if result is None:
            raise LLMError("The AI model failed to generate valid tips. This may be a temporary issue.")
        return result

    return execute_flow(run, "goal tips")


def generate_goal_suggestions(data: ContextInput, user_id: str | None = None) -> GoalSuggestionsOutput:
    def run() -> GoalSuggestionsOutput:
        prompt = render_prompt(
            "goal_suggestions", current_date=current_date(), context=to_prompt_json(data.context)
        )
        result = generate_structured("goal_suggestions", prompt, GoalSuggestionsOutput, user_id=user_id)
        if result is None:
            raise LLMError(
                "The AI model failed to generate valid goal suggestions. This may be a temporary issue."
            )
        return result

    return execute_flow(run, "goal suggestions")


def generate_goal_step_suggestions(
    data: GoalStepSuggestionsInput, user_id: str | None = None
) -> GoalStepSuggestionsOutput:
    """Next steps for one goal; an empty reply becomes an empty list."""

    def run() -> GoalStepSuggestionsOutput:
        prompt = render_prompt(
            "goal_step_suggestions",
            current_date=current_date(),
            goal=to_prompt_json(data.goal),
            context=to_prompt_json(data.context),
        )
        result = generate_structured(
            "goal_step_suggestions", prompt, GoalStepSuggestionsOutput, user_id=user_id
        )
        return result or GoalStepSuggestionsOutput(suggestions=[])

    return execute_flow(run, "goal step suggestions")


def generate_critical_steps(data: ContextInput, user_id: str | None = None) -> CriticalStepsOutput:
    """
    The three most urgent actions across goals, plan, job search and finance.

    Extra steps from the model are dropped; an empty reply gives no steps.
    """

    def run() -> CriticalStepsOutput:
        prompt = render_prompt(
            "critical_steps", current_date=current_date(), context=to_prompt_json(data.context)
        )
        result = generate_structured("critical_steps", prompt, CriticalStepsOutput, user_id=user_id)
        if result is None:
            return CriticalStepsOutput(steps=[])
        if len(result.steps) > CRITICAL_STEPS_COUNT:
            counter("flows.critical_steps.trimmed")
            result.steps = result.steps[:CRITICAL_STEPS_COUNT]
        return result

    return execute_flow(run, "critical steps analysis")


def get_or_generate_critical_steps(
    data: AppData,
    user_id: str | None = None,
    force: bool = False,
    now: datetime | None = None,
) -> tuple[CriticalStepsSnapshot, bool]:
    """
    Return critical steps for ``data``, generating them only when stale.

    The snapshot stored on the document is reused while the fingerprint of
    the relevant sections is unchanged. A new snapshot is written onto
    ``data.critical_steps``; persisting the document is up to the caller.

    Returns:
        (snapshot, generated) where ``generated`` tells whether the model ran
    """
    if not force:
        cached = cached_critical_steps(data)
        if cached is not None:
            counter("flows.critical_steps.reused")
            return cached, False

    context = data.to_json_dict()
    context.pop("criticalSteps", None)
    output = generate_critical_steps(ContextInput(context=context), user_id=user_id)

    snapshot = CriticalStepsSnapshot(
        steps=output.steps,
        data_hash=critical_data_hash(data),
        generated_at=to_timestamp(now or datetime.now()),
    )
    data.critical_steps = snapshot
    log_event("flows.critical_steps.generated", user_id=user_id, steps=len(snapshot.steps))
    return snapshot, True
