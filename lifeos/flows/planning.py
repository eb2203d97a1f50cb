"""Planning flows: daily task ideas, monthly plans and per-module advice."""

from __future__ import annotations

from lifeos.config import DEFAULT_EMERGENCY_FUND_TARGET
from lifeos.flows.context import current_date, to_prompt_json
from lifeos.flows.schemas import (
    ContextInput,
    ModuleSuggestionsInput,
    ModuleSuggestionsOutput,
    MonthlyPlanSuggestionsOutput,
    TaskSuggestionsOutput,
)
from lifeos.llm.client import LLMError, generate_structured
from lifeos.llm.errors import execute_flow
from lifeos.llm.prompts import render_prompt

MODULE_INSTRUCTIONS = {
    "DashboardOverview": (
        "Analyze the user's entire action plan: goals, tasks and finances. Give high-level, "
        "encouraging suggestions, for example point out a goal that is falling behind and "
        "propose a task for it, or acknowledge financial progress and name the next step."
    ),
    "CarSale": (
        "Analyze the car sale financials. The user is selling a car for the given sale price "
        "and has a loan payoff amount. Work out the net cash, say whether it is a good deal and "
        "suggest negotiation points or next steps."
    ),
    "Finance": (
        "Analyze the user's loans and emergency fund. The target emergency fund is "
        "₹{target}. Suggest strategies to pay down loans (avalanche or snowball) and realistic "
        "steps to build the emergency fund."
    ),
    "JobSearch": (
        "Review the user's job applications. Suggest networking strategies, how to follow up "
        "on applications, and ways to improve their profile for the roles they target."
    ),
    "Travel": (
        "Look at planned and completed travel goals. For planned trips suggest 1-2 interesting "
        "activities. For completed trips suggest a similar destination they might enjoy next."
    ),
    "DailyTodo": (
        "Analyze the to-do list. Flag overdue tasks to prioritize, spread heavy days across the "
        "week, and break large or vague tasks into smaller concrete steps."
    ),
}

MONTHLY_PLAN_FOCUSED = (
    "Using the user's overall goals and data, suggest new, relevant and actionable tasks "
    "specifically for {month}. They should move the user's broader goals forward. Do not "
    "suggest tasks already in the plan for this month."
)
MONTHLY_PLAN_GENERAL = (
    "Analyze the monthly plan data (a list of months with tasks). Focus on the current and "
    "next month, identify gaps and suggest new tasks that fit the user's goals. Do not repeat "
    "existing tasks."
)


def module_instructions(module: str, focused_month: str | None = None) -> str:
    if module == "MonthlyPlan":
        return MONTHLY_PLAN_FOCUSED.format(month=focused_month) if focused_month else MONTHLY_PLAN_GENERAL
    if module == "Finance":
        return MODULE_INSTRUCTIONS["Finance"].format(target=f"{int(DEFAULT_EMERGENCY_FUND_TARGET):,}")
    return MODULE_INSTRUCTIONS[module]


def generate_task_suggestions(data: ContextInput, user_id: str | None = None) -> TaskSuggestionsOutput:
    def run() -> TaskSuggestionsOutput:
        prompt = render_prompt(
            "task_suggestions", current_date=current_date(), context=to_prompt_json(data.context)
        )
        result = generate_structured("task_suggestions", prompt, TaskSuggestionsOutput, user_id=user_id)
        if result is None:
            raise LLMError(
                "The AI model failed to generate valid task suggestions. This may be a temporary issue."
            )
        return result

    return execute_flow(run, "task suggestions")


def generate_monthly_plan_suggestions(
    data: ContextInput, user_id: str | None = None
) -> MonthlyPlanSuggestionsOutput:
    def run() -> MonthlyPlanSuggestionsOutput:
        prompt = render_prompt(
            "monthly_plan_suggestions",
            current_date=current_date(),
            context=to_prompt_json(data.context),
        )
        result = generate_structured(
            "monthly_plan_suggestions", prompt, MonthlyPlanSuggestionsOutput, user_id=user_id
        )
        if result is None:
            raise LLMError(
                "The AI model failed to generate valid plan suggestions. This may be a temporary issue."
            )
        return result

    return execute_flow(run, "monthly plan suggestions")


def generate_module_suggestions(
    data: ModuleSuggestionsInput, user_id: str | None = None
) -> ModuleSuggestionsOutput:
    """
    Short advice for one dashboard module.

    ``focused_month`` only matters for MonthlyPlan; ``user_query`` is passed
    through as the user's own question when given.
    """

    def run() -> ModuleSuggestionsOutput:
        query_block = (
            f"\nUser's specific question:\n{data.user_query}\n" if data.user_query else ""
        )
        prompt = render_prompt(
            "module_suggestions",
            module=data.module,
            current_date=current_date(),
            instructions=module_instructions(data.module, data.focused_month),
            context=to_prompt_json(data.context),
            user_query_block=query_block,
        )
        result = generate_structured(
            "module_suggestions", prompt, ModuleSuggestionsOutput, user_id=user_id
        )
        if result is None:
            raise LLMError("The AI model failed to generate valid suggestions. This may be a temporary issue.")
        return result

    return execute_flow(run, f"{data.module} suggestions")
