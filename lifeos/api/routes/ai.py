"""
AI endpoints.

POST /api/ai/{flow} runs any registered flow on the JSON body. Two routes
also touch the stored document: critical-steps refresh and the daily job
suggestion check.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from lifeos.api.middleware.user_auth import AuthenticatedUser, get_current_user
from lifeos.api.models import CriticalStepsResponse, DailyJobCheckResponse, validate_json_structure
from lifeos.api.routes.data import load_or_500
from lifeos.appdata.jobs import job_check_due, merge_job_suggestions
from lifeos.appdata.repository import get_store
from lifeos.flows.career import generate_job_suggestions
from lifeos.flows.goals import get_or_generate_critical_steps
from lifeos.flows.registry import flow_names, get_flow
from lifeos.flows.schemas import JobSuggestionsInput
from lifeos.infrastructure.llm_budget import BudgetExceededError
from lifeos.llm.errors import AIFlowError, FlowInputError
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event, time_block
from lifeos.utils.error_sanitizer import sanitize_error_message

router = APIRouter(tags=["ai"])
logger = get_logger(__name__)

BUDGET_MESSAGE = "Daily AI usage limit reached. Please try again tomorrow."


def flow_http_error(exc: Exception) -> HTTPException:
    """
    Translate a flow failure into the HTTPException the client sees.

    Request validation errors are raised as RequestValidationError instead
    so the app-wide sanitized 422 handler formats them.

    FlowInputError -> 422, BudgetExceededError -> 429, AIFlowError -> 502
    with the user-facing message, anything else -> 500.
    """
    if isinstance(exc, FlowInputError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=sanitize_error_message(str(exc), 422),
        )
    if isinstance(exc, BudgetExceededError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=BUDGET_MESSAGE,
            headers={"Retry-After": "86400"},
        )
    if isinstance(exc, AIFlowError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=sanitize_error_message(exc.user_message, 502),
        )
    logger.error("Unexpected AI route error: %s: %s", type(exc).__name__, exc)
    return HTTPException(status_code=500, detail="AI request failed")


@router.get("/api/ai")
def list_flows() -> dict[str, Any]:
    return {"flows": flow_names()}


@router.post("/api/ai/critical-steps/refresh", response_model=CriticalStepsResponse)
def refresh_critical_steps(
    force: bool = Query(False, description="Regenerate even if the data is unchanged"),
    user: AuthenticatedUser = Depends(get_current_user),
) -> CriticalStepsResponse:
    """
    Critical steps for the caller's current data.

    Reuses the stored steps while goals, plan, jobs and finances are
    unchanged; otherwise generates new ones and stores them.

    Side Effects:
        - May call Gemini
        - Saves the document when new steps were generated
    """
    data = load_or_500(user.id)
    try:
        snapshot, generated = get_or_generate_critical_steps(data, user_id=user.id, force=force)
    except (AIFlowError, FlowInputError, BudgetExceededError) as e:
        raise flow_http_error(e) from None

    if generated:
        get_store().save(user.id, data)

    return CriticalStepsResponse(
        steps=[step.to_json_dict() for step in snapshot.steps],
        data_hash=snapshot.data_hash,
        generated_at=snapshot.generated_at,
        generated=generated,
    )


@router.post("/api/jobs/daily-check", response_model=DailyJobCheckResponse)
def daily_job_check(
    force: bool = Query(False, description="Run even if today's check already happened"),
    user: AuthenticatedUser = Depends(get_current_user),
) -> DailyJobCheckResponse:
    """
    Once a day, add AI job suggestions for the caller's resume to the tracker.

    Side Effects:
        - May call Gemini
        - Prepends new applications and stamps lastJobSuggestionCheck
    """
    data = load_or_500(user.id)
    if data.resume is None or not (force or job_check_due(data)):
        return DailyJobCheckResponse(ran=False, last_check=data.last_job_suggestion_check)

    try:
        suggestions = generate_job_suggestions(JobSuggestionsInput(resume=data.resume), user_id=user.id)
    except (AIFlowError, FlowInputError, BudgetExceededError) as e:
        raise flow_http_error(e) from None

    added = []

    def merge(doc) -> None:
        added.extend(merge_job_suggestions(doc, suggestions.suggestions))

    updated = get_store().update(user.id, merge)
    log_event("api.jobs.daily_check", user_id=user.id, added=len(added))
    return DailyJobCheckResponse(
        ran=True,
        added=[job.to_json_dict() for job in added],
        last_check=updated.last_job_suggestion_check,
    )


@router.post("/api/ai/{flow}")
def run_flow(
    flow: str,
    payload: dict[str, Any] | None = Body(None),
    user: AuthenticatedUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Run the named flow on ``payload``.

    Returns:
        The flow's validated output (camelCase keys)

    Side Effects:
        - Calls Gemini unless the answer is cached
        - Counts the call against the caller's daily budget
    """
    spec = get_flow(flow)
    if spec is None:
        raise HTTPException(status_code=404, detail=f"Unknown AI flow: {flow}")

    try:
        payload = payload or {}
        validate_json_structure(payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=sanitize_error_message(str(e), 422)) from None

    counter(f"api.ai.{flow}.requests")
    try:
        with time_block(f"api.ai.{flow}.latency"):
            return spec.run(payload, user_id=user.id)
    except ValidationError as e:
        counter(f"api.ai.{flow}.invalid_input")
        raise RequestValidationError(e.errors()) from None
    except (AIFlowError, FlowInputError, BudgetExceededError) as e:
        counter(f"api.ai.{flow}.failed")
        raise flow_http_error(e) from None
