"""
Ad-hoc task endpoint used by the task manager screen.

The caller names one of the known Gemini models; the prompt is checked
against that model's context limit and answered with a plain text call.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lifeos.api.middleware.user_auth import AuthenticatedUser, get_current_user
from lifeos.api.models import ProcessTaskRequest, ProcessTaskResponse
from lifeos.api.routes.ai import flow_http_error
from lifeos.config import TASK_MODEL_TOKEN_LIMITS
from lifeos.llm.client import generate_text
from lifeos.llm.errors import execute_flow
from lifeos.llm.prompts import render_prompt
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event

router = APIRouter(prefix="/api/ai/process-task", tags=["ai"])
logger = get_logger(__name__)


def _failure(message: str, started: float, request: ProcessTaskRequest) -> JSONResponse:
    """400 body in the same shape as a success, with ``success`` false."""
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": message,
            "executionTime": int((time.monotonic() - started) * 1000),
            "model": request.model,
            "taskId": request.task_id,
        },
    )


@router.get("")
def process_task_status() -> dict[str, Any]:
    return {
        "status": "healthy",
        "service": "AI Task Processing API",
        "models": list(TASK_MODEL_TOKEN_LIMITS),
        "limits": TASK_MODEL_TOKEN_LIMITS,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.post("", response_model=ProcessTaskResponse)
def process_task(
    request: ProcessTaskRequest,
    user: AuthenticatedUser = Depends(get_current_user),
) -> Any:
    """
    Answer one free-form prompt with the requested model.

    Side Effects:
        - Calls Gemini
        - Counts the call against the caller's daily budget
    """
    started = time.monotonic()

    if not request.prompt or not request.model or not request.task_id:
        return _failure("Missing required fields: prompt, model, or taskId", started, request)

    limit = TASK_MODEL_TOKEN_LIMITS.get(request.model)
    if limit is None:
        return _failure("Invalid AI model specified", started, request)

    if len(request.prompt) > limit:
        return _failure(f"Prompt exceeds maximum token limit for {request.model}", started, request)

    prompt = render_prompt("process_task", prompt=request.prompt)
    counter("api.process_task.requests")
    try:
        result = execute_flow(
            lambda: generate_text(prompt, model_name=request.model, user_id=user.id),
            "task result",
        )
    except Exception as e:
        counter("api.process_task.failed")
        raise flow_http_error(e) from None

    execution_time = int((time.monotonic() - started) * 1000)
    log_event(
        "api.process_task.completed",
        task_id=request.task_id,
        model=request.model,
        execution_ms=execution_time,
    )
    return ProcessTaskResponse(
        success=True,
        result=result,
        execution_time=execution_time,
        model=request.model,
        task_id=request.task_id,
    )
