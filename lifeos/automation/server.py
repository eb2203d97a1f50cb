"""FastAPI server that runs browser automation tasks with Playwright"""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from typing import Any

from lifeos.infrastructure.env import ensure_env_loaded

ensure_env_loaded()

import httpx  # noqa: E402
from fastapi import BackgroundTasks, Body, FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from pydantic import ValidationError  # noqa: E402

from lifeos.automation.browser import BrowserManager  # noqa: E402
from lifeos.automation.executor import TaskExecutor  # noqa: E402
from lifeos.automation.models import ExecuteTaskRequest  # noqa: E402
from lifeos.automation.registry import TaskAlreadyRunningError, TaskRegistry  # noqa: E402
from lifeos.config import (  # noqa: E402
    APP_ENV,
    APP_VERSION,
    AUTOMATION_ALLOWED_ORIGINS,
    AUTOMATION_BASE_URL,
    AUTOMATION_KEEP_ALIVE_ENABLED,
    AUTOMATION_KEEP_ALIVE_INTERVAL_SECONDS,
    AUTOMATION_PORT,
)
from lifeos.observability.logging import get_logger  # noqa: E402
from lifeos.observability.telemetry import counter, log_event  # noqa: E402

logger = get_logger(__name__)

app = FastAPI(title="LifeOS Automation Server", version=APP_VERSION)

# Any origin in development; the dashboard's origins in production
if APP_ENV == "production":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=AUTOMATION_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

browser_manager = BrowserManager()
registry = TaskRegistry()
executor = TaskExecutor(browser_manager)

_STARTED_AT = time.monotonic()
_keep_alive_task: asyncio.Task | None = None


def uptime_seconds() -> float:
    return round(time.monotonic() - _STARTED_AT, 3)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ============================================================================
# KEEP-ALIVE
# ============================================================================
async def _keep_alive_loop(base_url: str, interval_seconds: float) -> None:
    """Ping our own /health so free-tier hosts don't put the machine to sleep.

    Side Effects:
        - Makes an HTTP request every ``interval_seconds``
        - Runs until cancelled on shutdown
    """
    async with httpx.AsyncClient(timeout=10) as client:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                response = await client.get(f"{base_url}/health")
                logger.info("Keep-alive ping: %s", response.status_code)
            except httpx.HTTPError as e:
                logger.warning("Keep-alive failed: %s", e)


@app.on_event("startup")
async def start_keep_alive() -> None:
    global _keep_alive_task
    if APP_ENV == "production" and AUTOMATION_KEEP_ALIVE_ENABLED:
        _keep_alive_task = asyncio.create_task(
            _keep_alive_loop(AUTOMATION_BASE_URL, AUTOMATION_KEEP_ALIVE_INTERVAL_SECONDS)
        )
        logger.info("Keep-alive enabled (every %d s)", AUTOMATION_KEEP_ALIVE_INTERVAL_SECONDS)
    log_event("automation.startup", port=AUTOMATION_PORT, headless=browser_manager.headless)


@app.on_event("shutdown")
async def shutdown() -> None:
    """Stop the keep-alive loop and close every session and the browser."""
    global _keep_alive_task
    if _keep_alive_task is not None:
        _keep_alive_task.cancel()
        _keep_alive_task = None
    await browser_manager.close()
    logger.info("Automation server shut down")


# ============================================================================
# ENDPOINTS
# ============================================================================


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "healthy",
        "browser": browser_manager.state(),
        "activeTasks": registry.running_count(),
        "totalTasks": len(registry),
        "activeSessions": browser_manager.active_sessions,
        "uptime": uptime_seconds(),
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/wake")
def wake() -> dict[str, Any]:
    return {
        "status": "awake",
        "timestamp": datetime.now(UTC).isoformat(),
        "uptime": uptime_seconds(),
        "message": "Server is now awake and ready",
    }


@app.post("/execute-task")
async def execute_task(
    background_tasks: BackgroundTasks,
    payload: dict[str, Any] | None = Body(None),
) -> Any:
    """
    Register a task as running and execute it after responding.

    Side Effects:
        - Adds a record to the task registry (pruning expired ones)
        - Schedules the browser run as a background task
    """
    payload = payload or {}
    if not payload.get("taskId") or not isinstance(payload.get("actions"), list):
        return _error(400, "Missing taskId or actions")

    try:
        request = ExecuteTaskRequest.model_validate(payload)
    except ValidationError as e:
        logger.warning("Rejected task %s: %s", payload.get("taskId"), e.errors())
        return _error(400, "Invalid actions")

    registry.prune()
    try:
        record = registry.start(request.task_id)
    except TaskAlreadyRunningError:
        logger.warning("Rejected duplicate task %s: still running", request.task_id)
        counter("automation.task.duplicate")
        return _error(409, "Task already running")
    background_tasks.add_task(executor.run, record, request.actions, request.session_id)

    counter("automation.task.started")
    log_event(
        "automation.task.started",
        task_id=request.task_id,
        actions=len(request.actions),
        session_id=request.session_id,
    )
    return {"success": True, "taskId": request.task_id, "message": "Task started successfully"}


@app.get("/task-status/{task_id}")
def task_status(task_id: str) -> Any:
    record = registry.get(task_id)
    if record is None:
        return _error(404, "Task not found")
    return record.to_json_dict()


@app.get("/tasks")
def list_tasks() -> list[dict[str, Any]]:
    registry.prune()
    return [record.to_json_dict() for record in registry.all()]


@app.delete("/task/{task_id}")
def delete_task(task_id: str) -> dict[str, Any]:
    """Remove a task record, cancelling the run first if it is still going."""
    record = registry.delete(task_id)
    if record is not None and record.status == "cancelled":
        log_event("automation.task.cancel_requested", task_id=task_id)
    return {"success": True, "message": "Task deleted"}


def main() -> None:
    """Console entry point: serve the automation server with uvicorn."""
    import uvicorn

    logger.info("LifeOS automation server starting on port %d", AUTOMATION_PORT)
    uvicorn.run("lifeos.automation.server:app", host="0.0.0.0", port=AUTOMATION_PORT)


if __name__ == "__main__":
    main()
