"""
Runs a task's actions against a session page, step by step.

A failing action is reported in the task's progress and the run carries on
with the next one; only failing to get a page at all fails the task.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from playwright.async_api import Page

from lifeos.automation.browser import BrowserManager, is_closed_browser_error
from lifeos.automation.models import Action, TaskRecord
from lifeos.config import (
    AUTOMATION_ACTION_DELAY_SECONDS,
    AUTOMATION_NAVIGATION_TIMEOUT_MS,
    AUTOMATION_SELECTOR_TIMEOUT_MS,
)
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event

logger = get_logger(__name__)

GOOGLE_URL = "https://www.google.com"
SEARCH_BOX_SELECTOR = 'textarea[name="q"], input[name="q"]'

ProgressCallback = Callable[[str], None]


class ActionError(ValueError):
    """Raised when an action is missing a field its type needs."""


def _require(action: Action, field: str) -> str:
    value = getattr(action, field)
    if not value:
        raise ActionError(f"{action.type} action requires '{field}'")
    return value


class TaskExecutor:
    def __init__(
        self,
        browser: BrowserManager,
        action_delay_seconds: float = AUTOMATION_ACTION_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.browser = browser
        self.action_delay_seconds = action_delay_seconds
        self._sleep = sleep

    async def run(self, record: TaskRecord, actions: list[Action], session_id: str = "default") -> dict[str, Any]:
        """
        Execute ``actions`` in order and settle ``record``.

        The loop checks for cancellation before every action. On success the
        record is ``completed`` with ``{success, pageId, message}``; when no
        page can be obtained it is ``failed`` with ``{success: False, error}``.

        Side Effects:
            - Drives the session's browser page
            - Appends progress entries to ``record``
            - Resets the browser when the error says it was closed
        """
        progress = record.add_progress
        total = len(actions)

        try:
            progress("🔄 Getting browser session...")
            page = await self.browser.get_page(session_id)

            progress("🚀 Starting task execution...")
            for index, action in enumerate(actions, start=1):
                if record.status == "cancelled":
                    log_event("automation.task.cancelled", task_id=record.id, step=index)
                    return {"success": False, "error": "Task cancelled"}

                progress(f"Step {index}/{total}: {action.description}")
                try:
                    await self.execute_action(page, action, progress)
                except Exception as e:
                    logger.warning("Task %s action %d failed: %s", record.id, index, e)
                    counter("automation.action.failed")
                    progress(f"⚠️ Action {index} failed: {e}, continuing...")

                if self.action_delay_seconds > 0:
                    await self._sleep(self.action_delay_seconds)

            progress("✅ All tasks completed successfully!")
            result = {"success": True, "pageId": session_id, "message": "Tasks completed successfully"}
            record.finish("completed", result=result)
            counter("automation.task.completed")
            return result

        except Exception as e:
            logger.error("Task %s execution error: %s", record.id, e)
            progress(f"❌ Task failed: {e}")
            if is_closed_browser_error(e):
                self.browser.reset()

            error = str(e) or "Unknown error occurred"
            result = {"success": False, "error": error}
            record.finish("failed", result=result, error=error)
            counter("automation.task.failed")
            return result

    async def execute_action(self, page: Page, action: Action, progress: ProgressCallback) -> None:
        if action.type == "navigate":
            target = _require(action, "target")
            await page.goto(target, wait_until="networkidle", timeout=AUTOMATION_NAVIGATION_TIMEOUT_MS)
            progress(f"✅ Navigated to {target}")

        elif action.type == "search":
            query = _require(action, "value")
            if "google.com" not in page.url:
                await page.goto(GOOGLE_URL, wait_until="networkidle", timeout=AUTOMATION_NAVIGATION_TIMEOUT_MS)
            await page.wait_for_selector(SEARCH_BOX_SELECTOR, timeout=AUTOMATION_SELECTOR_TIMEOUT_MS)
            await page.fill(SEARCH_BOX_SELECTOR, query)
            await page.keyboard.press("Enter")
            await page.wait_for_load_state("networkidle")
            progress(f'✅ Searched for "{query}" on Google')

        elif action.type == "click":
            selector = _require(action, "selector")
            await page.wait_for_selector(selector, timeout=AUTOMATION_SELECTOR_TIMEOUT_MS)
            await page.click(selector)
            progress(f"✅ Clicked on {action.description}")

        elif action.type == "type":
            selector = _require(action, "selector")
            text = action.value or ""
            await page.wait_for_selector(selector, timeout=AUTOMATION_SELECTOR_TIMEOUT_MS)
            await page.fill(selector, text)
            progress(f'✅ Typed "{text}" in {action.description}')

        elif action.type == "wait":
            await self._sleep(action.wait_ms / 1000)
            progress(f"✅ Waited {action.wait_ms}ms")

        else:
            progress(f"⚠️ Unknown action type: {action.type}, skipped")
