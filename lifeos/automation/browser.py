"""Browser lifecycle for the automation server.

One Chromium instance is shared by every session; each session id owns a
page that is reused while it stays usable.

Requires: playwright install chromium
"""

from __future__ import annotations

from typing import Any, Literal

from playwright.async_api import Browser, Page, Playwright, async_playwright

from lifeos.config import (
    APP_ENV,
    AUTOMATION_HEADLESS,
    AUTOMATION_USER_AGENT,
    AUTOMATION_VIEWPORT,
)
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event

logger = get_logger(__name__)

BrowserState = Literal["disconnected", "connected", "no-pages", "error"]

PRODUCTION_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--no-zygote",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
)

DEVELOPMENT_ARGS: tuple[str, ...] = (
    "--start-maximized",
    "--disable-blink-features=AutomationControlled",
)

# Substrings of Playwright errors raised once the browser has gone away
CLOSED_BROWSER_MARKERS: tuple[str, ...] = (
    "Target page, context or browser has been closed",
    "Browser has been closed",
)


def resolve_headless(env: str = APP_ENV, override: str | None = AUTOMATION_HEADLESS) -> bool:
    """Headless in production, headed elsewhere, unless the override says otherwise."""
    if override is not None and override.strip():
        return override.strip().lower() in ("1", "true", "yes")
    return env == "production"


def launch_args(env: str = APP_ENV) -> list[str]:
    return list(PRODUCTION_ARGS if env == "production" else DEVELOPMENT_ARGS)


def is_closed_browser_error(error: BaseException) -> bool:
    message = str(error)
    return any(marker in message for marker in CLOSED_BROWSER_MARKERS)


class BrowserManager:
    """
    Owns the Playwright driver, the shared browser and the session pages.

    All methods run on the server's event loop.
    """

    def __init__(self, headless: bool | None = None, env: str = APP_ENV):
        self.env = env
        self.headless = resolve_headless(env) if headless is None else headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._sessions: dict[str, Page] = {}

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    async def ensure_browser(self) -> Browser:
        """
        Return a connected browser, launching one if needed.

        Side Effects:
            - Starts the Playwright driver on first use
            - Launches Chromium
        """
        if self._browser is not None and self._browser.is_connected():
            return self._browser

        if self._browser is not None:
            logger.info("Existing browser disconnected, launching a new instance")
            self._browser = None
            self._sessions.clear()

        if self._playwright is None:
            self._playwright = await async_playwright().start()

        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=launch_args(self.env),
            )
        except Exception as e:
            logger.error("Failed to launch browser: %s", e)
            self._browser = None
            raise

        counter("automation.browser.launched")
        log_event("automation.browser.launched", headless=self.headless)
        return self._browser

    async def get_page(self, session_id: str) -> Page:
        """
        The page for ``session_id``.

        A cached page is reused while its title can still be read; otherwise
        a fresh page is opened with the desktop viewport and user agent.
        """
        page = self._sessions.get(session_id)
        if page is not None:
            try:
                await page.title()
                return page
            except Exception as e:
                logger.info("Session %s page is no longer usable (%s), creating a new one", session_id, e)
                self._sessions.pop(session_id, None)

        browser = await self.ensure_browser()
        page = await browser.new_page(
            viewport=dict(AUTOMATION_VIEWPORT),
            user_agent=AUTOMATION_USER_AGENT,
        )
        self._sessions[session_id] = page
        logger.info("Created new session %s", session_id)
        return page

    def state(self) -> BrowserState:
        if self._browser is None:
            return "disconnected"
        try:
            if not self._browser.is_connected():
                return "disconnected"
            pages = [page for context in self._browser.contexts for page in context.pages]
        except Exception as e:
            logger.warning("Browser state check failed: %s", e)
            return "error"
        return "connected" if pages else "no-pages"

    def reset(self) -> None:
        """Forget the browser and its sessions so the next task relaunches it."""
        logger.info("Browser context lost, will relaunch for the next task")
        self._browser = None
        self._sessions.clear()
        counter("automation.browser.reset")

    async def close(self) -> None:
        """
        Close every session page, the browser and the driver.

        Side Effects:
            - Terminates the Chromium process
        """
        for session_id, page in list(self._sessions.items()):
            try:
                await page.close()
            except Exception as e:
                logger.debug("Closing session %s failed: %s", session_id, e)
        self._sessions.clear()

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning("Closing browser failed: %s", e)
            self._browser = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    def stats(self) -> dict[str, Any]:
        return {
            "state": self.state(),
            "headless": self.headless,
            "sessions": self.active_sessions,
        }
