"""
User-facing errors for AI flows.

Every flow failure is turned into an AIFlowError whose message can be shown
to the user as-is. The raw cause stays on ``__cause__`` for logs.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from lifeos.infrastructure.llm_budget import BudgetExceededError
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event

logger = get_logger(__name__)

T = TypeVar("T")

API_KEY_MESSAGE = (
    "Please configure your Gemini API key in the .env file. "
    "Get your key from https://aistudio.google.com/app/apikey and add it as "
    "GEMINI_API_KEY or GOOGLE_API_KEY."
)
QUOTA_MESSAGE = (
    "You have exceeded your Gemini API quota. Please check your usage at "
    "https://aistudio.google.com/ and try again later."
)
RATE_LIMIT_MESSAGE = "Too many requests to the Gemini API. Please wait a moment and try again."
NETWORK_MESSAGE = (
    "Network error occurred while contacting the Gemini API. "
    "Please check your internet connection and try again."
)


class AIFlowError(RuntimeError):
    """A flow failed; ``str(error)`` is safe to show to the user."""

    def __init__(self, user_message: str, context: str = ""):
        super().__init__(user_message)
        self.user_message = user_message
        self.context = context


class FlowInputError(ValueError):
    """The caller gave a flow input it cannot work with (maps to HTTP 422)."""


def handle_ai_error(exc: BaseException, context: str) -> AIFlowError:
    """
    Map any flow failure to an AIFlowError with a user-facing message.

    Checks run in order against the exception text: credential precondition,
    quota, rate limit, network/timeout, model trouble, then a generic
    ``Failed to generate {context}: ...``.
    """
    if isinstance(exc, AIFlowError):
        return exc

    message = str(exc)
    if "FAILED_PRECONDITION" in message:
        user_message = API_KEY_MESSAGE
    elif "QUOTA_EXCEEDED" in message:
        user_message = QUOTA_MESSAGE
    elif "RATE_LIMIT_EXCEEDED" in message:
        user_message = RATE_LIMIT_MESSAGE
    elif (
        "NETWORK_ERROR" in message
        or "Connection" in message
        or "timeout" in message
        or isinstance(exc, (TimeoutError, ConnectionError))
    ):
        user_message = NETWORK_MESSAGE
    elif "model" in message:
        user_message = (
            f"The AI model encountered an issue while generating {context}. "
            "Please try again with different input."
        )
    elif message:
        user_message = f"Failed to generate {context}: {message}"
    else:
        user_message = f"Failed to generate {context}. Please try again."

    counter("ai_flow.errors")
    log_event("ai_flow.error", context=context, error_type=type(exc).__name__)
    return AIFlowError(user_message, context=context)


def execute_flow(operation: Callable[[], T], context: str) -> T:
    """
    Run ``operation`` and translate failures with handle_ai_error.

    Budget and input errors pass through untouched: the API layer answers
    those with 429 and 422 rather than a generation failure.
    """
    try:
        return operation()
    except (BudgetExceededError, FlowInputError):
        raise
    except Exception as exc:
        logger.error("AI flow failed (%s): %s", context, exc)
        raise handle_ai_error(exc, context) from exc
