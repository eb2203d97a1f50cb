"""Unit tests for user-facing AI flow errors and error sanitization"""

from __future__ import annotations

import pytest

from lifeos.infrastructure.llm_budget import BudgetExceededError, BudgetStatus
from lifeos.llm.errors import (
    API_KEY_MESSAGE,
    NETWORK_MESSAGE,
    QUOTA_MESSAGE,
    RATE_LIMIT_MESSAGE,
    AIFlowError,
    FlowInputError,
    execute_flow,
    handle_ai_error,
)
from lifeos.utils.error_sanitizer import get_safe_error_detail, sanitize_error_message


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("FAILED_PRECONDITION: no key", API_KEY_MESSAGE),
        ("QUOTA_EXCEEDED: 429 quota", QUOTA_MESSAGE),
        ("RATE_LIMIT_EXCEEDED: slow down", RATE_LIMIT_MESSAGE),
        ("NETWORK_ERROR: reset by peer", NETWORK_MESSAGE),
        ("Connection refused", NETWORK_MESSAGE),
        ("request timeout after 60s", NETWORK_MESSAGE),
    ],
)
def test_known_failures_get_fixed_messages(raw, expected):
    error = handle_ai_error(RuntimeError(raw), "goal tips")

    assert isinstance(error, AIFlowError)
    assert error.user_message == expected
    assert error.context == "goal tips"


def test_timeout_type_is_network_error():
    assert handle_ai_error(TimeoutError(), "travel itinerary").user_message == NETWORK_MESSAGE


def test_model_trouble_mentions_context():
    error = handle_ai_error(RuntimeError("The model returned an invalid response"), "travel itinerary")

    assert error.user_message == (
        "The AI model encountered an issue while generating travel itinerary. "
        "Please try again with different input."
    )


def test_generic_failure_includes_message():
    error = handle_ai_error(ValueError("bad things happened"), "resume parsing")
    assert error.user_message == "Failed to generate resume parsing: bad things happened"


def test_empty_failure_message():
    error = handle_ai_error(ValueError(), "resume parsing")
    assert error.user_message == "Failed to generate resume parsing. Please try again."


def test_existing_flow_error_passes_through():
    original = AIFlowError("Already friendly", context="x")
    assert handle_ai_error(original, "y") is original


def test_execute_flow_wraps_failures():
    def boom():
        raise RuntimeError("QUOTA_EXCEEDED: nope")

    with pytest.raises(AIFlowError) as exc_info:
        execute_flow(boom, "goal tips")

    assert str(exc_info.value) == QUOTA_MESSAGE
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_execute_flow_lets_budget_and_input_errors_through():
    status = BudgetStatus(5, 5, 5, 100, False, "User daily limit exceeded (5/5)")

    def over_budget():
        raise BudgetExceededError(status)

    def bad_input():
        raise FlowInputError("Resume data is required to generate job suggestions.")

    with pytest.raises(BudgetExceededError):
        execute_flow(over_budget, "job suggestions")
    with pytest.raises(FlowInputError):
        execute_flow(bad_input, "job suggestions")


def test_execute_flow_returns_result():
    assert execute_flow(lambda: 42, "anything") == 42


# ---------------------------------------------------------------------------
# Sanitizer
# ---------------------------------------------------------------------------


def test_plain_client_messages_pass_through():
    assert sanitize_error_message("Unknown AI flow: foo", 404) == "Unknown AI flow: foo"
    assert sanitize_error_message(QUOTA_MESSAGE, 502) == QUOTA_MESSAGE


@pytest.mark.parametrize(
    "message",
    [
        'File "/srv/lifeos/llm/client.py", line 12',
        "sqlite3.OperationalError: no such table: users",
        "Invalid key AIzaSyA1234567890abcdefghijklmnop",
        "Bearer abc.def.ghi rejected",
        "error in lifeos.appdata.repository",
    ],
)
def test_sensitive_messages_are_replaced(message):
    assert sanitize_error_message(message, 400) == "Invalid request. Please check your input and try again."


def test_server_errors_never_echo_message():
    assert sanitize_error_message("something broke", 500) == "An internal error occurred. Please try again later."


def test_structured_text_is_replaced():
    assert sanitize_error_message("bad value {'a': 1}", 422) == "Invalid data format."


def test_safe_detail_prefers_context_for_server_errors():
    assert get_safe_error_detail(RuntimeError("db down"), 500, context="Failed to save data") == "Failed to save data"
    assert get_safe_error_detail(RuntimeError("Missing field"), 400) == "Missing field"
