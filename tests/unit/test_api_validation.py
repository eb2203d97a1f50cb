"""
Tests for request validation in the LifeOS API.

Tests validation logic for:
- validate_json_structure() limits on free-form flow payloads
- Flow input models (required fields, bounds, dropped extras)
- ProcessTaskRequest camelCase aliases
"""

import pytest
from pydantic import ValidationError

from lifeos.api.models import (
    MAX_COLLECTION_SIZE,
    MAX_NESTING_DEPTH,
    MAX_STRING_LENGTH,
    ProcessTaskRequest,
    validate_json_structure,
)
from lifeos.flows.schemas import GoalTipsInput, ModuleSuggestionsInput, TravelItineraryInput


def wrap(value, levels: int, as_list: bool = False):
    for i in range(levels):
        value = [value] if as_list or i % 2 else {"nested": value}
    return value


class TestJsonStructureValidation:
    """Tests for validate_json_structure() edge cases"""

    def test_typical_document_passes(self, sample_resume):
        validate_json_structure({"resume": sample_resume, "context": {"goals": [{"title": "Run"}]}})

    def test_max_depth_boundary_passes(self):
        validate_json_structure(wrap("value", MAX_NESTING_DEPTH))

    def test_max_depth_plus_one_fails(self):
        with pytest.raises(ValueError, match="exceeds maximum depth"):
            validate_json_structure(wrap("value", MAX_NESTING_DEPTH + 1))

    def test_deeply_nested_lists_rejected(self):
        with pytest.raises(ValueError, match="exceeds maximum depth"):
            validate_json_structure({"data": wrap({"attack": "payload"}, MAX_NESTING_DEPTH + 1, as_list=True)})

    def test_too_many_keys(self):
        with pytest.raises(ValueError, match="too many keys"):
            validate_json_structure({f"k{i}": i for i in range(MAX_COLLECTION_SIZE + 1)})

    def test_list_too_long(self):
        with pytest.raises(ValueError, match="List too long"):
            validate_json_structure({"items": list(range(MAX_COLLECTION_SIZE + 1))})

    def test_long_key_rejected(self):
        with pytest.raises(ValueError, match="Key too long"):
            validate_json_structure({"k" * 101: 1})

    def test_string_limit(self):
        validate_json_structure({"resumeText": "x" * MAX_STRING_LENGTH})
        with pytest.raises(ValueError, match="String value too long"):
            validate_json_structure({"resumeText": "x" * (MAX_STRING_LENGTH + 1)})


class TestFlowInputValidation:
    """Tests for flow request models"""

    def test_goal_tips_requires_both_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            GoalTipsInput.model_validate({"goal": "Run 5k", "obstacle": ""})
        assert exc_info.value.errors()[0]["loc"] == ("obstacle",)

    def test_unknown_keys_are_dropped(self):
        data = GoalTipsInput.model_validate({"goal": "Run", "obstacle": "Knee", "debug": True})
        assert "debug" not in data.model_dump()

    @pytest.mark.parametrize("duration", [1, 30])
    def test_itinerary_duration_bounds_pass(self, duration):
        assert TravelItineraryInput(destination="Goa", duration=duration).duration == duration

    def test_itinerary_duration_zero_fails(self):
        with pytest.raises(ValidationError):
            TravelItineraryInput(destination="Goa", duration=0)

    def test_module_name_must_be_known(self):
        with pytest.raises(ValidationError):
            ModuleSuggestionsInput.model_validate({"module": "Horoscope"})

    def test_module_suggestions_accept_camel_case(self):
        data = ModuleSuggestionsInput.model_validate(
            {"module": "MonthlyPlan", "userQuery": "What next?", "focusedMonth": "August 2025"}
        )
        assert data.user_query == "What next?"
        assert data.focused_month == "August 2025"


class TestProcessTaskRequest:
    def test_aliases(self):
        request = ProcessTaskRequest.model_validate({"prompt": "Hi", "model": "gemini-2.5-pro", "taskId": "t1"})
        assert request.task_id == "t1"

    def test_all_fields_optional(self):
        request = ProcessTaskRequest.model_validate({})
        assert request.prompt is None and request.task_id is None
