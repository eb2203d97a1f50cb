"""Travel flows: a destination for this month, an itinerary and a cover image."""

from __future__ import annotations

from lifeos.config import GEMINI_IMAGE_MODEL
from lifeos.flows.context import current_month_name, to_prompt_json
from lifeos.flows.schemas import (
    TravelImageInput,
    TravelImageOutput,
    TravelItineraryInput,
    TravelItineraryOutput,
    TravelSuggestionInput,
    TravelSuggestionOutput,
)
from lifeos.infrastructure.llm_budget import enforce_budget, record_llm_call
from lifeos.llm.client import LLMError, generate_image, generate_structured
from lifeos.llm.errors import execute_flow
from lifeos.llm.prompts import render_prompt

PROFILE_BLOCK = """
User Profile Data:
{user_data}

Based on the user's profile, suggest a budget-friendly travel destination that would be perfect for them this month. Consider:
- Their financial situation (emergency fund, income sources, existing travel goals)
- Their career status and availability
- Their current life priorities and goals
- Previous travel destinations they've visited
"""
NO_PROFILE_BLOCK = (
    "\nSuggest one interesting budget-friendly travel destination that is particularly good "
    "to visit during this month.\n"
)


def generate_travel_suggestion(
    data: TravelSuggestionInput | None = None, user_id: str | None = None
) -> TravelSuggestionOutput:
    """One destination for the current month, optionally personalised and never ``exclude``."""
    data = data or TravelSuggestionInput()

    def run() -> TravelSuggestionOutput:
        profile_block = (
            PROFILE_BLOCK.format(user_data=to_prompt_json(data.user_data))
            if data.user_data
            else NO_PROFILE_BLOCK
        )
        exclude_block = (
            f"\nDo not suggest the following destination again: {data.exclude}.\n" if data.exclude else ""
        )
        prompt = render_prompt(
            "travel_suggestion",
            current_month=current_month_name(),
            profile_block=profile_block,
            exclude_block=exclude_block,
        )
        # Asking again for a different place must not hit the cache
        result = generate_structured(
            "travel_suggestion",
            prompt,
            TravelSuggestionOutput,
            user_id=user_id,
            use_cache=not data.exclude,
        )
        if result is None:
            raise LLMError(
                "The AI model failed to generate a travel suggestion. This may be a temporary issue."
            )
        return result

    return execute_flow(run, "travel suggestion")


def generate_travel_itinerary(
    data: TravelItineraryInput, user_id: str | None = None
) -> TravelItineraryOutput:
    def run() -> TravelItineraryOutput:
        prompt = render_prompt(
            "travel_itinerary", destination=data.destination, duration=data.duration
        )
        result = generate_structured("travel_itinerary", prompt, TravelItineraryOutput, user_id=user_id)
        if result is None:
            raise LLMError(
                "The AI model failed to generate a travel itinerary. This may be a temporary issue."
            )
        return result

    return execute_flow(run, "travel itinerary")


def generate_travel_image(data: TravelImageInput, user_id: str | None = None) -> TravelImageOutput:
    """
    Photo of the destination as a data URI.

    Side Effects:
        - Counts against the user's daily LLM budget
    """

    def run() -> TravelImageOutput:
        if user_id is not None:
            enforce_budget(user_id)
        try:
            uri = generate_image(
                render_prompt("travel_image", destination=data.destination), GEMINI_IMAGE_MODEL
            )
        finally:
            if user_id is not None:
                record_llm_call(user_id, "travel_image")
        if not uri:
            raise LLMError("Image generation failed to return a valid image.")
        return TravelImageOutput(image_data_uri=uri)

    return execute_flow(run, "travel image")
