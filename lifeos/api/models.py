"""Pydantic request/response models for the LifeOS API.

Shared models plus the structural guard applied to free-form JSON bodies
(flow payloads carry whole documents, so their shape is bounded here).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# =============================================================================
# VALIDATION HELPERS
# =============================================================================

MAX_COLLECTION_SIZE = 1000  # Maximum keys in a dict or items in a list
MAX_STRING_LENGTH = 50_000  # Resume text is the longest legitimate value
MAX_NESTING_DEPTH = 10


def validate_json_structure(
    data: Any,
    max_items: int = MAX_COLLECTION_SIZE,
    max_str_len: int = MAX_STRING_LENGTH,
    max_depth: int = MAX_NESTING_DEPTH,
    current_depth: int = 0,
) -> None:
    """
    Bound the size and nesting of a decoded JSON value.

    Protects against:
    - Deeply nested dicts or lists
    - Very large collections (memory)
    - Oversized strings sent on to the model

    Raises:
        ValueError: If any limit is exceeded
    """
    if current_depth > max_depth:
        raise ValueError(f"Nesting exceeds maximum depth of {max_depth}")

    if isinstance(data, dict):
        if len(data) > max_items:
            raise ValueError(f"Object has too many keys: {len(data)} > {max_items}")
        for key, value in data.items():
            if isinstance(key, str) and len(key) > 100:
                raise ValueError(f"Key too long: {len(key)} > 100")
            validate_json_structure(value, max_items, max_str_len, max_depth, current_depth + 1)
    elif isinstance(data, list):
        if len(data) > max_items:
            raise ValueError(f"List too long: {len(data)} > {max_items}")
        for item in data:
            validate_json_structure(item, max_items, max_str_len, max_depth, current_depth + 1)
    elif isinstance(data, str) and len(data) > max_str_len:
        raise ValueError(f"String value too long: {len(data)} > {max_str_len}")


# =============================================================================
# SHARED MODELS
# =============================================================================


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    error_count: int = 1
    invalid_fields: list[str] = []


class SaveResponse(ApiModel):
    success: bool = True
    persisted: bool
    updated_at: str


class DeleteResponse(ApiModel):
    success: bool
    deleted: bool


class CriticalStepsResponse(ApiModel):
    steps: list[dict[str, Any]]
    data_hash: str
    generated_at: str | None = None
    generated: bool


class DailyJobCheckResponse(ApiModel):
    ran: bool
    added: list[dict[str, Any]] = Field(default_factory=list)
    last_check: str | None = None


class ProcessTaskRequest(ApiModel):
    prompt: str | None = None
    model: str | None = None
    task_id: str | None = None


class ProcessTaskResponse(ApiModel):
    success: bool
    result: str
    execution_time: int
    model: str
    task_id: str
