"""Helpers for turning documents into prompt text."""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel


def to_prompt_json(value: Any) -> str:
    """Pretty JSON for embedding in a prompt; models are dumped with camelCase keys."""
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True, mode="json", exclude_none=True)
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def current_date(today: date | None = None) -> str:
    """ISO date used in prompts (also makes cached replies expire with the day)."""
    return (today or date.today()).isoformat()


def current_month_name(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%B")
