"""
Random Unsplash photo lookup for the dashboard's decorative images.

The access key stays on the server; the browser only ever sees the
photo URL.
"""

from __future__ import annotations

import os
from typing import Any

import httpx
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from lifeos.config import UNSPLASH_RANDOM_PHOTO_URL, UNSPLASH_TIMEOUT_SECONDS
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter

router = APIRouter(prefix="/api/unsplash", tags=["images"])
logger = get_logger(__name__)


def _error(status_code: int, error: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error})


@router.get("")
async def random_photo(query: str | None = None) -> Any:
    """
    Return ``{"url": ...}`` for a random photo matching ``query``.

    Unsplash errors are passed through with their status code.
    """
    if not query:
        return _error(400, "Query parameter is required")

    access_key = os.getenv("UNSPLASH_ACCESS_KEY", "")
    if not access_key:
        logger.error("UNSPLASH_ACCESS_KEY is not set")
        return _error(500, "Unsplash API key is not configured")

    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(
                UNSPLASH_RANDOM_PHOTO_URL,
                params={"query": query, "client_id": access_key},
                timeout=UNSPLASH_TIMEOUT_SECONDS,
            )
        except httpx.RequestError as e:
            logger.error("Unsplash request failed: %s", e)
            counter("unsplash.errors")
            return _error(500, "Internal Server Error")

    try:
        payload = response.json()
    except ValueError:
        payload = {}

    if response.status_code != 200:
        logger.warning("Unsplash returned status %d", response.status_code)
        counter("unsplash.errors")
        errors = payload.get("errors") if isinstance(payload, dict) else None
        return _error(response.status_code, errors or "Failed to fetch image from Unsplash")

    try:
        url = payload["urls"]["regular"]
    except (KeyError, TypeError):
        logger.error("Unsplash response had no regular photo URL")
        counter("unsplash.errors")
        return _error(500, "Internal Server Error")

    counter("unsplash.photos")
    return {"url": url}
