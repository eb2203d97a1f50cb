"""
Gemini model manager.

One cached GenerativeModel per model name. Two backends are supported:
  1. Vertex AI SDK when GOOGLE_CLOUD_PROJECT is set (service account auth)
  2. google-generativeai with GEMINI_API_KEY or GOOGLE_API_KEY otherwise
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from lifeos.config import GEMINI_LOCATION, GEMINI_MODEL
from lifeos.observability.logging import get_logger

logger = get_logger(__name__)

# Short names accepted from callers; anything else falls back to GEMINI_MODEL
GEMINI_MODELS: tuple[str, ...] = (
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
    "gemini-2.0-flash-preview-image-generation",
)

MISSING_KEY_MESSAGE = (
    "FAILED_PRECONDITION: Please set the GEMINI_API_KEY or GOOGLE_API_KEY environment "
    "variable (or GOOGLE_CLOUD_PROJECT for Vertex AI)."
)


class GeminiInitializationError(RuntimeError):
    """Raised when no Gemini backend can be configured."""


def resolve_model_name(model_name: str | None) -> str:
    """Map a requested model to a known one, stripping a ``googleai/`` prefix."""
    if not model_name:
        return GEMINI_MODEL
    name = model_name.split("/", 1)[1] if model_name.startswith("googleai/") else model_name
    if name not in GEMINI_MODELS:
        logger.warning("Unknown Gemini model %r, using %s", model_name, GEMINI_MODEL)
        return GEMINI_MODEL
    return name


def get_api_key() -> str | None:
    return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")


def gemini_backend() -> str | None:
    """"vertex", "genai", or None when no credentials are configured."""
    if os.getenv("GOOGLE_CLOUD_PROJECT"):
        return "vertex"
    if get_api_key():
        return "genai"
    return None


def llm_ready() -> bool:
    return gemini_backend() is not None


@lru_cache(maxsize=8)
def get_gemini_model(model_name: str | None = None) -> Any:
    """
    Return the shared GenerativeModel for ``model_name``.

    Raises:
        GeminiInitializationError: If no credentials are set or the SDK is missing.
            The message starts with FAILED_PRECONDITION for missing credentials.
    """
    name = resolve_model_name(model_name)
    backend = gemini_backend()

    if backend is None:
        raise GeminiInitializationError(MISSING_KEY_MESSAGE)

    if backend == "vertex":
        try:
            import vertexai
            from vertexai.generative_models import GenerativeModel
        except ImportError as e:
            raise GeminiInitializationError(
                "GOOGLE_CLOUD_PROJECT is set but google-cloud-aiplatform is not installed"
            ) from e

        project = os.environ["GOOGLE_CLOUD_PROJECT"]
        vertexai.init(project=project, location=GEMINI_LOCATION)
        logger.info(
            "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
            project,
            GEMINI_LOCATION,
            name,
        )
        return GenerativeModel(name)

    try:
        import google.generativeai as genai
    except ImportError as e:
        raise GeminiInitializationError("google-generativeai is not installed") from e

    genai.configure(api_key=get_api_key())
    logger.info("Initialized Gemini model (google-generativeai): model=%s", name)
    return genai.GenerativeModel(name)


def clear_model_cache() -> None:
    """Forget cached models, e.g. after credentials change."""
    get_gemini_model.cache_clear()
    logger.info("Cleared Gemini model cache")
