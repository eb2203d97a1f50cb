"""
Structured generation on top of Gemini.

A flow hands over a finished prompt and a pydantic schema; this module calls
the model (retrying transient failures), repairs the usual JSON damage,
validates the result and caches it for a day keyed by (flow, prompt).

Safety features:
- Per-user daily budget checked before the model is contacted
- One corrective retry when the reply is not valid JSON for the schema
- Prompts are never logged in full, only a preview and a hash
"""

from __future__ import annotations

import base64
import hashlib
import json
import re
from typing import Any, TypeVar

from google.api_core import exceptions as google_exceptions
from pydantic import BaseModel, ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from lifeos.config import (
    LLM_CACHE_MAX_ENTRIES,
    LLM_CACHE_TTL_SECONDS,
    LLM_MAX_RETRIES,
    LLM_TIMEOUT_SECONDS,
)
from lifeos.infrastructure.llm_budget import enforce_budget, record_llm_call
from lifeos.llm.gemini import (
    MISSING_KEY_MESSAGE,
    GeminiInitializationError,
    gemini_backend,
    get_gemini_model,
)
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event, time_block
from lifeos.storage.cache import TTLCache

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

_LLM_CACHE = TTLCache[dict](
    name="llm_flow", ttl_seconds=LLM_CACHE_TTL_SECONDS, max_entries=LLM_CACHE_MAX_ENTRIES
)

STRICT_JSON_SUFFIX = (
    "\n\nIMPORTANT: Your previous answer could not be parsed. Respond with ONE valid JSON "
    "object only, no markdown fences and no commentary, matching this JSON schema:\n{schema}"
)


class LLMError(RuntimeError):
    """Raised when the model call itself fails (credentials, quota, network)."""


class LLMConfigurationError(LLMError):
    """Raised when no Gemini credentials or SDK are available (FAILED_PRECONDITION)."""


class LLMSchemaError(ValueError):
    """Raised when the reply is not JSON or does not match the expected schema."""


def _cache_key(flow_name: str, prompt: str) -> str:
    return hashlib.sha256(f"{flow_name}::{prompt}".encode()).hexdigest()


def _redact_prompt(prompt: str) -> str:
    preview = prompt[:50]
    digest = hashlib.sha256(prompt.encode()).hexdigest()[:12]
    return f"{preview}... (hash:{digest})"


def extract_json(text: str) -> dict[str, Any]:
    """
    Parse a JSON object out of a model reply, repairing common damage.

    Handles markdown fences, prose around the object, missing commas between
    fields and trailing commas.

    Raises:
        json.JSONDecodeError: If no repair produces valid JSON
    """
    text = re.sub(r"```(?:json)?\s*", "", text).strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("JSON parse error (attempting repair): %s", e)
        original_error = e

    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        raise original_error

    candidate = match.group(0)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    repaired = re.sub(r'"\s*\n\s*"', '",\n"', candidate)
    repaired = re.sub(r"(\d+\.?\d*|true|false|null)\s*\n\s*\"", r'\1,\n"', repaired)
    repaired = re.sub(r'\}\s*\n\s*"', '},\n"', repaired)
    repaired = re.sub(r'\]\s*\n\s*"', '],\n"', repaired)
    try:
        result = json.loads(repaired)
        logger.info("JSON repair succeeded (missing commas fixed)")
        return result
    except json.JSONDecodeError:
        pass

    repaired = re.sub(r",\s*([\}\]])", r"\1", repaired)
    result = json.loads(repaired)
    logger.info("JSON repair succeeded (trailing commas removed)")
    return result


def _generation_kwargs(json_mode: bool) -> dict[str, Any]:
    config: dict[str, Any] = {"temperature": 0.7}
    if json_mode:
        config["response_mime_type"] = "application/json"
    kwargs: dict[str, Any] = {"generation_config": config}
    if gemini_backend() == "genai":
        kwargs["request_options"] = {"timeout": LLM_TIMEOUT_SECONDS}
    return kwargs


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError)),
    reraise=True,
)
def _call_with_retry(prompt: str, model_name: str | None, json_mode: bool) -> Any:
    model = get_gemini_model(model_name)
    try:
        return model.generate_content(prompt, **_generation_kwargs(json_mode))
    except google_exceptions.DeadlineExceeded as e:
        counter("llm.timeout")
        logger.warning("Gemini call timed out after %ds", LLM_TIMEOUT_SECONDS)
        raise TimeoutError(f"Gemini call timed out: {e}") from e
    except google_exceptions.ServiceUnavailable as e:
        counter("llm.service_unavailable")
        logger.warning("Gemini unavailable, will retry: %s", e)
        raise ConnectionError(f"Gemini service unavailable: {e}") from e


def _response_text(response: Any) -> str:
    try:
        return response.text or ""
    except ValueError:
        # Blocked or empty candidates raise on .text
        return ""


def call_model(prompt: str, model_name: str | None = None, json_mode: bool = True) -> str:
    """
    Send ``prompt`` to Gemini and return the reply text.

    Raises:
        LLMError: On any model failure; the message starts with an error code
            (FAILED_PRECONDITION, QUOTA_EXCEEDED, RATE_LIMIT_EXCEEDED, NETWORK_ERROR)
            where one applies
    """
    try:
        with time_block("llm.call.latency"):
            response = _call_with_retry(prompt, model_name, json_mode)
    except GeminiInitializationError as e:
        raise LLMConfigurationError(str(e)) from e
    except (google_exceptions.PermissionDenied, google_exceptions.Unauthenticated) as e:
        raise LLMConfigurationError(MISSING_KEY_MESSAGE) from e
    except google_exceptions.ResourceExhausted as e:
        code = "RATE_LIMIT_EXCEEDED" if "rate" in str(e).lower() else "QUOTA_EXCEEDED"
        raise LLMError(f"{code}: {e}") from e
    except (TimeoutError, ConnectionError) as e:
        raise LLMError(f"NETWORK_ERROR: {e}") from e
    except google_exceptions.GoogleAPICallError as e:
        raise LLMError(f"Gemini model call failed: {e}") from e

    counter("llm.call_success")
    return _response_text(response)


def _parse(raw: str, schema: type[M], flow_name: str) -> M:
    try:
        return schema.model_validate(extract_json(raw))
    except json.JSONDecodeError as exc:
        counter("llm.schema_validation_failures")
        log_event("llm.json_parse_error", flow=flow_name, error=str(exc), response_preview=raw[:100])
        raise LLMSchemaError(f"LLM response is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        counter("llm.schema_validation_failures")
        log_event("llm.schema_validation_failed", flow=flow_name, errors=exc.error_count())
        raise LLMSchemaError(f"LLM response doesn't match schema: {exc.error_count()} errors") from exc


def generate_structured(
    flow_name: str,
    prompt: str,
    schema: type[M],
    *,
    user_id: str | None = None,
    model_name: str | None = None,
    use_cache: bool = True,
) -> M | None:
    """
    Run ``prompt`` and return the reply validated against ``schema``.

    Returns:
        The validated model, or None when the model returned no content

    Raises:
        BudgetExceededError: If ``user_id`` is out of calls for today
        LLMError: If the model call fails
        LLMSchemaError: If the reply is still invalid after one corrective retry

    Side Effects:
        - Calls the Gemini API
        - Records the call in llm_usage when ``user_id`` is given
        - Reads/writes the in-memory flow cache
    """
    key = _cache_key(flow_name, prompt)
    if use_cache:
        cached = _LLM_CACHE.get(key)
        if cached is not None:
            counter("llm.cache_hit")
            log_event("llm.cache_hit", flow=flow_name, cache_key_hash=key[:12])
            return schema.model_validate(cached)
        counter("llm.cache_miss")

    if user_id is not None:
        enforce_budget(user_id)

    log_event("llm.call_start", flow=flow_name, prompt_preview=_redact_prompt(prompt))
    try:
        raw = call_model(prompt, model_name)
    except LLMError as e:
        counter("llm.call_error")
        log_event("llm.call_error", flow=flow_name, error=str(e)[:200])
        raise
    finally:
        if user_id is not None:
            record_llm_call(user_id, flow_name)

    if not raw.strip():
        counter("llm.empty_response")
        log_event("llm.empty_response", flow=flow_name)
        return None

    try:
        result = _parse(raw, schema, flow_name)
    except LLMSchemaError:
        counter("llm.corrective_retry")
        schema_json = json.dumps(schema.model_json_schema(by_alias=True))
        raw = call_model(prompt + STRICT_JSON_SUFFIX.format(schema=schema_json), model_name)
        if not raw.strip():
            return None
        result = _parse(raw, schema, flow_name)

    counter("llm.schema_validation_success")
    if use_cache:
        _LLM_CACHE.put(key, result.model_dump(by_alias=True, mode="json"))
    return result


def generate_text(prompt: str, model_name: str | None = None, user_id: str | None = None) -> str:
    """Free-form completion (no JSON mode, no caching)."""
    if user_id is not None:
        enforce_budget(user_id)
    try:
        return call_model(prompt, model_name, json_mode=False)
    finally:
        if user_id is not None:
            record_llm_call(user_id, "text")


def generate_image(prompt: str, model_name: str) -> str | None:
    """
    Ask an image-capable Gemini model for a picture.

    Returns:
        ``data:<mime>;base64,<data>`` for the first image part, or None
    """
    try:
        model = get_gemini_model(model_name)
        with time_block("llm.image.latency"):
            response = model.generate_content(prompt)
    except GeminiInitializationError as e:
        raise LLMConfigurationError(str(e)) from e
    except google_exceptions.GoogleAPICallError as e:
        raise LLMError(f"Gemini image generation failed: {e}") from e

    for candidate in getattr(response, "candidates", None) or []:
        for part in getattr(candidate.content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and str(getattr(inline, "mime_type", "")).startswith("image/"):
                data = inline.data
                encoded = data if isinstance(data, str) else base64.b64encode(data).decode("ascii")
                return f"data:{inline.mime_type};base64,{encoded}"
    return None


def clear_llm_cache() -> None:
    """
    Drop every cached flow result.

    Side Effects:
        - Clears _LLM_CACHE
    """
    _LLM_CACHE.clear()
    log_event("llm.cache_cleared")
