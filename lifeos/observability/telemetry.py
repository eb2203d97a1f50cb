"""
In-process telemetry for the LifeOS services.

Nothing is exported to an external backend: events go to the log as
``event=<name> {fields}`` lines, counters and latency samples live in memory
so tests and the health endpoints can read them back.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("lifeos.telemetry")

# Background writers and the automation event loop touch these concurrently
_LOCK = threading.Lock()
_COUNTERS: dict[str, int] = {}
_LATENCIES: dict[str, list[float]] = {}
_MAX_SAMPLES = 1000


def _latency_key(metric_name: str) -> str:
    if metric_name.endswith("_ms") or not metric_name.endswith(".latency"):
        return metric_name
    return f"{metric_name}_ms"


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event. Callers redact user content before passing fields.

    Side Effects:
        - Writes to logger (info level)
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and return the new value.

    Side Effects:
        - Modifies _COUNTERS dict (in-memory state)
        - Writes to logger (debug level)
    """
    with _LOCK:
        value = _COUNTERS.get(name, 0) + increment
        _COUNTERS[name] = value
    logger.debug("counter=%s value=%s", name, value)
    return value


def get_counter(name: str) -> int:
    return _COUNTERS.get(name, 0)


def snapshot_counters(prefix: str = "") -> dict[str, int]:
    """Copy of all counters whose name starts with ``prefix``."""
    with _LOCK:
        return {k: v for k, v in _COUNTERS.items() if k.startswith(prefix)}


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Time the wrapped block and keep the sample for percentile stats.

    Only the most recent samples per metric are kept.

    Side Effects:
        - Appends to _LATENCIES dict (in-memory state)
        - Writes to logger (debug level) with timing
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        key = _latency_key(metric_name)
        logger.debug("timing=%s seconds=%.6f", key, elapsed)
        with _LOCK:
            samples = _LATENCIES.setdefault(key, [])
            samples.append(elapsed)
            if len(samples) > _MAX_SAMPLES:
                del samples[: len(samples) - _MAX_SAMPLES]


def get_latency_stats(metric_name: str) -> dict[str, float]:
    """Count, min, max, avg and p50/p95 for a timed metric (zeros when unseen)."""
    with _LOCK:
        samples = sorted(_LATENCIES.get(_latency_key(metric_name), []))
    if not samples:
        return {"count": 0, "min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p95": 0.0}

    count = len(samples)
    return {
        "count": count,
        "min": samples[0],
        "max": samples[-1],
        "avg": sum(samples) / count,
        "p50": samples[int(count * 0.50)],
        "p95": samples[min(int(count * 0.95), count - 1)],
    }


def reset_telemetry() -> None:
    """
    Clear counters and latency samples (used by tests).

    Side Effects:
        - Clears _COUNTERS and _LATENCIES (in-memory state)
    """
    with _LOCK:
        _COUNTERS.clear()
        _LATENCIES.clear()
