"""
AppData persistence: the ``users`` table plus an in-process cache.

AppDataRepository is the thin SQL layer (one JSON document per user id).
AppDataStore adds what the web client used to do around it: a 5-minute
document cache, optimistic updates with debounced writes, defaults for
older documents and the monthly EMI roll-forward on load.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from functools import lru_cache
from typing import Any

from pydantic import ValidationError

from lifeos.appdata.defaults import initial_data, merge_with_defaults
from lifeos.appdata.loans import advance_loan_emis
from lifeos.appdata.models import AppData
from lifeos.appdata.writer import DebouncedWriter
from lifeos.config import APPDATA_CACHE_TTL_SECONDS, APPDATA_WRITE_DEBOUNCE_SECONDS
from lifeos.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event, time_block
from lifeos.storage.cache import TTLCache

logger = get_logger(__name__)


class AppDataCorruptError(ValueError):
    """Raised when a stored document is not valid JSON or not a valid AppData."""


class AppDataRepository:
    """CRUD for the ``users`` table. Documents cross this boundary as dicts."""

    @staticmethod
    @retry_on_db_lock()
    def fetch(user_id: str) -> dict[str, Any] | None:
        """
        Returns:
            The stored document, or None when the user has no row

        Raises:
            AppDataCorruptError: If the stored text is not a JSON object
        """
        with get_db_connection() as conn:
            row = conn.execute("SELECT data FROM users WHERE id = ?", (user_id,)).fetchone()

        if row is None:
            return None
        try:
            document = json.loads(row["data"])
        except json.JSONDecodeError as e:
            counter("appdata.corrupt_document")
            raise AppDataCorruptError(f"Stored document for user {user_id} is not valid JSON") from e
        if not isinstance(document, dict):
            counter("appdata.corrupt_document")
            raise AppDataCorruptError(f"Stored document for user {user_id} is not an object")
        return document

    @staticmethod
    @retry_on_db_lock()
    def save(user_id: str, document: dict[str, Any]) -> None:
        """
        Insert or overwrite the user's document.

        Side Effects:
            - Upserts a row in users and bumps updated_at
        """
        payload = json.dumps(document, ensure_ascii=False, separators=(",", ":"))
        with time_block("appdata.save.latency"), db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO users (id, data) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET data = excluded.data, updated_at = CURRENT_TIMESTAMP
                """,
                (user_id, payload),
            )
        logger.debug("Saved document for user %s (%d bytes)", user_id, len(payload))

    @staticmethod
    @retry_on_db_lock()
    def delete(user_id: str) -> bool:
        with db_transaction() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    @staticmethod
    def exists(user_id: str) -> bool:
        with get_db_connection() as conn:
            row = conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
        return row is not None


def _validate(user_id: str, document: dict[str, Any]) -> AppData:
    try:
        return AppData.model_validate(document)
    except ValidationError as e:
        counter("appdata.invalid_document")
        raise AppDataCorruptError(
            f"Stored document for user {user_id} failed validation ({e.error_count()} errors)"
        ) from e


class AppDataStore:
    """
    Per-user document access with caching and debounced writes.

    Every method hands out deep copies, so callers may mutate the returned
    AppData freely and pass it back to save().
    """

    def __init__(
        self,
        cache_ttl_seconds: float = APPDATA_CACHE_TTL_SECONDS,
        debounce_seconds: float = APPDATA_WRITE_DEBOUNCE_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._cache: TTLCache[AppData] = TTLCache(name="appdata", ttl_seconds=cache_ttl_seconds)
        self._writer = DebouncedWriter(AppDataRepository.save, delay_seconds=debounce_seconds)
        self._clock = clock

    @property
    def writer(self) -> DebouncedWriter:
        return self._writer

    def load(self, user_id: str) -> AppData:
        """
        Return the user's document, creating the starter document on first use.

        A cache hit younger than the TTL skips the database. On a miss the
        newest known state is used (a pending debounced write beats the
        stored row), defaults are merged in, and EMIs that fell due since
        the last visit are credited and persisted.

        Raises:
            AppDataCorruptError: If the stored document cannot be read
        """
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached.model_copy(deep=True)

        with time_block("appdata.load.latency"):
            document = self._writer.pending(user_id)
            if document is None:
                document = AppDataRepository.fetch(user_id)

            if document is None:
                data = AppData.model_validate(initial_data())
                AppDataRepository.save(user_id, data.to_json_dict())
                log_event("appdata.user_initialized", user_id=user_id)
            else:
                data = _validate(user_id, merge_with_defaults(document))
                if advance_loan_emis(data, self._clock()):
                    self.save(user_id, data, sync=True)
                    return data.model_copy(deep=True)

        self._cache.put(user_id, data.model_copy(deep=True))
        return data

    def save(self, user_id: str, data: AppData, sync: bool = False) -> None:
        """
        Replace the user's document.

        The cache is updated immediately. The database write is debounced
        unless ``sync`` is set, in which case any pending write is dropped
        and this state is written before returning.
        """
        self._cache.put(user_id, data.model_copy(deep=True))
        document = data.to_json_dict()
        if sync:
            self._writer.cancel(user_id)
            AppDataRepository.save(user_id, document)
        else:
            self._writer.schedule(user_id, document)

    def update(self, user_id: str, mutator: Callable[[AppData], Any], sync: bool = False) -> AppData:
        """Load, apply ``mutator`` in place, save; returns the new state."""
        data = self.load(user_id)
        mutator(data)
        self.save(user_id, data, sync=sync)
        return data.model_copy(deep=True)

    def delete(self, user_id: str) -> bool:
        self._writer.cancel(user_id)
        self._cache.invalidate(user_id)
        deleted = AppDataRepository.delete(user_id)
        if deleted:
            log_event("appdata.user_deleted", user_id=user_id)
        return deleted

    def invalidate(self, user_id: str) -> None:
        self._cache.invalidate(user_id)

    def flush(self) -> int:
        """Write every pending document now (used on shutdown)."""
        return self._writer.flush()

    def last_save_error(self, user_id: str) -> str | None:
        return self._writer.last_error(user_id)

    def clear(self) -> None:
        """Drop cached documents and pending writes (used by tests)."""
        self._writer.cancel_all()
        self._cache.clear()

    def stats(self) -> dict[str, Any]:
        return {"cache": self._cache.stats(), "pending_writes": self._writer.pending_count()}


@lru_cache(maxsize=1)
def get_store() -> AppDataStore:
    """Process-wide AppDataStore singleton."""
    return AppDataStore()
