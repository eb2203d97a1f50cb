"""
Debounced persistence of AppData documents.

Edits arrive in bursts (every checkbox click replaces the whole document).
Each user gets one pending timer; a new document for the same user
replaces the pending one and restarts the timer, so only the last state of
a burst reaches the database.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from lifeos.config import APPDATA_WRITE_DEBOUNCE_SECONDS
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event

logger = get_logger(__name__)

SaveFn = Callable[[str, dict[str, Any]], None]


class DebouncedWriter:
    """Per-user debounce of document writes backed by threading.Timer."""

    def __init__(self, save_fn: SaveFn, delay_seconds: float = APPDATA_WRITE_DEBOUNCE_SECONDS):
        self._save_fn = save_fn
        self.delay_seconds = delay_seconds
        self._lock = threading.Lock()
        self._pending: dict[str, dict[str, Any]] = {}
        self._timers: dict[str, threading.Timer] = {}
        self._errors: dict[str, str] = {}

    def schedule(self, user_id: str, document: dict[str, Any]) -> None:
        """
        Queue ``document`` for ``user_id``, replacing any pending one.

        Side Effects:
            - Cancels the user's running timer and starts a new daemon timer
        """
        with self._lock:
            previous = self._timers.pop(user_id, None)
            if previous is not None:
                previous.cancel()
                counter("appdata.writer.coalesced")

            self._pending[user_id] = document
            timer = threading.Timer(self.delay_seconds, self._fire, args=(user_id,))
            timer.daemon = True
            self._timers[user_id] = timer
            timer.start()

    def pending(self, user_id: str) -> dict[str, Any] | None:
        """The document waiting to be written for ``user_id``, if any."""
        with self._lock:
            return self._pending.get(user_id)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def cancel(self, user_id: str) -> bool:
        """Drop the pending write for ``user_id``; True if there was one."""
        with self._lock:
            timer = self._timers.pop(user_id, None)
            if timer is not None:
                timer.cancel()
            return self._pending.pop(user_id, None) is not None

    def cancel_all(self) -> int:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            dropped = len(self._pending)
            self._timers.clear()
            self._pending.clear()
        return dropped

    def last_error(self, user_id: str) -> str | None:
        """Message of the user's most recent failed write (cleared on success)."""
        return self._errors.get(user_id)

    def flush(self, user_id: str | None = None) -> int:
        """
        Write pending documents now instead of waiting for their timers.

        Args:
            user_id: Flush only this user (default: everyone)

        Returns:
            Number of documents written successfully
        """
        with self._lock:
            users = [user_id] if user_id is not None else list(self._pending)
            for uid in users:
                timer = self._timers.pop(uid, None)
                if timer is not None:
                    timer.cancel()

        return sum(1 for uid in users if self._write(uid))

    def _fire(self, user_id: str) -> None:
        with self._lock:
            self._timers.pop(user_id, None)
        self._write(user_id)

    def _write(self, user_id: str) -> bool:
        with self._lock:
            document = self._pending.pop(user_id, None)
        if document is None:
            return False

        try:
            self._save_fn(user_id, document)
        except Exception as e:
            # Runs on a timer thread: there is no caller to re-raise to
            counter("appdata.writer.failed")
            self._errors[user_id] = str(e)
            logger.error("Debounced save failed for user %s: %s", user_id, e)
            log_event("appdata.save_failed", user_id=user_id, error=type(e).__name__)
            with self._lock:
                # Keep the newest state: a schedule() during the failed write wins
                self._pending.setdefault(user_id, document)
            return False

        self._errors.pop(user_id, None)
        counter("appdata.writer.saved")
        return True
