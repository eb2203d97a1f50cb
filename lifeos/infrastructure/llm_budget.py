"""
Daily budget for generative calls.

Every flow invocation that actually reaches Gemini is counted in the
``llm_usage`` table, per user and in total. Calls beyond either limit are
refused before the model is contacted.
"""

from __future__ import annotations

from datetime import date
from typing import NamedTuple

from lifeos.config import LLM_GLOBAL_DAILY_LIMIT, LLM_USER_DAILY_LIMIT
from lifeos.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter, log_event

logger = get_logger(__name__)


class BudgetStatus(NamedTuple):
    """Usage so far today and whether one more call is allowed."""

    user_calls_today: int
    user_limit: int
    global_calls_today: int
    global_limit: int
    is_allowed: bool
    reason: str | None


class BudgetExceededError(RuntimeError):
    """Raised when a user or the whole service is out of generative calls for today."""

    def __init__(self, status: BudgetStatus):
        super().__init__(status.reason or "LLM budget exceeded")
        self.status = status


@retry_on_db_lock()
def check_budget(
    user_id: str,
    user_limit: int | None = None,
    global_limit: int | None = None,
) -> BudgetStatus:
    """
    Limits default to LLM_USER_DAILY_LIMIT and LLM_GLOBAL_DAILY_LIMIT, which
    config reads from the environment once at import. Changing them needs a
    restart.
    """
    user_limit = LLM_USER_DAILY_LIMIT if user_limit is None else user_limit
    global_limit = LLM_GLOBAL_DAILY_LIMIT if global_limit is None else global_limit
    today = date.today().isoformat()

    with get_db_connection() as conn:
        user_calls = conn.execute(
            "SELECT COALESCE(SUM(call_count), 0) FROM llm_usage WHERE user_id = ? AND call_date = ?",
            (user_id, today),
        ).fetchone()[0]
        global_calls = conn.execute(
            "SELECT COALESCE(SUM(call_count), 0) FROM llm_usage WHERE call_date = ?",
            (today,),
        ).fetchone()[0]

    reason = None
    if user_calls >= user_limit:
        reason = f"User daily limit exceeded ({user_calls}/{user_limit})"
    elif global_calls >= global_limit:
        reason = f"Global daily limit exceeded ({global_calls}/{global_limit})"

    return BudgetStatus(
        user_calls_today=user_calls,
        user_limit=user_limit,
        global_calls_today=global_calls,
        global_limit=global_limit,
        is_allowed=reason is None,
        reason=reason,
    )


def enforce_budget(user_id: str) -> BudgetStatus:
    """
    Raises:
        BudgetExceededError: When check_budget() refuses the call
    """
    status = check_budget(user_id)
    if not status.is_allowed:
        counter("llm.budget.refused")
        log_event("llm.budget.refused", user_id=user_id, reason=status.reason)
        raise BudgetExceededError(status)
    return status


@retry_on_db_lock()
def record_llm_call(user_id: str, call_type: str) -> None:
    """
    Count one generative call for ``user_id`` under ``call_type`` (the flow name).

    Side Effects:
        - Upserts a row in llm_usage
    """
    today = date.today().isoformat()

    with db_transaction() as conn:
        conn.execute(
            """
            INSERT INTO llm_usage (user_id, call_type, call_date, call_count)
            VALUES (?, ?, ?, 1)
            ON CONFLICT(user_id, call_type, call_date)
            DO UPDATE SET call_count = call_count + 1
            """,
            (user_id, call_type, today),
        )

    counter(f"llm.budget.call.{call_type}")
    logger.debug("Recorded LLM call: user=%s, type=%s", user_id, call_type)


def get_daily_usage_report(for_date: date | None = None) -> dict:
    """Totals, per-flow breakdown and unique users for one day."""
    report_date = (for_date or date.today()).isoformat()

    with get_db_connection() as conn:
        total_calls = conn.execute(
            "SELECT COALESCE(SUM(call_count), 0) FROM llm_usage WHERE call_date = ?",
            (report_date,),
        ).fetchone()[0]
        by_type = {
            row[0]: row[1]
            for row in conn.execute(
                """
                SELECT call_type, SUM(call_count)
                FROM llm_usage
                WHERE call_date = ?
                GROUP BY call_type
                """,
                (report_date,),
            ).fetchall()
        }
        unique_users = conn.execute(
            "SELECT COUNT(DISTINCT user_id) FROM llm_usage WHERE call_date = ?",
            (report_date,),
        ).fetchone()[0]

    return {
        "date": report_date,
        "total_calls": total_calls,
        "unique_users": unique_users,
        "by_type": by_type,
        "limits": {
            "user_daily": LLM_USER_DAILY_LIMIT,
            "global_daily": LLM_GLOBAL_DAILY_LIMIT,
        },
    }
