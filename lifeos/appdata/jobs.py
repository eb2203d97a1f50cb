"""Daily AI job suggestions: when to run them and how they enter the tracker."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from lifeos.appdata.models import AppData, JobApplication
from lifeos.config import JOB_CHECK_HOUR
from lifeos.observability.telemetry import counter
from lifeos.utils.dates import parse_timestamp, to_timestamp


def job_check_due(data: AppData, now: datetime | None = None) -> bool:
    """
    True once per day, at or after JOB_CHECK_HOUR local time, for users with a resume.

    The check is due when ``now`` is past today's check hour and the last
    recorded check happened before it.
    """
    if data.resume is None:
        return False

    now = now or datetime.now()
    check_time = now.replace(hour=JOB_CHECK_HOUR, minute=0, second=0, microsecond=0)
    if now < check_time:
        return False

    last_check = parse_timestamp(data.last_job_suggestion_check) or datetime.min
    return last_check < check_time


def merge_job_suggestions(
    data: AppData,
    suggestions: Iterable[Any],
    now: datetime | None = None,
) -> list[JobApplication]:
    """
    Put new suggestions at the top of the tracker and stamp the check time.

    Each suggestion needs ``company`` and ``role`` (objects or dicts).
    Pairs already tracked, in any status, are skipped.

    Returns:
        The applications that were added, newest first
    """
    now = now or datetime.now()
    stamp = to_timestamp(now)
    added: list[JobApplication] = []

    for suggestion in suggestions:
        fields = suggestion if isinstance(suggestion, dict) else suggestion.model_dump()
        company, role = fields["company"], fields["role"]
        if any(job.matches(company, role) for job in data.job_applications):
            continue
        if any(job.matches(company, role) for job in added):
            continue
        added.append(
            JobApplication(
                company=company,
                role=role,
                reasoning=fields.get("reasoning"),
                status="Need to Apply",
                source="AI",
                date=stamp,
            )
        )

    # Suggestion order is kept: the first suggestion ends up first in the list
    data.job_applications[:0] = added
    data.last_job_suggestion_check = stamp
    counter("appdata.jobs.suggestions_added", len(added))
    return added
