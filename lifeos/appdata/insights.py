"""
Derived numbers for the dashboard overview.

None of this is stored: everything is recomputed from the document on
request. The one exception is the critical-steps fingerprint, which is saved
with the generated steps so they are only regenerated when the inputs change.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from datetime import date

from lifeos.appdata.models import AppData, CriticalStepsSnapshot, Step
from lifeos.config import DEFAULT_EMERGENCY_FUND_TARGET

# Document sections whose changes make cached critical steps stale
CRITICAL_HASH_FIELDS = (
    "goals",
    "monthlyPlan",
    "jobApplications",
    "loans",
    "emergencyFund",
    "sips",
    "incomeSources",
)


def _amount(value: str | None, default: float = 0.0) -> float:
    try:
        return float(str(value).replace(",", "").strip())
    except (TypeError, ValueError):
        return default


@dataclass
class Overview:
    overall_progress: int
    goals_completed: int
    total_goals: int
    goals_in_progress: int
    next_steps: list[dict] = field(default_factory=list)
    emergency_fund_progress: float = 0.0
    year_progress: float = 0.0
    days_left_in_year: int = 0
    completed_goals_progress: float = 0.0
    monthly_income: float = 0.0
    monthly_sip_total: float = 0.0
    car_sale_net: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def critical_data_hash(data: AppData) -> str:
    """sha256 over the canonical JSON of the sections listed in CRITICAL_HASH_FIELDS."""
    document = data.to_json_dict()
    relevant = {key: document.get(key) for key in CRITICAL_HASH_FIELDS}
    canonical = json.dumps(relevant, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def cached_critical_steps(data: AppData) -> CriticalStepsSnapshot | None:
    """The stored snapshot if it was generated from the current data, else None."""
    snapshot = data.critical_steps
    if snapshot is not None and snapshot.data_hash == critical_data_hash(data):
        return snapshot
    return None


def overview(data: AppData, today: date | None = None) -> Overview:
    today = today or date.today()
    all_steps: list[Step] = [step for goal in data.goals for step in goal.steps]
    completed_steps = sum(1 for step in all_steps if step.completed)
    overall = round(completed_steps / len(all_steps) * 100) if all_steps else 0

    goals_completed = sum(1 for goal in data.goals if goal.is_completed)
    # A goal with no steps counts as neither completed nor in progress
    goals_in_progress = sum(1 for goal in data.goals if not all(s.completed for s in goal.steps))

    fund = _amount(data.emergency_fund)
    target = _amount(data.emergency_fund_target) or float(DEFAULT_EMERGENCY_FUND_TARGET)
    fund_progress = min(fund / target * 100, 100.0) if target > 0 else 0.0

    year_end = date(today.year, 12, 31)
    days_in_year = (year_end - date(today.year, 1, 1)).days + 1
    days_left = max(0, (year_end - today).days)

    return Overview(
        overall_progress=overall,
        goals_completed=goals_completed,
        total_goals=len(data.goals),
        goals_in_progress=goals_in_progress,
        next_steps=[step.to_json_dict() for step in all_steps if not step.completed][:3],
        emergency_fund_progress=round(fund_progress, 1),
        year_progress=round((days_in_year - days_left) / days_in_year * 100, 1),
        days_left_in_year=days_left,
        completed_goals_progress=round(goals_completed / len(data.goals) * 100, 1) if data.goals else 0.0,
        monthly_income=sum(_amount(source.amount) for source in data.income_sources),
        monthly_sip_total=sum(_amount(sip.amount) for sip in data.sips),
        car_sale_net=_amount(data.car_sale_price) - _amount(data.car_loan_payoff),
    )
