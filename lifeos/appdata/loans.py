"""Monthly EMI bookkeeping for active loans."""

from __future__ import annotations

from datetime import datetime

from lifeos.appdata.models import AppData, Loan
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter
from lifeos.utils.dates import months_between, parse_timestamp, to_timestamp

logger = get_logger(__name__)


def _as_int(value: str | None) -> int | None:
    if value is None or str(value).strip() == "":
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def advance_loan(loan: Loan, now: datetime) -> bool:
    """
    Credit the EMIs that fell due since the loan was last touched.

    Only Active loans with a numeric tenure are considered. Months are counted
    by calendar month between ``lastAutoUpdate`` and ``now``; the paid count
    never exceeds the tenure. A loan that has never been stamped is stamped
    with ``now`` so counting starts from today.

    Returns:
        True if the loan was modified
    """
    tenure = _as_int(loan.tenure)
    if loan.status != "Active" or tenure is None:
        return False

    last_update = parse_timestamp(loan.last_auto_update)
    if last_update is None:
        loan.last_auto_update = to_timestamp(now)
        return True

    months = months_between(last_update, now)
    paid = _as_int(loan.emis_paid) or 0
    if months <= 0 or paid >= tenure:
        return False

    new_paid = min(tenure, paid + months)
    loan.emis_paid = str(new_paid)
    loan.last_auto_update = to_timestamp(now)
    logger.info("Loan %s: credited %d EMI(s), now %d/%d", loan.id, new_paid - paid, new_paid, tenure)
    return True


def advance_loan_emis(data: AppData, now: datetime | None = None) -> bool:
    """
    Apply advance_loan() to every loan in the document.

    Returns:
        True if any loan changed (the caller persists the document)
    """
    now = now or datetime.now()
    changed = [loan.id for loan in data.loans if advance_loan(loan, now)]
    if changed:
        counter("appdata.loans.auto_advanced", len(changed))
    return bool(changed)


def remaining_emis(loan: Loan) -> int | None:
    tenure = _as_int(loan.tenure)
    if tenure is None:
        return None
    return max(0, tenure - (_as_int(loan.emis_paid) or 0))
