"""
Trigger evaluation for contract deadlines.

Pure logic - no database access, no clock. Given one contract and the
current instant, decide which alerts are due. Everything is compared at
calendar-day granularity; the current instant is truncated to a date first
so a scan at 07:59 and one at 08:01 on the same day agree.

Two rules:
    expiry  - today < end_date <= today + EXPIRY_WINDOW_DAYS
    notice  - notice_deadline - NOTICE_WARNING_LEAD_DAYS <= today < notice_deadline
              where notice_deadline = end_date - notice_period_days,
              evaluated only when notice_period_days > 0

Deadlines that have already passed never fire. Those contracts should be
moved to 'expired' by the record-management service, not re-alerted.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

from dateutil import parser as dateparser

from contract_monitor.storage.models import AlertType, Contract

# Alert policy. These are global on purpose; per-contract windows are not supported.
EXPIRY_WINDOW_DAYS = 90
NOTICE_WARNING_LEAD_DAYS = 14

# Missing month/day in free-text end dates fall back to January 1st, never today
_PARSE_DEFAULT = datetime(1, 1, 1)


class InvalidContractDataError(Exception):
    """A contract field a trigger depends on cannot be interpreted."""

    def __init__(self, contract_id: int, field: str, value: object) -> None:
        self.contract_id = contract_id
        self.field = field
        self.value = value
        super().__init__(f"Contract {contract_id}: unusable {field} {value!r}")


@dataclass(frozen=True)
class AlertCandidate:
    """An alert that should exist for a contract right now."""

    contract_id: int
    alert_type: AlertType
    message: str


def to_day(value: Union[date, datetime]) -> date:
    """Truncate a datetime to its calendar date."""
    if isinstance(value, datetime):
        return value.date()
    return value


def resolve_end_date(contract: Contract) -> Optional[date]:
    """
    Normalise a contract's end_date.

    Returns:
        The end date, or None when the contract has none

    Raises:
        InvalidContractDataError: the stored text is not a date, or has no year
    """
    value = contract.end_date
    if value is None:
        return None
    if isinstance(value, date):
        return to_day(value)

    text = value.strip()
    if not text:
        return None
    try:
        parsed = dateparser.parse(text, default=_PARSE_DEFAULT)
        # A second default year exposes text with no year in it at all
        other_year = dateparser.parse(text, default=_PARSE_DEFAULT.replace(year=4)).year
    except (ValueError, OverflowError) as e:
        raise InvalidContractDataError(contract.id, "end_date", value) from e

    if parsed.year != other_year:
        raise InvalidContractDataError(contract.id, "end_date", value)
    return parsed.date()


def is_expiring(end_date: date, today: date) -> bool:
    return today < end_date <= today + timedelta(days=EXPIRY_WINDOW_DAYS)


def notice_deadline(end_date: date, notice_period_days: int) -> date:
    """Last day on which termination notice can still be given."""
    return end_date - timedelta(days=notice_period_days)


def is_notice_due(end_date: date, notice_period_days: int, today: date) -> bool:
    if notice_period_days <= 0:
        return False
    deadline = notice_deadline(end_date, notice_period_days)
    warning_start = deadline - timedelta(days=NOTICE_WARNING_LEAD_DAYS)
    return warning_start <= today < deadline


def expiry_message(title: str, end_date: date, today: date) -> str:
    days_left = (end_date - today).days
    return f'Contract "{title}" expires in {days_left} days ({end_date.isoformat()}).'


def notice_message(title: str, deadline: date) -> str:
    return f'Action Required: Notice period for "{title}" deadline is {deadline.isoformat()}.'


def evaluate_contract(
    contract: Contract,
    now: Union[date, datetime],
) -> list[AlertCandidate]:
    """
    Compute the alerts currently due for one contract.

    Args:
        contract: Active contract snapshot
        now: Current instant; truncated to a date

    Returns:
        Zero, one or two candidates (at most one per AlertType)

    Raises:
        InvalidContractDataError: end_date is present but unparseable, or
            the deadline arithmetic falls outside the representable dates
    """
    end_date = resolve_end_date(contract)
    if end_date is None:
        return []

    today = to_day(now)
    candidates = []

    try:
        expiring = is_expiring(end_date, today)
    except OverflowError as e:
        raise InvalidContractDataError(contract.id, "end_date", contract.end_date) from e

    if expiring:
        candidates.append(AlertCandidate(
            contract_id=contract.id,
            alert_type=AlertType.EXPIRY,
            message=expiry_message(contract.title, end_date, today),
        ))

    try:
        notice_due = is_notice_due(end_date, contract.notice_period_days, today)
        deadline = notice_deadline(end_date, contract.notice_period_days) if notice_due else None
    except OverflowError as e:
        raise InvalidContractDataError(
            contract.id, "notice_period_days", contract.notice_period_days
        ) from e

    if notice_due:
        candidates.append(AlertCandidate(
            contract_id=contract.id,
            alert_type=AlertType.NOTICE,
            message=notice_message(contract.title, deadline),
        ))

    return candidates
