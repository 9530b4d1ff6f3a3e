"""Rules for counting elapsed installments of a date-driven loan.

Installment ``k`` (zero-based) falls due on ``start_date + k months``. The
policies differ only in when a due installment starts to count.
"""

from datetime import date
from typing import Callable

from emi_tracker.models.enums import ElapsedCountPolicy
from emi_tracker.schedule.calendar import add_months, months_between

ElapsedCounter = Callable[[date, date], int]


def _count_due(start: date, as_of: date, first: int, strict: bool) -> int:
    """Count installments ``first, first + 1, ...`` whose due date is reached."""
    if as_of < start:
        return 0

    # Due dates never run ahead of the month offset, so this bounds the scan
    last = months_between(start, as_of)
    count = 0
    for k in range(first, last + 1):
        due = add_months(start, k)
        if due < as_of or (not strict and due == as_of):
            count += 1
    return count


def calendar_day(start: date, as_of: date) -> int:
    """First installment counts on the start date, then each monthly due day."""
    return _count_due(start, as_of, first=0, strict=False)


def whole_day(start: date, as_of: date) -> int:
    """An installment counts only after its due day has fully passed."""
    return _count_due(start, as_of, first=0, strict=True)


def next_month(start: date, as_of: date) -> int:
    """First installment falls due one month after the start date."""
    return _count_due(start, as_of, first=1, strict=False)


POLICIES: dict[ElapsedCountPolicy, ElapsedCounter] = {
    ElapsedCountPolicy.CALENDAR_DAY: calendar_day,
    ElapsedCountPolicy.WHOLE_DAY: whole_day,
    ElapsedCountPolicy.NEXT_MONTH: next_month,
}


def get_counter(policy: ElapsedCountPolicy | str) -> ElapsedCounter:
    """Return the counting function for a policy."""
    return POLICIES[ElapsedCountPolicy(policy)]
