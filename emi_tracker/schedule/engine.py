"""Schedule engine: derive payment status from a loan's terms."""

from __future__ import annotations

import logging
from dataclasses import fields
from datetime import date, datetime
from decimal import Decimal
from typing import Callable

from emi_tracker.exceptions import (
    AlreadyPaidError,
    NotDueError,
    NotStartedError,
    OverpaidError,
    ValidationError,
)
from emi_tracker.models.enums import ElapsedCountPolicy, LoanStatus, TrackingMode
from emi_tracker.models.loan import Loan, LoanTerms, ManuallyTrackedLoan
from emi_tracker.models.snapshot import LoanSnapshot
from emi_tracker.schedule.calendar import add_months, months_between, same_month, to_date
from emi_tracker.schedule.policies import get_counter
from emi_tracker.schedule.reconcile import StatusReconciler

logger = logging.getLogger(__name__)

_TERM_FIELDS = tuple(f.name for f in fields(LoanTerms))


class ScheduleEngine:
    """Compute loan status snapshots and apply installment payments.

    Parameters
    ----------
    policy : ElapsedCountPolicy | str
        Rule for counting elapsed installments of date-driven loans.
    reconciler : StatusReconciler | None
        When set, a persisted ``status`` that disagrees with the computed one
        is corrected in the background by ``compute_status``.
    clock : Callable[[], datetime]
        Source of the current time when ``as_of`` is omitted.
    """

    def __init__(
        self,
        policy: ElapsedCountPolicy | str = ElapsedCountPolicy.CALENDAR_DAY,
        reconciler: StatusReconciler | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.policy = ElapsedCountPolicy(policy)
        self._count_elapsed = get_counter(self.policy)
        self._reconciler = reconciler
        self._clock = clock

    def now(self, as_of: date | datetime | None = None) -> datetime:
        """Resolve ``as_of`` to a datetime, defaulting to the clock."""
        if as_of is None:
            return self._clock()
        if isinstance(as_of, datetime):
            return as_of
        return datetime(as_of.year, as_of.month, as_of.day)

    def installment_count(self, loan: Loan, as_of: date | datetime | None = None) -> int:
        """Installments counted as paid, clamped to ``[0, tenure]``.

        Raises
        ------
        ValidationError
            If the loan's start date is missing or malformed.
        """
        start = to_date(loan.start_date)
        tenure = max(loan.tenure, 0)

        if loan.tracking is TrackingMode.MANUAL:
            count = loan.installment_count
        else:
            count = self._count_elapsed(start, self.now(as_of).date())

        return min(max(count, 0), tenure)

    def snapshot(self, loan: Loan, as_of: date | datetime | None = None) -> LoanSnapshot:
        """Compute the status snapshot, raising on an invalid start date."""
        now = self.now(as_of)
        start = to_date(loan.start_date)
        if loan.tenure < 0:
            logger.warning("Loan %s has negative tenure %s, using 0", loan.loan_id, loan.tenure)
        tenure = max(loan.tenure, 0)

        current = self.installment_count(loan, now)
        status = LoanStatus.COMPLETED if current >= tenure else LoanStatus.ACTIVE

        return LoanSnapshot(
            loan=loan,
            as_of=now.date(),
            current_installment=current,
            remaining_installments=max(0, tenure - current),
            next_payment_date=add_months(start, current),
            final_payment_date=add_months(start, max(tenure - 1, 0)),
            last_paid_at=_last_payment_at(loan),
            status=status,
            total_paid=current * loan.installment_amount,
        )

    def compute_status(self, loan: Loan, as_of: date | datetime | None = None) -> LoanSnapshot:
        """Compute the status snapshot; never raises for bad loan data.

        An invalid start date yields a fallback snapshot (nothing paid, status
        active, due dates set to ``as_of``). A computed status that differs
        from the persisted one is handed to the reconciler, if configured.
        """
        now = self.now(as_of)
        try:
            snap = self.snapshot(loan, now)
        except ValidationError as exc:
            logger.warning("Cannot compute status of loan %s: %s", loan.loan_id, exc)
            return self._fallback(loan, now)

        if self._reconciler is not None and loan.status != snap.status:
            self._reconciler.submit(loan.loan_id, snap.status)

        return snap

    def mark_installment_paid(
        self, loan: Loan, as_of: date | datetime | None = None
    ) -> ManuallyTrackedLoan:
        """Record one installment payment and return the updated loan.

        The returned loan is always manually tracked; a date-driven loan is
        seeded with its date-derived count. The input loan is not modified.

        Raises
        ------
        ValidationError
            If the start date is missing or malformed.
        NotStartedError
            If the loan starts after ``as_of``.
        AlreadyPaidError
            If a payment was already recorded in ``as_of``'s month.
        NotDueError
            If the next installment is not due in ``as_of``'s month.
        OverpaidError
            If every installment has been paid.
        """
        now = self.now(as_of)
        today = now.date()
        start = to_date(loan.start_date)

        if start > today:
            raise NotStartedError(f"Loan {loan.loan_id} starts on {start.isoformat()}")

        last_paid = _last_payment_at(loan)
        if last_paid is not None and same_month(last_paid.date(), today):
            raise AlreadyPaidError(
                f"Loan {loan.loan_id} already paid on {last_paid.date().isoformat()}"
            )

        snap = self.snapshot(loan, now)
        if not same_month(snap.next_payment_date, today):
            raise NotDueError(
                f"Next installment of loan {loan.loan_id} is due on "
                f"{snap.next_payment_date.isoformat()}"
            )

        if snap.current_installment >= loan.tenure:
            raise OverpaidError(f"Loan {loan.loan_id} is already fully paid")

        count = snap.current_installment + 1
        terms = {name: getattr(loan, name) for name in _TERM_FIELDS}
        terms.update(
            status=LoanStatus.COMPLETED if count >= loan.tenure else LoanStatus.ACTIVE,
            updated_at=now,
        )
        logger.info("Loan %s installment %d/%d paid", loan.loan_id, count, loan.tenure)
        return ManuallyTrackedLoan(**terms, installment_count=count, last_payment_at=now)

    def has_started(self, loan: Loan, as_of: date | datetime | None = None) -> bool:
        """True if the loan's start date is on or before ``as_of``."""
        try:
            return to_date(loan.start_date) <= self.now(as_of).date()
        except ValidationError:
            return False

    def is_paid_for_month(self, loan: Loan, as_of: date | datetime | None = None) -> bool:
        """True if a manual payment was recorded in ``as_of``'s month."""
        last_paid = _last_payment_at(loan)
        if last_paid is None:
            return False
        return same_month(last_paid.date(), self.now(as_of).date())

    def is_due_today(self, loan: Loan, as_of: date | datetime | None = None) -> bool:
        """True if an installment falls due on ``as_of`` and is not yet paid.

        Independent of the elapsed-count policy: the date must be one of the
        loan's due dates. A manually tracked loan must also not have paid
        that installment or any payment this month.
        """
        now = self.now(as_of)
        today = now.date()
        try:
            start = to_date(loan.start_date)
        except ValidationError:
            return False

        k = months_between(start, today)
        if k < 0 or k >= loan.tenure or add_months(start, k) != today:
            return False
        if loan.tracking is TrackingMode.MANUAL:
            return loan.installment_count <= k and not self.is_paid_for_month(loan, now)
        return True

    def close(self) -> None:
        """Wait for pending status writes and stop the reconciler."""
        if self._reconciler is not None:
            self._reconciler.close()

    def _fallback(self, loan: Loan, now: datetime) -> LoanSnapshot:
        tenure = max(loan.tenure, 0)
        return LoanSnapshot(
            loan=loan,
            as_of=now.date(),
            current_installment=0,
            remaining_installments=tenure,
            next_payment_date=now.date(),
            final_payment_date=now.date(),
            last_paid_at=_last_payment_at(loan),
            status=LoanStatus.ACTIVE,
            total_paid=Decimal("0"),
            is_fallback=True,
        )


def _last_payment_at(loan: Loan) -> datetime | None:
    if loan.tracking is TrackingMode.MANUAL:
        return loan.last_payment_at
    return None
