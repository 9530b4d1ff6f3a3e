"""Derived loan status view."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from emi_tracker.models.enums import LoanStatus
from emi_tracker.models.loan import Loan


@dataclass(frozen=True)
class LoanSnapshot:
    """Point-in-time payment status of a loan.

    Recomputed on every read and never persisted. ``final_payment_date`` is
    the contractual last due date; ``last_paid_at`` is the most recent manual
    payment, if any.
    """

    loan: Loan
    as_of: date
    current_installment: int
    remaining_installments: int
    next_payment_date: date
    final_payment_date: date
    last_paid_at: datetime | None
    status: LoanStatus
    total_paid: Decimal
    is_fallback: bool = False

    @property
    def loan_id(self) -> str:
        return self.loan.loan_id

    @property
    def installment_amount(self) -> Decimal:
        return self.loan.installment_amount

    @property
    def tenure(self) -> int:
        return self.loan.tenure

    @property
    def last_payment_date(self) -> date:
        """Date shown as the last payment: actual if recorded, else projected."""
        if self.last_paid_at is not None:
            return self.last_paid_at.date()
        return self.final_payment_date

    @property
    def progress(self) -> float:
        """Percentage of installments paid, within [0, 100]."""
        if self.tenure <= 0:
            return 100.0 if self.status == LoanStatus.COMPLETED else 0.0
        return min(100.0, max(0.0, self.current_installment / self.tenure * 100))
