"""Dashboard queries aggregated over all tracked loans."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from emi_tracker.models.enums import LoanStatus
from emi_tracker.models.snapshot import LoanSnapshot
from emi_tracker.schedule.calendar import same_month
from emi_tracker.schedule.engine import ScheduleEngine
from emi_tracker.store.repository import LoanRepository


@dataclass(frozen=True)
class DashboardSummary:
    """Headline figures for the dashboard."""

    as_of: date
    total_loans: int
    active_loans: int
    completed_loans: int
    total_monthly_installment: Decimal
    total_contract_amount: Decimal
    total_paid: Decimal
    current_month_due: Decimal
    current_month_paid: Decimal
    current_month_progress: float
    upcoming: list[LoanSnapshot]


class LoanPortfolio:
    """Aggregate views over the loans in a repository.

    Every query recomputes per-loan snapshots through the repository's
    schedule engine; nothing is cached between calls.
    """

    def __init__(self, repository: LoanRepository) -> None:
        self.repository = repository

    @property
    def engine(self) -> ScheduleEngine:
        return self.repository.engine

    def snapshots(self, as_of: date | datetime | None = None) -> list[LoanSnapshot]:
        """Status snapshots of every loan."""
        now = self.engine.now(as_of)
        return [self.engine.compute_status(loan, now) for loan in self.repository.loans()]

    def by_status(
        self, status: LoanStatus, as_of: date | datetime | None = None
    ) -> list[LoanSnapshot]:
        """Snapshots of loans with the given computed status."""
        return [snap for snap in self.snapshots(as_of) if snap.status == status]

    def active(self, as_of: date | datetime | None = None) -> list[LoanSnapshot]:
        return self.by_status(LoanStatus.ACTIVE, as_of)

    def completed(self, as_of: date | datetime | None = None) -> list[LoanSnapshot]:
        return self.by_status(LoanStatus.COMPLETED, as_of)

    def count_by_status(self, as_of: date | datetime | None = None) -> dict[LoanStatus, int]:
        """Number of loans per computed status."""
        counts = {status: 0 for status in LoanStatus}
        for snap in self.snapshots(as_of):
            counts[snap.status] += 1
        return counts

    def upcoming(self, as_of: date | datetime | None = None) -> list[LoanSnapshot]:
        """Active loans due later this month (or today), earliest first."""
        today = self.engine.now(as_of).date()
        due = [
            snap
            for snap in self.active(as_of)
            if same_month(snap.next_payment_date, today) and snap.next_payment_date >= today
        ]
        return sorted(due, key=lambda snap: snap.next_payment_date)

    def due_today(self, as_of: date | datetime | None = None) -> list[LoanSnapshot]:
        """Snapshots of loans with an unpaid installment due today."""
        now = self.engine.now(as_of)
        return [
            self.engine.compute_status(loan, now)
            for loan in self.repository.loans()
            if self.engine.is_due_today(loan, now)
        ]

    def total_monthly_installment(self, as_of: date | datetime | None = None) -> Decimal:
        """Sum of installment amounts across active loans."""
        return sum((snap.installment_amount for snap in self.active(as_of)), Decimal("0"))

    def total_contract_amount(self) -> Decimal:
        """Sum of installment amount times tenure across all loans."""
        return sum(
            (loan.installment_amount * loan.tenure for loan in self.repository.loans()),
            Decimal("0"),
        )

    def total_paid(self, as_of: date | datetime | None = None) -> Decimal:
        """Sum of amounts paid so far across all loans."""
        return sum((snap.total_paid for snap in self.snapshots(as_of)), Decimal("0"))

    def current_month_due(self, as_of: date | datetime | None = None) -> Decimal:
        """Installments falling in the current month.

        Active loans count when their next due date is in the month;
        completed loans when their last payment date is.
        """
        today = self.engine.now(as_of).date()
        return sum(
            (snap.installment_amount for snap in self.snapshots(as_of) if _in_month(snap, today)),
            Decimal("0"),
        )

    def current_month_paid(self, as_of: date | datetime | None = None) -> Decimal:
        """Installments of the current month already paid.

        Active loans count once their due day this month has been reached;
        completed loans when their last payment date is in the month.
        """
        today = self.engine.now(as_of).date()
        total = Decimal("0")
        for snap in self.snapshots(as_of):
            if not _in_month(snap, today):
                continue
            if snap.status == LoanStatus.ACTIVE and today.day < snap.next_payment_date.day:
                continue
            total += snap.installment_amount
        return total

    def current_month_progress(self, as_of: date | datetime | None = None) -> float:
        """Paid share of this month's installments as a percentage in [0, 100]."""
        due = self.current_month_due(as_of)
        if due <= 0:
            return 0.0
        paid = self.current_month_paid(as_of)
        return min(100.0, max(0.0, float(paid / due * 100)))

    def summary(self, as_of: date | datetime | None = None) -> DashboardSummary:
        """Compute all dashboard figures at one instant."""
        now = self.engine.now(as_of)
        counts = self.count_by_status(now)
        return DashboardSummary(
            as_of=now.date(),
            total_loans=sum(counts.values()),
            active_loans=counts[LoanStatus.ACTIVE],
            completed_loans=counts[LoanStatus.COMPLETED],
            total_monthly_installment=self.total_monthly_installment(now),
            total_contract_amount=self.total_contract_amount(),
            total_paid=self.total_paid(now),
            current_month_due=self.current_month_due(now),
            current_month_paid=self.current_month_paid(now),
            current_month_progress=self.current_month_progress(now),
            upcoming=self.upcoming(now),
        )


def _in_month(snap: LoanSnapshot, today: date) -> bool:
    if snap.status == LoanStatus.ACTIVE:
        return same_month(snap.next_payment_date, today)
    return same_month(snap.last_payment_date, today)
