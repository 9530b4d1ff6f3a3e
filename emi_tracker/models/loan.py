"""Loan models.

A stored loan is one of two variants. ``DateDrivenLoan`` infers its paid
count from the calendar; ``ManuallyTrackedLoan`` carries an explicit counter
advanced by marking installments as paid. Code that needs to tell them apart
dispatches on the class-level ``tracking`` tag.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, Union

from emi_tracker.models.enums import LoanStatus, TrackingMode


@dataclass
class NewLoan:
    """Fields supplied when recording a new loan."""

    name: str
    total_amount: Decimal
    installment_amount: Decimal
    start_date: date
    tenure: int
    interest_rate: Decimal = Decimal("0")
    tracking: TrackingMode = TrackingMode.DATE_DRIVEN


@dataclass
class LoanTerms:
    """Static terms shared by both loan variants."""

    loan_id: str
    name: str
    total_amount: Decimal
    installment_amount: Decimal
    start_date: date | str | None  # raw value kept when the stored date is unparseable
    tenure: int
    interest_rate: Decimal
    status: LoanStatus | None = None  # persisted mirror, may be stale
    updated_at: datetime | None = None


@dataclass
class DateDrivenLoan(LoanTerms):
    """Loan whose paid count is derived from the calendar."""

    tracking: ClassVar[TrackingMode] = TrackingMode.DATE_DRIVEN


@dataclass
class ManuallyTrackedLoan(LoanTerms):
    """Loan whose paid count is advanced by explicit payments."""

    installment_count: int = 0
    last_payment_at: datetime | None = None

    tracking: ClassVar[TrackingMode] = TrackingMode.MANUAL


Loan = Union[DateDrivenLoan, ManuallyTrackedLoan]
