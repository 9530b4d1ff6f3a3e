"""Loan domain models."""

from emi_tracker.models.enums import (
    ChangeType,
    ElapsedCountPolicy,
    LoanStatus,
    TrackingMode,
)
from emi_tracker.models.loan import (
    DateDrivenLoan,
    Loan,
    LoanTerms,
    ManuallyTrackedLoan,
    NewLoan,
)
from emi_tracker.models.snapshot import LoanSnapshot

__all__ = [
    "ChangeType",
    "DateDrivenLoan",
    "ElapsedCountPolicy",
    "Loan",
    "LoanSnapshot",
    "LoanStatus",
    "LoanTerms",
    "ManuallyTrackedLoan",
    "NewLoan",
    "TrackingMode",
]
