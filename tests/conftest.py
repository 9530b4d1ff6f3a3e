"""Pytest configuration and fixtures."""

from datetime import date, datetime
from decimal import Decimal
from typing import Callable

import pytest

from emi_tracker.models import DateDrivenLoan, ManuallyTrackedLoan
from emi_tracker.schedule import ScheduleEngine


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def sample_loan_id() -> str:
    """Sample loan ID."""
    return "loan-test-001"


@pytest.fixture
def engine() -> ScheduleEngine:
    """Engine with the default policy and no status reconciliation."""
    return ScheduleEngine()


@pytest.fixture
def make_loan(sample_loan_id: str) -> Callable[..., DateDrivenLoan]:
    """Factory for date-driven loans starting 2024-01-15 over 12 months."""

    def factory(**overrides) -> DateDrivenLoan:
        fields = dict(
            loan_id=sample_loan_id,
            name="Home Loan - Test Bank",
            total_amount=Decimal("60000"),
            installment_amount=Decimal("5000"),
            start_date=date(2024, 1, 15),
            tenure=12,
            interest_rate=Decimal("8.5"),
        )
        fields.update(overrides)
        return DateDrivenLoan(**fields)

    return factory


@pytest.fixture
def make_manual_loan(sample_loan_id: str) -> Callable[..., ManuallyTrackedLoan]:
    """Factory for manually tracked loans with nothing paid yet."""

    def factory(**overrides) -> ManuallyTrackedLoan:
        fields = dict(
            loan_id=sample_loan_id,
            name="Personal Loan - Test Bank",
            total_amount=Decimal("30000"),
            installment_amount=Decimal("5000"),
            start_date=date(2024, 1, 15),
            tenure=6,
            interest_rate=Decimal("12"),
            installment_count=0,
            last_payment_at=None,
        )
        fields.update(overrides)
        return ManuallyTrackedLoan(**fields)

    return factory


@pytest.fixture
def fixed_now() -> datetime:
    """Reference instant used by store tests."""
    return datetime(2024, 6, 10, 9, 30)
